"""Prometheus metrics for lifecycle transitions, match suggestions and balance drift"""

from typing import List

from prometheus_client import Counter, Histogram

from obligation_engine.domain.models import MatchCandidate, Severity

# Lifecycle metrics
transition_counter = Counter(
    "obligation_transition_total",
    "Obligation status transitions applied",
    ["status"],  # OVERDUE | SETTLED | SKIPPED
)

obligations_created_counter = Counter(
    "obligation_created_total",
    "Obligations created",
    ["source"],  # single | series | loan
)

# Matching metrics
match_request_counter = Counter(
    "obligation_match_requests_total",
    "Transactions offered to the matching engine",
    ["outcome"],  # matched | unmatched
)

match_score_histogram = Histogram(
    "obligation_match_best_score",
    "Score of the best qualifying candidate",
    buckets=[150, 175, 200, 225, 250, 275, 300],
)

# Reconciliation metrics
reconciliation_counter = Counter(
    "reconciliation_checks_total",
    "Account reconciliation checks by drift severity",
    ["severity"],  # none | minor | major | critical
)

# Ledger API metrics
ledger_fetch_failures_counter = Counter(
    "ledger_fetch_failures_total",
    "Failed transaction ledger calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transitions(status: str, count: int = 1) -> None:
    if count:
        transition_counter.labels(status=status).inc(count)


def record_match(candidates: List[MatchCandidate]) -> None:
    """Record whether a transaction found a qualifying obligation and how strong the best one was"""
    if candidates:
        match_request_counter.labels(outcome="matched").inc()
        match_score_histogram.observe(candidates[0].score)
    else:
        match_request_counter.labels(outcome="unmatched").inc()


def record_reconciliation(severity: Severity) -> None:
    reconciliation_counter.labels(severity=severity.value).inc()
