"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from obligation_engine.domain.models import ReconciliationResult


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args: Any, service_name: str = "obligation-engine", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "obligation-engine") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_transition(request_id: str, obligation_id: str, status: str) -> None:
    """Log a confirmed lifecycle transition requested over the API"""
    logging.info(
        "Obligation transition",
        extra={
            "request_id": request_id,
            "obligation_id": obligation_id,
            "step": "transition",
            "status": status,
        },
    )


def log_reconciliation(request_id: str, account_id: str, result: ReconciliationResult, duration_ms: float) -> None:
    """Log reconciliation outcome for drift analysis"""
    logging.info(
        "Reconciliation completed",
        extra={
            "request_id": request_id,
            "account_id": account_id,
            "step": "reconciliation_complete",
            "severity": result.severity.value,
            "needs_reconciliation": result.needs_reconciliation,
            "difference": str(result.difference),
            "duration_ms": duration_ms,
        },
    )
