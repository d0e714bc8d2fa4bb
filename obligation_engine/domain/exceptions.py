"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Referenced obligation, series or account does not exist"""

    pass


class InvalidTransitionError(DomainException):
    """Status change not allowed from the obligation's current state"""

    pass


class InvalidObligationError(DomainException):
    """Obligation data is structurally invalid"""

    pass


class InvalidParameterError(DomainException):
    """Series or query parameters are out of range"""

    pass


class LedgerAPIError(DomainException):
    """Transaction ledger returned an error or is unavailable"""

    pass


class TransactionAlreadyLinkedError(InvalidTransitionError):
    """Ledger transaction already settles another obligation"""

    pass
