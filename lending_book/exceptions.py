"""
Exception hierarchy for the lending book.

Every error raised by the core derives from LendingBookError so the API layer
can map the whole family onto HTTP status codes in one place.
"""

from typing import Any, Dict, Optional


class LendingBookError(Exception):
    """Base exception for all lending book errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidInputError(LendingBookError, ValueError):
    """Raised when amortization or CRUD parameters are rejected"""


class NotFoundError(LendingBookError):
    """Raised when a client, loan or installment does not exist"""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type.capitalize()} {entity_id} not found",
            {"entity_type": entity_type, "entity_id": entity_id}
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class AlreadyPaidError(LendingBookError):
    """Raised when paying an installment that is already PAID"""

    def __init__(self, installment_id: str):
        super().__init__(
            f"Installment {installment_id} is already paid",
            {"installment_id": installment_id}
        )
        self.installment_id = installment_id


class ClientHasActiveLoansError(LendingBookError):
    """Raised when deleting a client that still owns an ACTIVE loan"""

    def __init__(self, client_id: str, active_loans: int):
        super().__init__(
            f"Client {client_id} still has {active_loans} active loan(s)",
            {"client_id": client_id, "active_loans": active_loans}
        )


class InvalidTransitionError(LendingBookError):
    """Raised when the loan state machine has no rule for a (status, event) pair"""


class PersistenceError(LendingBookError):
    """Raised when the storage backend fails to read or write a record"""
