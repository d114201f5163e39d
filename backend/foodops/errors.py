# Overview: Typed error taxonomy shared by services, routes and the CLI.

"""
Error kinds (each maps to one HTTP status in the JSON API):

- ValidationError: bad input, rejected before any write.
- NotFoundError: missing product / account / party / document.
- InsufficientStockError: FIFO consume exceeds on-hand; nothing is consumed.
- BusinessRuleViolation: operation not allowed in the current state.
- TransactionConflictError: optimistic retries exhausted; safe for the caller to retry.

Duplicate document numbers are never surfaced; sequence allocation retries internally.
"""

from __future__ import annotations


class FoodOpsError(Exception):
    """Base for all domain errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(FoodOpsError, ValueError):
    """400-level input problem."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(FoodOpsError):
    status_code = 404
    code = "NOT_FOUND"


class InsufficientStockError(FoodOpsError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class BusinessRuleViolation(FoodOpsError):
    status_code = 409
    code = "BUSINESS_RULE_VIOLATION"


class TransactionConflictError(FoodOpsError):
    """Concurrent writers kept winning; the whole operation was rolled back."""

    status_code = 503
    code = "TRANSACTION_CONFLICT"
