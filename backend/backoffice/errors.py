# Overview: Typed failures raised by the ledger engines and mapped to JSON errors by routes.

"""
Ledger error taxonomy.

Every engine operation either returns its committed result or raises exactly
one of these. The transaction that raised has already been rolled back by the
time the caller sees the error.

- InvalidInput: malformed or missing fields (caller's fault, not retried)
- NotFound: referenced entity missing
- InsufficientStock: a stock decrement would take an item below zero
- InvalidState: illegal lifecycle transition (e.g. converting a draft quote)
- Expired: the quote's validity lapsed before conversion
- InvalidAmount: non-positive payment or overpayment
- StorageError: transaction/infrastructure failure (retryable after backoff)
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for engine failures."""

    code = "ledger_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class InvalidInput(LedgerError):
    code = "invalid_input"
    http_status = 400


class NotFound(LedgerError):
    code = "not_found"
    http_status = 404


class InsufficientStock(LedgerError):
    code = "insufficient_stock"
    http_status = 409


class InvalidState(LedgerError):
    code = "invalid_state"
    http_status = 409


class Expired(InvalidState):
    code = "expired"


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    http_status = 400


class StorageError(LedgerError):
    code = "storage_error"
    http_status = 503
    retryable = True


def line_context(index: int, product_name: str | None) -> dict:
    """Details payload naming the offending line of a multi-line request."""
    return {"line_index": index, "product_name": product_name}
