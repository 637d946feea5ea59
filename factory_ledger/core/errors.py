"""
Ledger error taxonomy.

Every error the ledger raises carries the HTTP status it maps to, so the API
layer can translate it into the ``{success: false, message}`` envelope without
knowing which component raised it.
"""

from typing import List, Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""

    status_code: int = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class TransactionValidationError(LedgerError):
    """Bad numeric or required-field input. Never coerced, always rejected."""

    status_code = 422

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors), errors)


class CatalogViolation(LedgerError):
    """Transaction kind not permitted for the product type, or unknown product type."""

    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class AuthenticationError(LedgerError):
    status_code = 401


class PermissionDenied(LedgerError):
    """Caller is authenticated but not allowed to perform the operation."""

    status_code = 403


class ConflictError(LedgerError):
    """Record was changed or deleted between read and write."""

    status_code = 409


class StoreTimeout(LedgerError):
    status_code = 504


class RenderingFailure(LedgerError):
    """Statement or invoice generation failed."""

    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        detail = f"{message}: {cause}" if cause is not None else message
        super().__init__(detail)
        self.cause = cause
