"""Custom exceptions for the storefront application."""


class StoreError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(StoreError):
    """Exception raised for business rule violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class EmptyCartError(BusinessLogicError):
    """Raised when checking out a cart without lines."""
    def __init__(self, message="Cart is empty. Add some products first."):
        super().__init__(message)


class DuplicateSubmissionError(BusinessLogicError):
    """Raised when an idempotency key was already used for a different cart."""
    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction #{transaction_id} was already processed with different items. "
            f"Reload the page to check out again.",
            409,
            {'transaction_id': transaction_id},
        )
        self.transaction_id = transaction_id


class NotFoundError(StoreError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class TransactionSaveError(StoreError):
    """Raised when the database rejects a transaction insert."""
    def __init__(self, detail: str):
        super().__init__(f"Failed to save transaction: {detail}", 502)
        self.detail = detail


class CatalogNotConfiguredError(StoreError):
    """Raised when the product table does not exist."""
    def __init__(self, message="Store database is not configured. Showing demo catalog."):
        super().__init__(message, 503)
