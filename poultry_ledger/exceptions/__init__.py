"""Custom exceptions for the poultry ledger application."""


class LedgerError(Exception):
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
        rv['error'] = type(self).__name__
        return rv


class ValidationError(LedgerError):
    """Caller-recoverable input error, rejected before any settlement runs."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(LedgerError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(ValidationError):
    """Raised when a sale asks for more head than the catalog holds."""
    def __init__(self, product_name, required, available):
        message = f"Insufficient stock for {product_name}: {int(required)} required, {int(available)} available"
        super().__init__(message, status_code=409, payload={'required': int(required), 'available': int(available)})


class ConsistencyError(LedgerError):
    """A ledger invariant does not hold (paid + debt != total, negative debt, ...)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 500, payload)


class PersistenceError(LedgerError):
    """The atomic write failed; nothing was applied."""
    def __init__(self, message="Could not save changes, please retry", status_code=503, payload=None):
        super().__init__(message, status_code, payload)


class ConcurrencyError(PersistenceError):
    """A record changed under us (optimistic version conflict)."""
    def __init__(self, message="Record was modified by another terminal, reload and retry", payload=None):
        super().__init__(message, 409, payload)
