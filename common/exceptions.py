"""
Pelecard Receipts - Custom Exceptions
======================================
Business-level exceptions that can be caught and converted to HTTP responses.
"""


class ReceiptsError(Exception):
    """Base exception for all business logic errors."""
    def __init__(self, message: str = "Internal error"):
        self.message = message
        super().__init__(self.message)


class MissingIdentifierError(ReceiptsError):
    """Raised when the registration id (or another required id) is absent."""
    def __init__(self, message: str = "Missing RegID"):
        super().__init__(message)


class GatewayInitError(ReceiptsError):
    """Raised when the gateway returns no redirect URL or the init call fails."""
    def __init__(self, message: str, payload=None):
        self.payload = payload
        super().__init__(message)


class NotificationUnparseableError(ReceiptsError):
    """Raised when a webhook body fails every decode strategy."""
    pass


class NotApprovedError(ReceiptsError):
    """Raised when the gateway did not report approval for the transaction."""
    pass


class InvoicingError(ReceiptsError):
    """Raised for invoicing API errors (never escapes the invoicing client)."""
    pass
