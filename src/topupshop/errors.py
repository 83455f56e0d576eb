"""Custom exceptions for topupshop."""


class TopupShopError(Exception):
    """Base exception for all topupshop errors."""

    pass


class ValidationError(TopupShopError):
    """Raised when a payload is malformed or misses a required field."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class NotFoundError(TopupShopError):
    """Base for lookups that found nothing."""

    pass


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class AssetNotFoundError(NotFoundError):
    """Raised when an asset identifier doesn't resolve to a stored file."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Asset not found: {identifier}")


class StorageError(TopupShopError):
    """Raised when the key-value backing store can't be read or written."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage {operation} failed: {reason}")


class UploadError(TopupShopError):
    """Raised when the asset backend rejects an upload."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Upload failed: {reason}")


class AuthenticationError(TopupShopError):
    """Raised when a request carries no or a wrong bearer token."""

    def __init__(self, reason: str = "Invalid or missing bearer token"):
        super().__init__(reason)
