"""
Error taxonomy shared by the store, the lifecycle engine and the API layer.

Every error carries a human-readable message and the HTTP status the API
layer maps it to. ``PersistenceWarning`` is never surfaced to callers; it is
only logged by the mirror writer.
"""

from typing import Optional


class CafeError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    @property
    def error_type(self) -> str:
        return type(self).__name__


class ValidationError(CafeError):
    """Malformed input, e.g. an order without items."""

    status_code = 400


class NotFoundError(CafeError):
    """Unknown order, bill or menu item."""

    status_code = 404


class InvalidTransitionError(CafeError):
    """Requested status is not a legal successor of the current one."""

    status_code = 409

    def __init__(self, order_id: str, current: str, requested: str):
        super().__init__(
            f"Order {order_id} cannot move from {current} to {requested}",
            detail={"orderId": order_id, "current": current, "requested": requested},
        )
        self.order_id = order_id
        self.current = current
        self.requested = requested


class PersistenceWarning(CafeError, Warning):
    """Mirror store write failed. Logged, never fatal."""


class StartupError(CafeError):
    """Mandatory collaborator unavailable at startup."""
