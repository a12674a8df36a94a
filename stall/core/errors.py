"""
Stall Service — Error taxonomy

Every failure the engines can report has its own kind so the HTTP layer can
tell "pick another time" apart from "invalid request".
"""


class StallError(Exception):
    """Base class for all domain failures."""


class InvalidTransitionError(StallError):
    """Requested status is not in the current status's allowed set."""

    def __init__(self, current: str, requested: str, allowed: list[str], message: str):
        super().__init__(message)
        self.current = current
        self.requested = requested
        self.allowed = allowed
        self.message = message

    def to_detail(self) -> dict:
        return {
            "message": self.message,
            "current": self.current,
            "requested": self.requested,
            "allowed": self.allowed,
        }


class UnknownStatusError(StallError):
    def __init__(self, status):
        super().__init__(f"Unknown order status: {status!r}")
        self.status = status


class SlotFullError(StallError):
    """The slot has no remaining capacity. Expected and frequent."""

    def __init__(self, slot_id: str):
        super().__init__(f"Time slot '{slot_id}' is full.")
        self.slot_id = slot_id


class UnknownSlotError(StallError):
    def __init__(self, slot_id: str):
        super().__init__(f"Time slot '{slot_id}' does not exist.")
        self.slot_id = slot_id


class OrderNotFoundError(StallError):
    def __init__(self, order_id: str):
        super().__init__(f"Order '{order_id}' not found.")
        self.order_id = order_id


class StoreClosedError(StallError):
    """The stall has stopped accepting new orders."""


class UnknownProductError(StallError):
    def __init__(self, product_id: str):
        super().__init__(f"Product '{product_id}' does not exist.")
        self.product_id = product_id


class ProductUnavailableError(StallError):
    """The product is on the menu but switched off (sold out for today)."""

    def __init__(self, product_id: str, name: str):
        super().__init__(f"'{name}' is not available right now.")
        self.product_id = product_id
        self.name = name


class FeedbackExistsError(StallError):
    def __init__(self, order_id: str):
        super().__init__(f"Feedback already submitted for order '{order_id}'.")
        self.order_id = order_id


class NotOrderOwnerError(StallError):
    def __init__(self, order_id: str):
        super().__init__(f"Order '{order_id}' belongs to someone else.")
        self.order_id = order_id


class PaymentGatewayError(StallError):
    """The payment gateway could not be asked for the payment's status."""
