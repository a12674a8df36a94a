"""
Stall Service — Order status lifecycle

The one transition table for order statuses. The write path enforces it,
and GET /order-statuses serves it to the dashboard so the buttons the UI
offers always come from the same definition.

Forward path: pending → paid → ready → completed
Terminal:     cancelled, refunded
Undo:         ready → paid, completed → ready
"""
from enum import Enum
from typing import Any

from stall.core.errors import UnknownStatusError


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


VALID_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING:   (OrderStatus.PAID, OrderStatus.CANCELLED),
    OrderStatus.PAID:      (OrderStatus.READY, OrderStatus.REFUNDED),
    OrderStatus.READY:     (OrderStatus.COMPLETED, OrderStatus.PAID, OrderStatus.REFUNDED),
    OrderStatus.COMPLETED: (OrderStatus.READY,),
    OrderStatus.CANCELLED: (),
    OrderStatus.REFUNDED:  (),
}

TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Manual corrections of the two most recent forward steps
UNDO_TRANSITIONS = frozenset({
    (OrderStatus.READY, OrderStatus.PAID),
    (OrderStatus.COMPLETED, OrderStatus.READY),
})

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING:   "Awaiting payment",
    OrderStatus.PAID:      "Paid",
    OrderStatus.READY:     "Ready for pickup",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REFUNDED:  "Refunded",
}

STATUS_COLOR_CLASSES: dict[OrderStatus, str] = {
    OrderStatus.PENDING:   "text-gray-600",
    OrderStatus.PAID:      "text-yellow-600",
    OrderStatus.READY:     "text-green-600",
    OrderStatus.COMPLETED: "text-green-600",
    OrderStatus.CANCELLED: "text-red-600",
    OrderStatus.REFUNDED:  "text-red-600",
}

STATUS_BACKGROUND_CLASSES: dict[OrderStatus, str] = {
    OrderStatus.PENDING:   "bg-gray-50 border border-gray-200",
    OrderStatus.PAID:      "bg-yellow-50 border border-yellow-200",
    OrderStatus.READY:     "bg-green-50 border border-green-200",
    OrderStatus.COMPLETED: "bg-green-50 border border-green-200",
    OrderStatus.CANCELLED: "bg-red-50 border border-red-200",
    OrderStatus.REFUNDED:  "bg-red-50 border border-red-200",
}


def _coerce(value: Any) -> OrderStatus | None:
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def parse_status(value: Any) -> OrderStatus:
    """Strict parse for the write boundary. Raises UnknownStatusError."""
    status = _coerce(value)
    if status is None:
        raise UnknownStatusError(value)
    return status


def valid_transitions(current: Any) -> frozenset[OrderStatus]:
    """Statuses reachable from ``current``; empty for terminal or unknown values."""
    status = _coerce(current)
    if status is None:
        return frozenset()
    return frozenset(VALID_TRANSITIONS.get(status, ()))


def is_valid_transition(current: Any, requested: Any) -> bool:
    target = _coerce(requested)
    if target is None:
        return False
    return target in valid_transitions(current)


def is_terminal(status: Any) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def is_undo(current: Any, requested: Any) -> bool:
    """True for ready→paid and completed→ready.

    Used for confirmation prompts and the audit log only; an undo still has
    to pass is_valid_transition.
    """
    return (_coerce(current), _coerce(requested)) in UNDO_TRANSITIONS


def _ordered_allowed(status: OrderStatus) -> list[OrderStatus]:
    return list(VALID_TRANSITIONS.get(status, ()))


def describe_rejection(current: Any, requested: Any) -> str:
    status = _coerce(current)
    if status is None:
        return f"Order status {current!r} is unknown and cannot be changed."
    if is_terminal(status):
        return f"Orders in status '{label(status)}' are final and cannot be changed."
    allowed = _ordered_allowed(status)
    if not allowed:
        return f"Orders in status '{label(status)}' cannot be changed."
    targets = ", ".join(f"'{label(s)}'" for s in allowed)
    return f"Orders in status '{label(status)}' can only be changed to {targets}."


def allowed_values(current: Any) -> list[str]:
    """Allowed targets as plain strings, in table order."""
    status = _coerce(current)
    if status is None:
        return []
    return [s.value for s in _ordered_allowed(status)]


def _lookup(mapping: dict[OrderStatus, str], status: Any) -> str:
    key = _coerce(status)
    if key is None or key not in mapping:
        raise UnknownStatusError(status)
    return mapping[key]


def label(status: Any) -> str:
    return _lookup(STATUS_LABELS, status)


def color_class(status: Any) -> str:
    return _lookup(STATUS_COLOR_CLASSES, status)


def background_class(status: Any) -> str:
    return _lookup(STATUS_BACKGROUND_CLASSES, status)


def status_table() -> dict[str, Any]:
    """Serializable form of the lifecycle, served to the dashboard."""
    return {
        "statuses": [
            {
                "value": s.value,
                "label": label(s),
                "color_class": color_class(s),
                "background_class": background_class(s),
                "terminal": is_terminal(s),
                "next": allowed_values(s),
            }
            for s in OrderStatus
        ],
        "undo": [[cur.value, req.value] for cur, req in sorted(UNDO_TRANSITIONS)],
    }
