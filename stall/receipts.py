"""
Stall Service — Pickup receipts

Plain-text receipt for the counter printer: call number first and largest,
then the lines, the total and the pickup time.
"""
from stall.models.order import Order

RECEIPT_WIDTH = 32
DEFAULT_SIZE = "並"


def _yen(amount: int) -> str:
    return f"¥{amount:,}"


def _row(left: str, right: str) -> str:
    gap = max(RECEIPT_WIDTH - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def render_receipt(order: Order) -> str:
    rule = "-" * RECEIPT_WIDTH
    lines = [
        "お呼び出し番号".center(RECEIPT_WIDTH),
        str(order.call_number).center(RECEIPT_WIDTH),
        rule,
    ]
    for item in order.items:
        lines.append(_row(f"{item['name']} x {item['quantity']}", _yen(item["price"] * item["quantity"])))
        if item.get("size") and item["size"] != DEFAULT_SIZE:
            lines.append(f"  サイズ: {item['size']}")
        for extra in item.get("customizations") or []:
            lines.append(f"  {extra}")
    lines += [
        rule,
        _row("合計", _yen(order.total)),
        f"受け取り時間: {order.time_slot_label}",
    ]
    return "\n".join(lines) + "\n"
