"""Group a cart by recipient account and render the settlement message."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
import re

from .models import OrderItem

PESO = "₱"
NO_SERVER = "N/A"


@dataclass
class CartGroup:
    """Cart items going to the same game account."""

    game_name: str
    server: str
    player_id: str
    ign: str = ""
    server_label: str = ""
    items: list[OrderItem] = field(default_factory=list)
    total: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameName": self.game_name,
            "server": self.server,
            "playerId": self.player_id,
            "ign": self.ign,
            "serverLabel": self.server_label,
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
        }


@dataclass
class CartSummary:
    groups: list[CartGroup]
    grand_total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "grandTotal": self.grand_total,
        }


def group_key(item: OrderItem) -> str:
    """Key identifying the recipient account of an item."""
    return f"{item.game_name}|{item.server}|{item.player_id}|{item.ign or ''}"


def aggregate_cart(items: list[OrderItem]) -> CartSummary:
    """
    Partition cart items into per-account groups.

    Groups keep the order in which their first item appears, and items keep
    their cart order inside each group.
    """
    groups: dict[str, CartGroup] = {}
    for item in items:
        key = group_key(item)
        group = groups.get(key)
        if group is None:
            group = CartGroup(
                game_name=item.game_name,
                server=item.server,
                player_id=item.player_id,
                ign=item.ign or "",
                server_label=item.server_label or "",
            )
            groups[key] = group
        group.items.append(item)
        group.total += item.line_total

    return CartSummary(
        groups=list(groups.values()),
        grand_total=sum(item.line_total for item in items),
    )


def format_whole_pesos(amount: float) -> str:
    """Round half-up to a whole number, no grouping (e.g. 1234.5 -> '1235')."""
    return str(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_grouped(amount: float) -> str:
    """Group thousands and keep up to three decimals (e.g. 1234.5 -> '1,234.5')."""
    value = Decimal(str(amount)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    text = f"{value:,}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _header(group: CartGroup) -> str:
    if group.server_label:
        server_text = f"{group.server_label} ORDER"
    else:
        server = "" if group.server == NO_SERVER else group.server
        server_text = f"{server} ORDER"
    return re.sub(r"\s+", " ", f"{group.game_name.upper()} {server_text}").strip()


def _identity(group: CartGroup) -> str:
    line = f"ID: {group.player_id}"
    if group.server and group.server != NO_SERVER:
        line += f" ({group.server})"
    if group.ign:
        line += f" {group.ign}"
    return line


def _item_line(item: OrderItem) -> str:
    prefix = f"{item.quantity}x " if item.quantity > 1 else ""
    return f"{prefix}{item.product_name} - {PESO}{format_whole_pesos(item.line_total)}"


def render_summary(summary: CartSummary, receipt_url: str) -> str:
    """
    Render the message the customer sends to the shop.

    Each group gets a header, an account line and one line per item, then
    a blank line. The per-group totals follow all group bodies, and the
    receipt link closes the message.
    """
    lines: list[str] = []
    for group in summary.groups:
        lines.append(_header(group))
        lines.append(_identity(group))
        lines.extend(_item_line(item) for item in group.items)
        lines.append("")
    for group in summary.groups:
        lines.append(f"TOTAL: {PESO}{format_grouped(group.total)}")
    lines.append(f"PAYMENT RECEIPT: {receipt_url}")
    return "\n".join(lines)
