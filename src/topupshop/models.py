"""Data models for topupshop."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import math
import time

from .errors import ValidationError


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_order_id() -> str:
    """Generate an order number from the last 8 digits of the epoch millis."""
    return "ORD-" + str(int(time.time() * 1000))[-8:]


def _require(data: dict[str, Any], key: str, kind: type | tuple[type, ...], where: str) -> Any:
    """Fetch a required field and check its JSON type."""
    if key not in data or data[key] is None:
        raise ValidationError("missing required field", f"{where}.{key}")
    value = data[key]
    if isinstance(value, bool) and bool not in _as_tuple(kind):
        raise ValidationError(f"expected {_type_name(kind)}", f"{where}.{key}")
    if not isinstance(value, kind):
        raise ValidationError(f"expected {_type_name(kind)}", f"{where}.{key}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("must be a finite number", f"{where}.{key}")
    return value


def _optional(data: dict[str, Any], key: str, kind: type | tuple[type, ...], where: str) -> Any:
    """Fetch an optional field, checking its type when present."""
    if data.get(key) is None:
        return None
    return _require(data, key, kind, where)


def _reject_unknown(data: dict[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"unknown field(s): {', '.join(unknown)}", where)


def _as_tuple(kind: type | tuple[type, ...]) -> tuple[type, ...]:
    return kind if isinstance(kind, tuple) else (kind,)


def _type_name(kind: type | tuple[type, ...]) -> str:
    return " or ".join(k.__name__ for k in _as_tuple(kind))


def _ensure_dict(data: Any, where: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("expected an object", where)
    return data


NUMBER = (int, float)


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING

    @classmethod
    def parse(cls, value: Any, where: str = "status") -> "OrderStatus":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"must be one of {allowed}, got {value!r}", where)


class OrderMethod(str, Enum):
    """How the customer hands the order summary to the shop."""

    MESSENGER = "messenger"
    PLACE_ORDER = "place_order"

    @classmethod
    def parse(cls, value: Any, where: str = "orderMethod") -> "OrderMethod":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"must be one of {allowed}, got {value!r}", where)


class AssetTier(str, Enum):
    """Access policy of a stored asset."""

    PRIVATE = "private"
    PUBLIC = "public"


# Models for orders and carts


@dataclass
class OrderItem:
    """One purchased product for one recipient account.

    The same shape is used for cart items before checkout.
    """

    game_id: str
    game_name: str
    player_id: str
    server: str
    product_id: str
    product_name: str
    price: float
    quantity: int
    ign: str | None = None
    server_label: str | None = None  # copied from the catalog's Game.serverLabel
    category: str | None = None

    FIELDS = {
        "gameId", "gameName", "playerId", "server", "ign", "productId",
        "productName", "price", "quantity", "serverLabel", "category",
    }

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "gameId": self.game_id,
            "gameName": self.game_name,
            "playerId": self.player_id,
            "server": self.server,
            "productId": self.product_id,
            "productName": self.product_name,
            "price": self.price,
            "quantity": self.quantity,
        }
        if self.ign is not None:
            result["ign"] = self.ign
        if self.server_label is not None:
            result["serverLabel"] = self.server_label
        if self.category is not None:
            result["category"] = self.category
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "item") -> "OrderItem":
        data = _ensure_dict(data, where)
        _reject_unknown(data, cls.FIELDS, where)
        quantity = _require(data, "quantity", int, where)
        if quantity < 1:
            raise ValidationError("must be at least 1", f"{where}.quantity")
        price = _require(data, "price", NUMBER, where)
        if price < 0:
            raise ValidationError("must not be negative", f"{where}.price")
        return cls(
            game_id=_require(data, "gameId", str, where),
            game_name=_require(data, "gameName", str, where),
            player_id=_optional(data, "playerId", str, where) or "",
            server=_optional(data, "server", str, where) or "",
            product_id=_require(data, "productId", str, where),
            product_name=_require(data, "productName", str, where),
            price=price,
            quantity=quantity,
            ign=_optional(data, "ign", str, where) or None,
            server_label=_optional(data, "serverLabel", str, where) or None,
            category=_optional(data, "category", str, where),
        )


@dataclass
class StatusPatch:
    """The only fields an operator status update may change."""

    status: OrderStatus
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "note": self.note}


@dataclass
class Order:
    """A persisted customer purchase."""

    id: str
    items: list[OrderItem]
    total_amount: float
    receipt_asset_id: str
    customer_payment_name: str
    order_method: OrderMethod
    status: OrderStatus = OrderStatus.PENDING
    note: str | None = None
    timestamp: str | None = None
    receipt_url: str | None = None

    FIELDS = {
        "id", "items", "totalAmount", "receiptAssetId", "status", "note",
        "timestamp", "customerPaymentName", "orderMethod", "receiptUrl",
    }

    @property
    def items_total(self) -> float:
        return sum(item.line_total for item in self.items)

    def apply(self, patch: StatusPatch) -> "Order":
        """Return a copy with status and note replaced by the patch."""
        return replace(self, status=patch.status, note=patch.note)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
            "receiptAssetId": self.receipt_asset_id,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "customerPaymentName": self.customer_payment_name,
            "orderMethod": self.order_method.value,
        }
        if self.note is not None:
            result["note"] = self.note
        if self.receipt_url is not None:
            result["receiptUrl"] = self.receipt_url
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        """Build an Order from its wire form, rejecting unknown or missing fields."""
        data = _ensure_dict(data, "order")
        _reject_unknown(data, cls.FIELDS, "order")
        raw_items = _require(data, "items", list, "order")
        if not raw_items:
            raise ValidationError("must contain at least one item", "order.items")
        items = [
            OrderItem.from_dict(raw, where=f"order.items[{i}]")
            for i, raw in enumerate(raw_items)
        ]
        status = OrderStatus.PENDING
        if data.get("status") is not None:
            status = OrderStatus.parse(data["status"], "order.status")
        return cls(
            id=_optional(data, "id", str, "order") or _generate_order_id(),
            items=items,
            total_amount=_require(data, "totalAmount", NUMBER, "order"),
            receipt_asset_id=_require(data, "receiptAssetId", str, "order"),
            customer_payment_name=_require(data, "customerPaymentName", str, "order"),
            order_method=OrderMethod.parse(
                _require(data, "orderMethod", str, "order"), "order.orderMethod"
            ),
            status=status,
            note=_optional(data, "note", str, "order"),
            timestamp=_optional(data, "timestamp", str, "order"),
            receipt_url=_optional(data, "receiptUrl", str, "order"),
        )


# Models for the catalog and shop configuration


@dataclass
class Product:
    """A purchasable top-up package within a game."""

    id: str
    name: str
    price: float
    bonus: str | None = None
    image: str | None = None
    note: str | None = None
    badges: dict[str, bool] = field(default_factory=dict)

    BADGES = (
        "special", "subscription", "doubleReward", "battlePass", "pass",
        "welkinMoon", "genesis", "chronal",
    )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name, "price": self.price}
        for key in ("bonus", "image", "note"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        for badge, enabled in self.badges.items():
            if enabled:
                result[badge] = True
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "product") -> "Product":
        data = _ensure_dict(data, where)
        return cls(
            id=_require(data, "id", str, where),
            name=_require(data, "name", str, where),
            price=_require(data, "price", NUMBER, where),
            bonus=_optional(data, "bonus", str, where),
            image=_optional(data, "image", str, where),
            note=_optional(data, "note", str, where),
            badges={b: bool(data[b]) for b in cls.BADGES if data.get(b)},
        )


@dataclass
class Game:
    """A game (or load provider) listed in the storefront."""

    id: str
    name: str
    image: str
    products: list[Product] = field(default_factory=list)
    discount: float | None = None
    category: str | None = None
    server_label: str | None = None
    note: str | None = None
    disclaimer: str | None = None
    grid_span: str | None = None  # "normal" | "wide"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "products": [p.to_dict() for p in self.products],
        }
        optional = {
            "discount": self.discount,
            "category": self.category,
            "serverLabel": self.server_label,
            "note": self.note,
            "disclaimer": self.disclaimer,
            "gridSpan": self.grid_span,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "game") -> "Game":
        data = _ensure_dict(data, where)
        products = _optional(data, "products", list, where) or []
        grid_span = _optional(data, "gridSpan", str, where)
        if grid_span is not None and grid_span not in ("normal", "wide"):
            raise ValidationError("must be 'normal' or 'wide'", f"{where}.gridSpan")
        return cls(
            id=_require(data, "id", str, where),
            name=_require(data, "name", str, where),
            image=data.get("image") or "",
            products=[
                Product.from_dict(p, where=f"{where}.products[{i}]")
                for i, p in enumerate(products)
            ],
            discount=_optional(data, "discount", NUMBER, where),
            category=_optional(data, "category", str, where),
            server_label=_optional(data, "serverLabel", str, where),
            note=_optional(data, "note", str, where),
            disclaimer=_optional(data, "disclaimer", str, where),
            grid_span=grid_span,
        )


@dataclass
class Payment:
    """A payment channel the customer can pay through."""

    id: str
    name: str
    logo: str | None = None
    qr_code: str | None = None
    account_name: str | None = None
    account_number: str | None = None
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name}
        optional = {
            "logo": self.logo,
            "qrCode": self.qr_code,
            "accountName": self.account_name,
            "accountNumber": self.account_number,
            "type": self.type,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "payment") -> "Payment":
        data = _ensure_dict(data, where)
        return cls(
            id=_require(data, "id", str, where),
            name=_require(data, "name", str, where),
            logo=_optional(data, "logo", str, where),
            qr_code=_optional(data, "qrCode", str, where),
            account_name=_optional(data, "accountName", str, where),
            account_number=_optional(data, "accountNumber", str, where),
            type=_optional(data, "type", str, where),
        )


@dataclass
class SiteSettings:
    """Shop-wide switches edited from the dashboard."""

    order_method: OrderMethod = OrderMethod.MESSENGER
    banners: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"orderMethod": self.order_method.value, "banners": list(self.banners)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SiteSettings":
        data = _ensure_dict(data, "settings")
        banners = _optional(data, "banners", list, "settings") or []
        if not all(isinstance(b, str) for b in banners):
            raise ValidationError("must be a list of URLs", "settings.banners")
        method = data.get("orderMethod") or OrderMethod.MESSENGER.value
        return cls(
            order_method=OrderMethod.parse(method, "settings.orderMethod"),
            banners=banners,
        )


# Models for assets


@dataclass
class Asset:
    """A stored binary object."""

    id: str
    content_type: str
    tier: AssetTier

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "contentType": self.content_type, "tier": self.tier.value}


@dataclass
class ResolvedAsset:
    """A URL for an asset; expires_at is None for permanent URLs."""

    url: str
    expires_at: datetime | None = None


# Models for sales rollups


@dataclass
class SalesBucket:
    """Sales amount for one calendar date."""

    date: str  # YYYY-MM-DD
    amount: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "amount": self.amount}


@dataclass
class SalesSummary:
    """Dashboard rollup of the order collection."""

    daily_total: float
    monthly_total: float
    trend: list[SalesBucket]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dailyTotal": self.daily_total,
            "monthlyTotal": self.monthly_total,
            "trend": [b.to_dict() for b in self.trend],
        }
