"""Order storage and status lifecycle on top of the key-value store."""

from .errors import OrderNotFoundError, ValidationError
from .game_rules import validate_items
from .kv_store import KeyValueStore
from .log import get_logger
from .models import Order, OrderStatus, StatusPatch, _utc_now
from .sales import parse_timestamp

log = get_logger("orders")

ORDER_PREFIX = "order:"

# Allowed drift between totalAmount and the item sum, in pesos.
TOTAL_TOLERANCE = 0.005


def order_key(order_id: str) -> str:
    return f"{ORDER_PREFIX}{order_id}"


class OrderRepository:
    """
    CRUD over orders stored at ``order:{id}``.

    Status moves from pending to approved or rejected. The repository does
    not block later transitions (including back to pending); they are
    logged and left to the operator.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def create(self, order: Order) -> Order:
        """
        Validate and persist a new order.

        New orders always start pending with no note. An existing order with
        the same ID is replaced without warning.

        Raises:
            ValidationError: If the total doesn't match the items or an item
                misses account details its game requires.
        """
        if abs(order.total_amount - order.items_total) > TOTAL_TOLERANCE:
            raise ValidationError(
                f"{order.total_amount} does not match item total {order.items_total}",
                "totalAmount",
            )
        validate_items(order.items)
        order.status = OrderStatus.PENDING
        order.note = None
        if not order.timestamp:
            order.timestamp = _utc_now()

        self.kv.set(order_key(order.id), order.to_dict())
        log.info("created order {} ({} item(s), total {})", order.id, len(order.items), order.total_amount)
        return order

    def get(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        data = self.kv.get(order_key(order_id))
        if data is None:
            raise OrderNotFoundError(order_id)
        return Order.from_dict(data)

    def list_all(self) -> list[Order]:
        """Return every stored order, in no particular order."""
        return [Order.from_dict(data) for data in self.kv.get_by_prefix(ORDER_PREFIX)]

    def update_status(self, order_id: str, patch: StatusPatch) -> Order:
        """
        Set an order's status and note, leaving every other field untouched.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        existing = self.get(order_id)
        if existing.status.is_terminal and patch.status != existing.status:
            log.warning(
                "order {} moved out of terminal status {} to {}",
                order_id, existing.status.value, patch.status.value,
            )
        updated = existing.apply(patch)
        self.kv.set(order_key(order_id), updated.to_dict())
        log.info("order {} -> {}", order_id, patch.status.value)
        return updated

    def delete_all(self) -> int:
        """
        Delete every order in one batch.

        Not transactional: orders created between the scan and the delete
        may or may not survive.

        Returns:
            Number of orders deleted.
        """
        keys = self.kv.keys_with_prefix(ORDER_PREFIX)
        if not keys:
            return 0
        count = self.kv.delete_many(keys)
        log.warning("deleted {} order(s)", count)
        return count


def sorted_by_timestamp(orders: list[Order], newest_first: bool = True) -> list[Order]:
    """Sort orders by UTC time; orders without a parseable timestamp sort last."""
    stamped = []
    unstamped = []
    for order in orders:
        try:
            when = parse_timestamp(order.timestamp) if order.timestamp else None
        except ValueError:
            when = None
        if when is None:
            unstamped.append(order)
        else:
            stamped.append((when, order))
    stamped.sort(key=lambda pair: pair[0], reverse=newest_first)
    return [order for _, order in stamped] + unstamped
