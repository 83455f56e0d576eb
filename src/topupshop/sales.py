"""Sales rollups for the operator dashboard."""

from datetime import date, datetime, timezone

from .log import get_logger
from .models import Order, OrderStatus, SalesBucket, SalesSummary

log = get_logger("sales")

TREND_DAYS = 7


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def order_date(order: Order, now: datetime) -> date:
    """UTC calendar date of an order; ``now`` stands in for a missing or bad timestamp."""
    if order.timestamp:
        try:
            return parse_timestamp(order.timestamp).date()
        except ValueError:
            log.warning("order {} has unparseable timestamp {!r}", order.id, order.timestamp)
    return now.astimezone(timezone.utc).date()


def contribution(order: Order) -> float:
    """Amount an order adds to sales: its total once approved, otherwise nothing."""
    if order.status is OrderStatus.APPROVED:
        return order.total_amount or 0
    return 0


def compute_sales(
    orders: list[Order],
    today: date,
    selected_month: str,
    now: datetime | None = None,
) -> SalesSummary:
    """
    Compute today's total, the selected month's total and the sales trend.

    Args:
        orders: Every stored order.
        today: Date counted as "today" (UTC).
        selected_month: Month to total, as YYYY-MM.
        now: Substitute time for orders without a timestamp.

    Returns:
        SalesSummary whose trend holds one bucket per distinct order date,
        ascending, limited to the most recent seven dates. Dates with only
        pending or rejected orders still get a (zero) bucket.
    """
    now = now or datetime.now(timezone.utc)
    daily_total = 0.0
    monthly_total = 0.0
    by_date: dict[str, float] = {}

    for order in orders:
        day = order_date(order, now)
        amount = contribution(order)
        key = day.isoformat()

        if day == today:
            daily_total += amount
        if key[:7] == selected_month:
            monthly_total += amount
        by_date[key] = by_date.get(key, 0) + amount

    trend = [SalesBucket(date=d, amount=by_date[d]) for d in sorted(by_date)]
    return SalesSummary(
        daily_total=daily_total,
        monthly_total=monthly_total,
        trend=trend[-TREND_DAYS:],
    )
