"""Command-line interface for topupshop."""

import argparse
import json
import sys
from datetime import datetime, timezone

from . import __version__
from .config import get_config
from .errors import TopupShopError
from .kv_store import KeyValueStore
from .models import OrderStatus, StatusPatch
from .order_repository import OrderRepository, sorted_by_timestamp
from .sales import compute_sales


def get_repository() -> OrderRepository:
    """Get an OrderRepository on the configured data directory."""
    return OrderRepository(KeyValueStore(get_config().kv_path))


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders, newest first."""
    try:
        orders = sorted_by_timestamp(get_repository().list_all())
        if args.status:
            orders = [o for o in orders if o.status.value == args.status]

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2))
            return 0

        if not orders:
            print("No orders found.")
            return 0

        print(f"Orders ({len(orders)}):")
        for o in orders:
            print(
                f"  {o.id}  {o.timestamp or '-':<27} {o.status.value:<9} "
                f"P{o.total_amount:>10,.2f}  {o.customer_payment_name}"
            )
        return 0

    except TopupShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order as JSON."""
    try:
        order = get_repository().get(args.order_id)
        print(json.dumps(order.to_dict(), indent=2, ensure_ascii=False))
        return 0
    except TopupShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_set_status(args: argparse.Namespace) -> int:
    """Approve or reject an order."""
    try:
        patch = StatusPatch(status=OrderStatus.parse(args.status), note=args.note)
        order = get_repository().update_status(args.order_id, patch)
        print(f"Order {order.id} is now {order.status.value}")
        return 0
    except TopupShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_clear(args: argparse.Namespace) -> int:
    """Delete every order."""
    if not args.yes:
        print("Refusing to delete all orders without --yes.", file=sys.stderr)
        return 1
    try:
        count = get_repository().delete_all()
        print(f"Deleted {count} order(s)")
        return 0
    except TopupShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_sales(args: argparse.Namespace) -> int:
    """Print today's and the month's sales with the recent trend."""
    try:
        now = datetime.now(timezone.utc)
        month = args.month or now.strftime("%Y-%m")
        summary = compute_sales(get_repository().list_all(), now.date(), month, now=now)

        if args.json:
            print(json.dumps(summary.to_dict(), indent=2))
            return 0

        print(f"Today ({now.date().isoformat()}): P{summary.daily_total:,.2f}")
        print(f"Month ({month}): P{summary.monthly_total:,.2f}")
        if summary.trend:
            print("Trend:")
            for bucket in summary.trend:
                print(f"  {bucket.date}  P{bucket.amount:,.2f}")
        return 0

    except TopupShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_watch(args: argparse.Namespace) -> int:
    """Poll orders like the dashboard does and print each refresh."""
    from .poller import DashboardPoller, DashboardSnapshot

    def show(snapshot: DashboardSnapshot) -> None:
        pending = sum(1 for o in snapshot.orders if o.status is OrderStatus.PENDING)
        sales = snapshot.sales
        print(
            f"[{snapshot.refreshed_at:%H:%M:%S}] {len(snapshot.orders)} order(s), "
            f"{pending} pending, today P{sales.daily_total:,.2f}, "
            f"month P{sales.monthly_total:,.2f}"
        )

    interval = args.interval or get_config().poll_interval_seconds
    poller = DashboardPoller(get_repository(), interval=interval, selected_month=args.month, on_refresh=show)
    poller.start()
    try:
        while poller.running:
            poller.wait(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        poller.stop()
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        config = get_config()
        print("Starting topupshop API server...")
        print(f"Data directory: {config.data_dir}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "topupshop.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # Single worker: the KV file is the only source of truth
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="topupshop",
        description="Storefront backend and operator tools for digital top-ups",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Inspect and manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status", choices=[s.value for s in OrderStatus], help="Only show this status"
    )
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show_parser = orders_subparsers.add_parser("show", help="Show one order")
    orders_show_parser.add_argument("order_id", help="Order ID")

    set_status_parser = orders_subparsers.add_parser("set-status", help="Change an order's status")
    set_status_parser.add_argument("order_id", help="Order ID")
    set_status_parser.add_argument("status", choices=[s.value for s in OrderStatus])
    set_status_parser.add_argument("--note", "-n", help="Note for the customer")

    clear_parser = orders_subparsers.add_parser("clear", help="Delete ALL orders")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    # watch
    watch_parser = subparsers.add_parser("watch", help="Poll orders and print dashboard totals")
    watch_parser.add_argument(
        "--interval", "-i", type=float, help="Seconds between refreshes (default: from config)"
    )
    watch_parser.add_argument("--month", "-m", help="Month to total, YYYY-MM (default: current)")

    # sales
    sales_parser = subparsers.add_parser("sales", help="Show sales totals")
    sales_parser.add_argument("--month", "-m", help="Month to total, YYYY-MM (default: current)")
    sales_parser.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        if not getattr(args, "orders_command", None):
            parser.parse_args(["orders", "--help"])
            return 0
        orders_commands = {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "set-status": cmd_orders_set_status,
            "clear": cmd_orders_clear,
        }
        return orders_commands[args.orders_command](args)

    commands = {
        "serve": cmd_serve,
        "sales": cmd_sales,
        "watch": cmd_watch,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
