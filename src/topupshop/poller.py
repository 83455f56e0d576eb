"""Periodic order refresh backing the operator dashboard."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from .errors import TopupShopError
from .log import get_logger
from .models import Order, SalesSummary
from .order_repository import OrderRepository, sorted_by_timestamp
from .sales import compute_sales

log = get_logger("poller")


@dataclass
class DashboardSnapshot:
    """Orders (newest first) and the sales rollup from the last good refresh."""

    orders: list[Order] = field(default_factory=list)
    sales: Optional[SalesSummary] = None
    refreshed_at: Optional[datetime] = None


class DashboardPoller:
    """
    Reloads all orders on a fixed interval and recomputes sales.

    One daemon thread per started poller. ``start`` on a running poller does
    nothing, ``stop`` cancels the wait and joins. Refreshes never overlap:
    a manual ``refresh_now`` waits for a running tick to finish.
    """

    def __init__(
        self,
        repository: OrderRepository,
        interval: float = 5.0,
        selected_month: Optional[str] = None,
        on_refresh: Optional[Callable[[DashboardSnapshot], None]] = None,
    ) -> None:
        self.repository = repository
        self.interval = interval
        self.selected_month = selected_month
        self._on_refresh = on_refresh

        self._snapshot = DashboardSnapshot()
        self._refresh_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Start polling. Returns False if the poller was already running."""
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name="DashboardPoller", daemon=True
            )
            self._thread.start()
        log.info("dashboard polling every {}s", self.interval)
        return True

    def stop(self, join: bool = True) -> None:
        """Cancel polling; safe to call when not running."""
        with self._state_lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if join and thread is not None and thread is not threading.current_thread():
            thread.join()
        log.info("dashboard polling stopped")

    def _run(self, stop_event: threading.Event) -> None:
        # First refresh is immediate, like a dashboard that loads on mount.
        while not stop_event.is_set():
            try:
                self.refresh_now()
            except Exception:
                log.exception("dashboard refresh failed")
            if stop_event.wait(self.interval):
                break

    def refresh_now(self) -> DashboardSnapshot:
        """Reload orders and recompute sales; keeps the previous snapshot on failure."""
        with self._refresh_lock:
            now = datetime.now(timezone.utc)
            try:
                orders = self.repository.list_all()
            except TopupShopError as e:
                log.error("failed to load orders: {}", e)
                return self.snapshot()

            month = self.selected_month or now.strftime("%Y-%m")
            today: date = now.date()
            snapshot = DashboardSnapshot(
                orders=sorted_by_timestamp(orders),
                sales=compute_sales(orders, today, month, now=now),
                refreshed_at=now,
            )
            with self._state_lock:
                self._snapshot = snapshot

        if self._on_refresh is not None:
            self._on_refresh(snapshot)
        return snapshot

    def wait(self, timeout: float) -> bool:
        """Block until stopped or timeout elapses; True if stopped."""
        return self._stop_event.wait(timeout)

    def snapshot(self) -> DashboardSnapshot:
        with self._state_lock:
            return self._snapshot
