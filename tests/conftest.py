"""Pytest fixtures for topupshop tests."""

import tempfile
from pathlib import Path
from typing import Any

import pytest

from topupshop.asset_store import AssetStore
from topupshop.kv_store import KeyValueStore
from topupshop.models import Order, OrderItem
from topupshop.order_repository import OrderRepository

API_TOKEN = "test-token"
SIGNING_SECRET = "test-secret"
BASE_URL = "http://shop.test"

# Smallest valid PNG header; the store never decodes images.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def kv(temp_dir):
    return KeyValueStore(temp_dir / "kv.json")


@pytest.fixture
def repository(kv):
    return OrderRepository(kv)


@pytest.fixture
def asset_store(temp_dir):
    return AssetStore(temp_dir / "assets", base_url=BASE_URL, signing_secret=SIGNING_SECRET)


def item_data(**overrides: Any) -> dict[str, Any]:
    """Wire form of an order item for a game that needs player ID and server."""
    data = {
        "gameId": "hoyo",
        "gameName": "Genshin Impact",
        "playerId": "800123456",
        "server": "Asia",
        "productId": "60gc",
        "productName": "60 Genesis Crystals",
        "price": 50,
        "quantity": 1,
    }
    data.update(overrides)
    return data


def make_item(**overrides: Any) -> OrderItem:
    return OrderItem.from_dict(item_data(**overrides))


def order_data(items: list[dict[str, Any]] | None = None, **overrides: Any) -> dict[str, Any]:
    """Wire form of a pending order whose total matches its items."""
    items = items if items is not None else [item_data()]
    data = {
        "id": "ORD-00000001",
        "items": items,
        "totalAmount": sum(i["price"] * i["quantity"] for i in items),
        "receiptAssetId": "private/1700000000000-receipt.png",
        "customerPaymentName": "GCash",
        "orderMethod": "messenger",
    }
    data.update(overrides)
    return data


def make_order(**overrides: Any) -> Order:
    return Order.from_dict(order_data(**overrides))
