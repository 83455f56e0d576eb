"""Tests for the catalog, payment and settings stores."""

import pytest

from topupshop.config_store import CatalogStore, PaymentStore, SettingsStore
from topupshop.errors import ValidationError
from topupshop.models import Game, OrderMethod, Payment, Product, SiteSettings


class TestCatalogStore:
    def test_empty_catalog(self, kv):
        assert CatalogStore(kv).load() == []

    def test_save_replaces_whole_catalog(self, kv):
        store = CatalogStore(kv)
        store.save([Game(id="hoyo", name="Genshin", image="g.png"), Game(id="codm", name="CODM", image="c.png")])
        store.save([Game(id="hoyo", name="Genshin Impact", image="g.png")])

        games = store.load()
        assert [g.name for g in games] == ["Genshin Impact"]

    def test_products_and_badges_survive(self, kv):
        store = CatalogStore(kv)
        product = Product(id="wm", name="Welkin Moon", price=249, badges={"welkinMoon": True})
        store.save([Game(id="hoyo", name="Genshin", image="g.png", products=[product], server_label="ASIA")])

        game = store.find_game("hoyo")
        assert game.server_label == "ASIA"
        assert game.products[0].badges == {"welkinMoon": True}
        assert store.find_game("missing") is None

    def test_invalid_game_rejected(self):
        with pytest.raises(ValidationError, match="gridSpan"):
            Game.from_dict({"id": "x", "name": "X", "gridSpan": "huge"})


class TestPaymentStore:
    def test_round_trip(self, kv):
        store = PaymentStore(kv)
        store.save([Payment(id="gcash", name="GCash", account_number="0917", qr_code="q.png")])
        assert kv.get("payments") == [
            {"id": "gcash", "name": "GCash", "qrCode": "q.png", "accountNumber": "0917"}
        ]
        assert store.load()[0].account_number == "0917"


class TestSettingsStore:
    def test_defaults_when_unset(self, kv):
        settings = SettingsStore(kv).load()
        assert settings.order_method is OrderMethod.MESSENGER
        assert settings.banners == []

    def test_save_and_load(self, kv):
        store = SettingsStore(kv)
        store.save(SiteSettings(order_method=OrderMethod.PLACE_ORDER, banners=["http://b/1.png"]))
        assert kv.get("site_settings") == {"orderMethod": "place_order", "banners": ["http://b/1.png"]}
        assert store.load().order_method is OrderMethod.PLACE_ORDER

    def test_bad_order_method_rejected(self):
        with pytest.raises(ValidationError):
            SiteSettings.from_dict({"orderMethod": "carrier-pigeon"})
