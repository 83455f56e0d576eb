"""Catalog, payment method and site settings storage."""

from .kv_store import KeyValueStore
from .log import get_logger
from .models import Game, Payment, SiteSettings

log = get_logger("config_store")

CATALOG_KEY = "catalog"
PAYMENTS_KEY = "payments"
SETTINGS_KEY = "site_settings"


class CatalogStore:
    """The list of games and their products, saved as one document."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def load(self) -> list[Game]:
        """Load the catalog; an empty list if nothing was saved yet."""
        data = self.kv.get(CATALOG_KEY) or []
        return [Game.from_dict(g, where=f"catalog[{i}]") for i, g in enumerate(data)]

    def save(self, games: list[Game]) -> None:
        """Replace the whole catalog."""
        self.kv.set(CATALOG_KEY, [g.to_dict() for g in games])
        log.info("saved catalog with {} game(s)", len(games))

    def find_game(self, game_id: str) -> Game | None:
        for game in self.load():
            if game.id == game_id:
                return game
        return None


class PaymentStore:
    """The payment channels offered at checkout, saved as one document."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def load(self) -> list[Payment]:
        data = self.kv.get(PAYMENTS_KEY) or []
        return [Payment.from_dict(p, where=f"payments[{i}]") for i, p in enumerate(data)]

    def save(self, payments: list[Payment]) -> None:
        """Replace all payment channels."""
        self.kv.set(PAYMENTS_KEY, [p.to_dict() for p in payments])
        log.info("saved {} payment method(s)", len(payments))


class SettingsStore:
    """Site-wide settings; defaults to messenger ordering and no banners."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def load(self) -> SiteSettings:
        data = self.kv.get(SETTINGS_KEY)
        if data is None:
            return SiteSettings()
        return SiteSettings.from_dict(data)

    def save(self, settings: SiteSettings) -> None:
        """Replace the settings document."""
        self.kv.set(SETTINGS_KEY, settings.to_dict())
        log.info("saved site settings (orderMethod={})", settings.order_method.value)
