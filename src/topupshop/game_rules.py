"""Per-game rules for which account details an order needs."""

from dataclasses import dataclass

from .errors import ValidationError
from .models import OrderItem

# Products that can only be bought once per order line.
SINGLE_PURCHASE_PRODUCTS = {"twilightpass", "monthlyepic", "weeklyelite"}


@dataclass
class OrderDraft:
    """The account details entered for one product before it goes into the cart."""

    product_id: str | None
    player_id: str = ""
    server: str = ""
    ign: str = ""
    quantity: int = 1

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderDraft":
        return cls(
            product_id=item.product_id,
            player_id=item.player_id,
            server=item.server,
            ign=item.ign or "",
            quantity=item.quantity,
        )


class GameRules:
    """Base rules: a product, a player ID and a server are all required."""

    name = "player-id-and-server"
    fields: tuple[str, ...] = ("productId", "playerId", "server")

    def required_fields(self) -> list[str]:
        return list(self.fields)

    def missing_fields(self, draft: OrderDraft) -> list[str]:
        values = {
            "productId": draft.product_id or "",
            "playerId": draft.player_id,
            "server": draft.server,
        }
        return [f for f in self.fields if not values[f].strip()]

    def quantity_ok(self, draft: OrderDraft) -> bool:
        if draft.quantity < 1:
            return False
        if draft.product_id in SINGLE_PURCHASE_PRODUCTS:
            return draft.quantity == 1
        return True

    def validate(self, draft: OrderDraft) -> bool:
        return not self.missing_fields(draft) and self.quantity_ok(draft)


class PlayerIdRules(GameRules):
    """Games where the player ID alone identifies the account."""

    name = "player-id"
    fields = ("productId", "playerId")


class ProductOnlyRules(GameRules):
    """Games delivered as codes; no account details needed."""

    name = "product-only"
    fields = ("productId",)


class RedeemOrPlayerIdRules(ProductOnlyRules):
    """CODM: either a redeem code (product only) or a direct top-up by player ID."""

    name = "redeem-or-player-id"


DEFAULT_RULES = GameRules()

_RULES_BY_GAME: dict[str, GameRules] = {
    "codm": RedeemOrPlayerIdRules(),
    "crossfire": ProductOnlyRules(),
}
for _game_id in (
    "ml-ph", "ml-global", "ml-indo", "hok", "bloodstrike", "pubgm", "marvelrivals", "valorant",
):
    _RULES_BY_GAME[_game_id] = PlayerIdRules()

_RULES_BY_CATEGORY: dict[str, GameRules] = {
    "Load": PlayerIdRules(),
}


def rules_for(game_id: str, category: str | None = None) -> GameRules:
    """Look up the rules for a game, falling back to its category, then the default."""
    if game_id in _RULES_BY_GAME:
        return _RULES_BY_GAME[game_id]
    if category and category in _RULES_BY_CATEGORY:
        return _RULES_BY_CATEGORY[category]
    return DEFAULT_RULES


def validate_items(items: list[OrderItem]) -> None:
    """
    Check every item against its game's rules.

    Raises:
        ValidationError: Naming the first item that fails.
    """
    for i, item in enumerate(items):
        rules = rules_for(item.game_id, item.category)
        draft = OrderDraft.from_item(item)
        missing = rules.missing_fields(draft)
        if missing:
            raise ValidationError(
                f"{item.game_name} requires {', '.join(missing)}", f"items[{i}]"
            )
        if not rules.quantity_ok(draft):
            raise ValidationError(
                f"{item.product_name} must be bought with quantity 1", f"items[{i}].quantity"
            )
