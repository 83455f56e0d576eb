"""Tests for per-game order rules."""

import pytest

from topupshop.errors import ValidationError
from topupshop.game_rules import (
    DEFAULT_RULES,
    OrderDraft,
    PlayerIdRules,
    ProductOnlyRules,
    RedeemOrPlayerIdRules,
    rules_for,
    validate_items,
)

from conftest import make_item


class TestLookup:
    @pytest.mark.parametrize("game_id", ["ml-ph", "ml-global", "ml-indo", "hok", "pubgm", "valorant"])
    def test_player_id_games(self, game_id):
        assert isinstance(rules_for(game_id), PlayerIdRules)

    def test_crossfire_needs_product_only(self):
        assert isinstance(rules_for("crossfire"), ProductOnlyRules)

    def test_codm(self):
        assert isinstance(rules_for("codm"), RedeemOrPlayerIdRules)

    def test_load_category(self):
        assert isinstance(rules_for("smart-load", category="Load"), PlayerIdRules)

    def test_unknown_game_uses_default(self):
        assert rules_for("hoyo") is DEFAULT_RULES
        assert DEFAULT_RULES.required_fields() == ["productId", "playerId", "server"]


class TestValidate:
    def test_default_requires_server(self):
        assert not DEFAULT_RULES.validate(OrderDraft(product_id="p", player_id="1"))
        assert DEFAULT_RULES.validate(OrderDraft(product_id="p", player_id="1", server="Asia"))

    def test_whitespace_counts_as_missing(self):
        assert not rules_for("ml-ph").validate(OrderDraft(product_id="p", player_id="   "))

    def test_codm_redeem_code_needs_no_player(self):
        assert rules_for("codm").validate(OrderDraft(product_id="shells"))

    def test_product_always_required(self):
        assert not rules_for("crossfire").validate(OrderDraft(product_id=None))

    def test_single_purchase_products_force_quantity_one(self):
        rules = rules_for("ml-ph")
        assert rules.validate(OrderDraft(product_id="twilightpass", player_id="1"))
        assert not rules.validate(OrderDraft(product_id="twilightpass", player_id="1", quantity=2))
        assert rules.validate(OrderDraft(product_id="86dm", player_id="1", quantity=2))


class TestValidateItems:
    def test_valid_items_pass(self):
        validate_items([make_item(), make_item(gameId="crossfire", playerId="", server="")])

    def test_names_the_failing_item(self):
        items = [make_item(), make_item(gameId="ml-ph", playerId="")]
        with pytest.raises(ValidationError, match=r"items\[1\].*playerId"):
            validate_items(items)

    def test_quantity_rule(self):
        item = make_item(gameId="ml-ph", productId="weeklyelite", quantity=3)
        with pytest.raises(ValidationError, match="quantity 1"):
            validate_items([item])
