"""Tests for the loyalty program service and tier arithmetic."""

from decimal import Decimal
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from models.loyalty import LoyaltyTier
from models.user import Identity
from services.loyalty_service import (
    LoyaltyService,
    apply_tier_discount,
    derive_tier,
    next_tier,
    points_for_purchase,
    tier_progress,
)
from utils.dynamodb_utils import PersistenceError, model_to_item


def _table():
    table = Mock()
    table.put_item.return_value = {}
    table.get_item.return_value = {}
    table.query.return_value = {"Items": []}
    table.scan.return_value = {"Items": []}
    table.update_item.return_value = {"Attributes": {}}
    return table


@pytest.fixture
def tables(tiers):
    tiers_table = _table()
    tiers_table.scan.return_value = {"Items": [model_to_item(t) for t in tiers]}
    rewards_table = _table()
    rewards_table.scan.return_value = {
        "Items": [
            {
                "reward_id": "wash",
                "name": "Free Car Wash",
                "points_required": Decimal(500),
                "display_order": Decimal(1),
            },
            {
                "reward_id": "vip",
                "name": "VIP Detailing",
                "points_required": Decimal(200),
                "min_tier": "gold",
                "display_order": Decimal(2),
            },
            {
                "reward_id": "retired",
                "name": "Old Reward",
                "points_required": Decimal(10),
                "available": False,
            },
        ]
    }
    return {
        "members": _table(),
        "transactions": _table(),
        "tiers": tiers_table,
        "rewards": rewards_table,
        "redemptions": _table(),
    }


@pytest.fixture
def service(tables):
    return LoyaltyService(
        tables["members"],
        tables["transactions"],
        tiers_table=tables["tiers"],
        rewards_table=tables["rewards"],
        redemptions_table=tables["redemptions"],
    )


class TestTierArithmetic:
    """Tests for the module-level tier helpers."""

    def test_next_tier(self, make_member, tiers):
        assert next_tier(make_member(tier="bronze"), tiers).tier_name == "silver"
        assert next_tier(make_member(tier="gold"), tiers).tier_name == "platinum"
        assert next_tier(make_member(tier="platinum"), tiers) is None

    def test_progress_interpolates(self, make_member, tiers):
        member = make_member(available_points=500, lifetime_points=500)
        assert tier_progress(member, tiers) == pytest.approx(50.0)

    def test_progress_clamped(self, make_member, tiers):
        # Stored tier lags behind lifetime points
        member = make_member(available_points=0, lifetime_points=3000, tier="bronze")
        assert tier_progress(member, tiers) == 100.0

    def test_progress_at_top_tier(self, make_member, tiers):
        member = make_member(lifetime_points=20000, tier="platinum")
        assert tier_progress(member, tiers) == 100.0

    @pytest.mark.parametrize(
        "lifetime,expected",
        [
            (0, LoyaltyTier.BRONZE),
            (999, LoyaltyTier.BRONZE),
            (1000, LoyaltyTier.SILVER),
            (5000, LoyaltyTier.GOLD),
            (50000, LoyaltyTier.PLATINUM),
        ],
    )
    def test_derive_tier(self, tiers, lifetime, expected):
        assert derive_tier(lifetime, tiers) == expected

    def test_discount(self, make_member, tiers):
        assert apply_tier_discount(10000, make_member(tier="bronze"), tiers) == 10000
        assert apply_tier_discount(10000, make_member(tier="gold"), tiers) == 9000

    def test_points_for_purchase(self, make_member, tiers):
        assert points_for_purchase(25_500, make_member(tier="bronze"), tiers) == 25
        assert points_for_purchase(10_000, make_member(tier="platinum"), tiers) == 20
        assert points_for_purchase(-5, make_member(), tiers) == 0

    def test_tier_ordering(self):
        assert LoyaltyTier.GOLD.at_least(LoyaltyTier.SILVER)
        assert LoyaltyTier.GOLD.at_least("gold")
        assert not LoyaltyTier.BRONZE.at_least(LoyaltyTier.SILVER)


class TestEnrollment:
    """Tests for get_or_enroll."""

    def test_existing_member(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {"Item": model_to_item(make_member())}

        member, is_new = service.get_or_enroll(identity)

        assert not is_new
        assert member.user_id == "user_123"
        tables["members"].put_item.assert_not_called()

    def test_new_member_gets_welcome_bonus(self, service, tables, identity):
        member, is_new = service.get_or_enroll(identity)

        assert is_new
        assert member.available_points == 100
        assert member.lifetime_points == 100
        assert member.tier == "bronze"
        assert (
            tables["members"].put_item.call_args.kwargs["ConditionExpression"]
            == "attribute_not_exists(user_id)"
        )

        ledger = tables["transactions"].put_item.call_args.kwargs["Item"]
        assert ledger["type"] == "earn"
        assert ledger["source"] == "bonus"
        assert ledger["points"] == 100
        assert ledger["description"] == "Welcome bonus"

    def test_missing_email_uses_placeholder(self, service):
        member, _ = service.get_or_enroll(Identity(user_id="u2"))
        assert member.email == "no-email@example.com"

    def test_summary(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {
            "Item": model_to_item(make_member(available_points=200, lifetime_points=250))
        }
        summary = service.get_summary(identity)

        assert not summary.is_new_member
        assert summary.next_tier.tier_name == "silver"
        assert summary.tier_progress == 25.0


class TestRewards:
    """Tests for the reward catalogue and redemption."""

    def test_list_rewards_hides_unavailable(self, service):
        assert [r.reward_id for r in service.list_rewards()] == ["wash", "vip"]

    def test_redeem(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {
            "Item": model_to_item(make_member(available_points=800, lifetime_points=900))
        }
        tables["members"].update_item.return_value = {
            "Attributes": {"user_id": "user_123", "available_points": Decimal(300)}
        }

        redemption = service.redeem_reward(identity, "wash")

        assert redemption.points_used == 500
        assert redemption.redemption_code.startswith("EK-")
        assert redemption.status == "pending"

        update = tables["members"].update_item.call_args.kwargs
        assert update["ConditionExpression"] == "available_points >= :cost"
        assert update["ExpressionAttributeValues"][":cost"] == 500
        tables["redemptions"].put_item.assert_called_once()

        ledger = tables["transactions"].put_item.call_args.kwargs["Item"]
        assert ledger["points"] == -500
        assert ledger["balance_after"] == 300
        assert ledger["description"] == "Redeemed: Free Car Wash"

    def test_redeem_not_enough_points(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {"Item": model_to_item(make_member())}

        with pytest.raises(ValueError, match="Not enough points!"):
            service.redeem_reward(identity, "wash")
        tables["members"].update_item.assert_not_called()

    def test_redeem_tier_too_low(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {
            "Item": model_to_item(make_member(available_points=900, lifetime_points=900))
        }

        with pytest.raises(ValueError, match="requires gold tier or higher"):
            service.redeem_reward(identity, "vip")

    def test_redeem_race_lost(self, service, tables, make_member, identity):
        tables["members"].get_item.return_value = {
            "Item": model_to_item(make_member(available_points=800, lifetime_points=900))
        }
        tables["members"].update_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "no"}},
            "UpdateItem",
        )

        with pytest.raises(ValueError, match="Not enough points!"):
            service.redeem_reward(identity, "wash")
        tables["redemptions"].put_item.assert_not_called()

    def test_redeem_refunds_points_when_redemption_not_stored(
        self, service, tables, make_member, identity
    ):
        tables["members"].get_item.return_value = {
            "Item": model_to_item(make_member(available_points=800, lifetime_points=900))
        }
        tables["members"].update_item.return_value = {
            "Attributes": {"user_id": "user_123", "available_points": Decimal(300)}
        }
        tables["redemptions"].put_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "DB error"}},
            "PutItem",
        )

        with pytest.raises(PersistenceError, match="Failed to store redemption"):
            service.redeem_reward(identity, "wash")

        deduct, refund = tables["members"].update_item.call_args_list
        assert "available_points - :cost" in deduct.kwargs["UpdateExpression"]
        assert "ADD available_points :points" in refund.kwargs["UpdateExpression"]
        assert refund.kwargs["ExpressionAttributeValues"][":points"] == 500
        assert refund.kwargs["Key"] == {"user_id": "user_123"}
        tables["transactions"].put_item.assert_not_called()

    def test_redeem_unknown_reward(self, service, identity):
        with pytest.raises(ValueError, match="not found"):
            service.redeem_reward(identity, "nope")


class TestAdjustPoints:
    """Tests for admin adjustments."""

    def test_add_points(self, service, tables, make_member):
        tables["members"].get_item.return_value = {"Item": model_to_item(make_member())}

        member = service.adjust_points("user_123", 50, "Goodwill", admin_id="admin_1")

        assert member.available_points == 150
        assert member.lifetime_points == 150
        ledger = tables["transactions"].put_item.call_args.kwargs["Item"]
        assert ledger["source"] == "adjust"
        assert ledger["created_by"] == "admin_1"

    def test_deduction_clamps_at_zero(self, service, tables, make_member):
        tables["members"].get_item.return_value = {"Item": model_to_item(make_member())}

        member = service.adjust_points("user_123", -500, "Correction")

        assert member.available_points == 0
        assert member.lifetime_points == 100
        ledger = tables["transactions"].put_item.call_args.kwargs["Item"]
        assert ledger["points"] == -100
        assert ledger["type"] == "redeem"

    def test_unknown_member(self, service):
        assert service.adjust_points("ghost", 10, "x") is None

    def test_zero_rejected(self, service, tables, make_member):
        tables["members"].get_item.return_value = {"Item": model_to_item(make_member())}
        with pytest.raises(ValueError):
            service.adjust_points("user_123", 0, "x")


class TestStats:
    """Tests for program_stats."""

    def test_totals(self, service, tables, make_member):
        tables["members"].scan.return_value = {
            "Items": [
                model_to_item(make_member(user_id="a", available_points=100, lifetime_points=300)),
                model_to_item(
                    make_member(
                        user_id="b", available_points=0, lifetime_points=6000, tier="gold"
                    )
                ),
            ]
        }
        stats = service.program_stats()

        assert stats["total_members"] == 2
        assert stats["total_points_issued"] == 6300
        assert stats["total_points_redeemed"] == 6200
        assert stats["tier_distribution"]["gold"] == 1
        assert stats["tier_distribution"]["platinum"] == 0

    def test_ledger_failure_does_not_raise(self, service, tables, identity):
        tables["transactions"].put_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "DB error"}},
            "PutItem",
        )
        member, is_new = service.get_or_enroll(identity)
        assert is_new
