"""Loyalty program: membership, points ledger, tiers and rewards."""

import logging
import time
from datetime import UTC, datetime, timedelta

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from ulid import ULID

from models.loyalty import (
    LoyaltyMember,
    LoyaltySummary,
    LoyaltyTier,
    LoyaltyTransaction,
    Redemption,
    Reward,
    TierDefinition,
    TransactionSource,
    TransactionType,
)
from models.user import Identity
from utils.cache import cached_loyalty_catalog
from utils.constants import (
    POINTS_EARN_UNIT_XAF,
    RECENT_TRANSACTIONS_LIMIT,
    REDEMPTION_VALIDITY_DAYS,
    WELCOME_BONUS_POINTS,
)
from utils.dynamodb_utils import (
    PersistenceError,
    item_to_model,
    model_to_item,
    parse_from_dynamodb,
    parse_items_from_dynamodb,
    scan_all,
    table_name,
)

logger = logging.getLogger(__name__)

NO_EMAIL_PLACEHOLDER = "no-email@example.com"


# ============================================
# Tier arithmetic
# ============================================


def sort_tiers(tiers: list[TierDefinition]) -> list[TierDefinition]:
    return sorted(tiers, key=lambda t: (t.points_required, LoyaltyTier(t.tier_name).rank))


def tier_definition(
    tier: LoyaltyTier | str, tiers: list[TierDefinition]
) -> TierDefinition | None:
    tier = LoyaltyTier(tier)
    for definition in tiers:
        if LoyaltyTier(definition.tier_name) == tier:
            return definition
    return None


def next_tier(
    member: LoyaltyMember, tiers: list[TierDefinition]
) -> TierDefinition | None:
    """The tier above the member's stored tier, or None at the top."""
    current = LoyaltyTier(member.tier)
    for definition in sort_tiers(tiers):
        if LoyaltyTier(definition.tier_name).rank > current.rank:
            return definition
    return None


def tier_progress(member: LoyaltyMember, tiers: list[TierDefinition]) -> float:
    """Percent of the way from the current tier's threshold to the next one.

    Based on lifetime points, clamped to 0..100. Members at the top tier are
    always at 100.
    """
    upcoming = next_tier(member, tiers)
    if upcoming is None:
        return 100.0

    current = tier_definition(member.tier, tiers)
    floor = current.points_required if current else 0
    span = upcoming.points_required - floor
    if span <= 0:
        return 100.0
    progress = (member.lifetime_points - floor) / span * 100
    return min(max(progress, 0.0), 100.0)


def derive_tier(lifetime_points: int, tiers: list[TierDefinition]) -> LoyaltyTier:
    """Tier that ``lifetime_points`` would qualify for.

    Display only: a member's stored tier is not changed when points move.
    """
    earned = LoyaltyTier.BRONZE
    for definition in sort_tiers(tiers):
        if lifetime_points >= definition.points_required:
            earned = LoyaltyTier(definition.tier_name)
    return earned


def apply_tier_discount(
    amount: float, member: LoyaltyMember, tiers: list[TierDefinition]
) -> float:
    """Price after the member's tier discount."""
    definition = tier_definition(member.tier, tiers)
    if definition is None or not definition.discount_percentage:
        return amount
    return round(amount * (1 - definition.discount_percentage / 100), 2)


def points_for_purchase(
    amount: float, member: LoyaltyMember, tiers: list[TierDefinition]
) -> int:
    """Points earned for spending ``amount`` XAF at the member's tier multiplier."""
    if amount <= 0:
        return 0
    definition = tier_definition(member.tier, tiers)
    multiplier = definition.points_multiplier if definition else 1.0
    return int(amount // POINTS_EARN_UNIT_XAF * multiplier)


class LoyaltyService:
    """Service for loyalty members, their ledger and reward redemptions."""

    def __init__(
        self,
        members_table,
        transactions_table,
        tiers_table=None,
        rewards_table=None,
        redemptions_table=None,
    ):
        """Initialize the loyalty service.

        Args:
            members_table: DynamoDB table for members (hash user_id)
            transactions_table: DynamoDB table for the points ledger
                (hash user_id, range transaction_id)
            tiers_table: DynamoDB table of tier definitions
            rewards_table: DynamoDB table of redeemable rewards
            redemptions_table: DynamoDB table of redemptions
        """
        self.members_table = members_table
        self.transactions_table = transactions_table
        self.tiers_table = tiers_table
        self.rewards_table = rewards_table
        self.redemptions_table = redemptions_table

    @property
    def cache_scope(self) -> tuple:
        """Catalogue tables behind the cached tier and reward lists."""
        return (table_name(self.tiers_table), table_name(self.rewards_table))

    # ============================================
    # Catalogue
    # ============================================

    @cached_loyalty_catalog
    def list_tiers(self) -> list[TierDefinition]:
        if self.tiers_table is None:
            return []
        try:
            items = scan_all(self.tiers_table)
        except ClientError as e:
            raise PersistenceError(f"Failed to list loyalty tiers: {e}")
        tiers = [TierDefinition(**item) for item in parse_items_from_dynamodb(items)]
        tiers.sort(key=lambda t: t.display_order)
        return tiers

    @cached_loyalty_catalog
    def list_rewards(self) -> list[Reward]:
        """Rewards currently on offer, in display order."""
        if self.rewards_table is None:
            return []
        try:
            items = scan_all(self.rewards_table)
        except ClientError as e:
            raise PersistenceError(f"Failed to list loyalty rewards: {e}")
        rewards = [Reward(**item) for item in parse_items_from_dynamodb(items)]
        rewards = [r for r in rewards if r.available]
        rewards.sort(key=lambda r: r.display_order)
        return rewards

    def get_reward(self, reward_id: str) -> Reward | None:
        for reward in self.list_rewards():
            if reward.reward_id == reward_id:
                return reward
        return None

    # ============================================
    # Membership
    # ============================================

    def get_member(self, user_id: str) -> LoyaltyMember | None:
        try:
            response = self.members_table.get_item(Key={"user_id": user_id})
        except ClientError as e:
            raise PersistenceError(f"Failed to get loyalty member: {e}")
        item = response.get("Item")
        return item_to_model(item, LoyaltyMember) if item else None

    def get_or_enroll(self, identity: Identity) -> tuple[LoyaltyMember, bool]:
        """Fetch the caller's membership, creating it with a welcome bonus.

        Returns:
            (member, is_new_member)
        """
        member = self.get_member(identity.user_id)
        if member is not None:
            return member, False

        now = datetime.now(UTC).isoformat()
        member = LoyaltyMember(
            user_id=identity.user_id,
            email=identity.email or NO_EMAIL_PLACEHOLDER,
            total_points=WELCOME_BONUS_POINTS,
            available_points=WELCOME_BONUS_POINTS,
            lifetime_points=WELCOME_BONUS_POINTS,
            tier=LoyaltyTier.BRONZE,
            created_at=now,
            updated_at=now,
        )
        try:
            self.members_table.put_item(
                Item=model_to_item(member),
                ConditionExpression="attribute_not_exists(user_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                # Enrolled concurrently by another request
                return self.get_member(identity.user_id), False
            raise PersistenceError(f"Failed to enroll loyalty member: {e}")

        self._record_transaction(
            user_id=identity.user_id,
            type=TransactionType.EARN,
            source=TransactionSource.BONUS,
            points=WELCOME_BONUS_POINTS,
            description="Welcome bonus",
            balance_after=WELCOME_BONUS_POINTS,
        )
        logger.info("Enrolled %s in the loyalty program", identity.user_id)
        return member, True

    def get_summary(self, identity: Identity) -> LoyaltySummary:
        member, is_new = self.get_or_enroll(identity)
        tiers = self.list_tiers()
        return LoyaltySummary(
            member=member,
            next_tier=next_tier(member, tiers),
            tier_progress=round(tier_progress(member, tiers), 1),
            is_new_member=is_new,
        )

    def recent_transactions(
        self, user_id: str, limit: int = RECENT_TRANSACTIONS_LIMIT
    ) -> list[LoyaltyTransaction]:
        """Newest ledger lines first."""
        try:
            response = self.transactions_table.query(
                KeyConditionExpression=Key("user_id").eq(user_id),
                ScanIndexForward=False,
                Limit=limit,
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to get loyalty transactions: {e}")
        return [
            LoyaltyTransaction(**item)
            for item in parse_items_from_dynamodb(response.get("Items", []))
        ]

    # ============================================
    # Points movements
    # ============================================

    def redeem_reward(self, identity: Identity, reward_id: str) -> Redemption:
        """Spend available points on a reward.

        Raises:
            ValueError: If the reward is unknown, the member lacks points, or
                the member's tier is below the reward's minimum tier
        """
        reward = self.get_reward(reward_id)
        if reward is None:
            raise ValueError(f"Reward {reward_id} not found")

        member, _ = self.get_or_enroll(identity)
        if member.available_points < reward.points_required:
            raise ValueError("Not enough points!")
        if not LoyaltyTier(member.tier).at_least(reward.min_tier):
            raise ValueError(
                f"This reward requires {LoyaltyTier(reward.min_tier).value} tier or higher!"
            )

        now = datetime.now(UTC)
        try:
            response = self.members_table.update_item(
                Key={"user_id": member.user_id},
                UpdateExpression="SET available_points = available_points - :cost, updated_at = :u",
                ConditionExpression="available_points >= :cost",
                ExpressionAttributeValues={
                    ":cost": reward.points_required,
                    ":u": now.isoformat(),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ValueError("Not enough points!")
            raise PersistenceError(f"Failed to redeem reward: {e}")

        balance = parse_from_dynamodb(response["Attributes"])["available_points"]
        redemption = Redemption(
            redemption_id=str(ULID()),
            user_id=member.user_id,
            reward_id=reward.reward_id,
            points_used=reward.points_required,
            redemption_code=f"EK-{int(time.time() * 1000)}",
            expires_at=(now + timedelta(days=REDEMPTION_VALIDITY_DAYS)).isoformat(),
            created_at=now.isoformat(),
        )
        if self.redemptions_table is not None:
            try:
                self.redemptions_table.put_item(Item=model_to_item(redemption))
            except ClientError as e:
                logger.error(
                    "Redemption for %s not stored, refunding %s points: %s",
                    member.user_id,
                    reward.points_required,
                    e,
                )
                self._refund_points(member.user_id, reward.points_required)
                raise PersistenceError(f"Failed to store redemption: {e}")

        self._record_transaction(
            user_id=member.user_id,
            type=TransactionType.REDEEM,
            source=TransactionSource.REDEMPTION,
            points=-reward.points_required,
            description=f"Redeemed: {reward.name}",
            balance_after=balance,
            reference_type="redemption",
            reference_id=redemption.redemption_id,
        )
        return redemption

    def _refund_points(self, user_id: str, points: int) -> None:
        """Give back points deducted for a redemption that was never stored."""
        try:
            self.members_table.update_item(
                Key={"user_id": user_id},
                UpdateExpression="SET updated_at = :u ADD available_points :points",
                ExpressionAttributeValues={
                    ":points": points,
                    ":u": datetime.now(UTC).isoformat(),
                },
            )
        except ClientError as e:
            logger.error("Refund of %s points to %s failed: %s", points, user_id, e)

    def adjust_points(
        self, user_id: str, points: int, description: str, admin_id: str | None = None
    ) -> LoyaltyMember | None:
        """Manual correction by an admin.

        Positive amounts add to available and lifetime points; negative
        amounts only reduce available points, never below zero. The stored
        tier is left alone.

        Returns:
            The updated member, or None if the user is not enrolled
        """
        member = self.get_member(user_id)
        if member is None:
            return None
        if points == 0:
            raise ValueError("Points adjustment cannot be zero")

        available = max(0, member.available_points + points)
        applied = available - member.available_points
        lifetime = member.lifetime_points + (points if points > 0 else 0)

        member.available_points = available
        member.lifetime_points = lifetime
        member.updated_at = datetime.now(UTC).isoformat()
        try:
            self.members_table.update_item(
                Key={"user_id": user_id},
                UpdateExpression=(
                    "SET available_points = :a, lifetime_points = :l, updated_at = :u"
                ),
                ConditionExpression="attribute_exists(user_id)",
                ExpressionAttributeValues={
                    ":a": available,
                    ":l": lifetime,
                    ":u": member.updated_at,
                },
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to adjust points: {e}")

        self._record_transaction(
            user_id=user_id,
            type=TransactionType.EARN if points > 0 else TransactionType.REDEEM,
            source=TransactionSource.ADJUST,
            points=applied,
            description=description,
            balance_after=available,
            created_by=admin_id,
        )
        logger.info("Adjusted %s points for %s by %s", applied, user_id, admin_id)
        return member

    def program_stats(self) -> dict:
        """Totals for the admin loyalty dashboard."""
        try:
            items = scan_all(self.members_table)
        except ClientError as e:
            raise PersistenceError(f"Failed to load loyalty members: {e}")
        members = [LoyaltyMember(**item) for item in parse_items_from_dynamodb(items)]

        distribution = {tier.value: 0 for tier in LoyaltyTier}
        for member in members:
            distribution[LoyaltyTier(member.tier).value] += 1

        return {
            "total_members": len(members),
            "total_points_issued": sum(m.lifetime_points for m in members),
            "total_points_redeemed": sum(
                m.lifetime_points - m.available_points for m in members
            ),
            "tier_distribution": distribution,
        }

    def _record_transaction(self, user_id: str, **fields) -> LoyaltyTransaction:
        transaction = LoyaltyTransaction(
            user_id=user_id,
            transaction_id=str(ULID()),
            created_at=datetime.now(UTC).isoformat(),
            **fields,
        )
        try:
            self.transactions_table.put_item(Item=model_to_item(transaction))
        except ClientError as e:
            # The balance change already happened; the ledger line is lost
            logger.error("Failed to record loyalty transaction for %s: %s", user_id, e)
        return transaction
