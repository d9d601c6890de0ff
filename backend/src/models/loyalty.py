"""Loyalty program data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LoyaltyTier(str, Enum):
    """Membership tiers, lowest first."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def at_least(self, other: "LoyaltyTier") -> bool:
        """True if this tier is the same as or above ``other``."""
        return self.rank >= LoyaltyTier(other).rank


_TIER_ORDER = [
    LoyaltyTier.BRONZE,
    LoyaltyTier.SILVER,
    LoyaltyTier.GOLD,
    LoyaltyTier.PLATINUM,
]


class TransactionType(str, Enum):
    EARN = "earn"
    REDEEM = "redeem"


class TransactionSource(str, Enum):
    BONUS = "bonus"
    BOOKING = "booking"
    REDEMPTION = "redemption"
    ADJUST = "adjust"


class LoyaltyMember(BaseModel):
    """A customer's loyalty account (loyalty_members table, keyed by user_id)."""

    user_id: str
    email: str
    total_points: int = Field(default=0, ge=0)
    available_points: int = Field(default=0, ge=0)
    lifetime_points: int = Field(default=0, ge=0)
    tier: LoyaltyTier = LoyaltyTier.BRONZE
    total_bookings: int = 0
    total_spent: float = 0.0
    referrals_count: int = 0
    reviews_count: int = 0
    created_at: str
    updated_at: str

    model_config = ConfigDict(use_enum_values=True)

    @model_validator(mode="after")
    def available_within_lifetime(self) -> "LoyaltyMember":
        if self.available_points > self.lifetime_points:
            raise ValueError("available_points cannot exceed lifetime_points")
        return self


class TierDefinition(BaseModel):
    """Thresholds and benefits of one tier (loyalty_tiers table)."""

    tier_name: LoyaltyTier
    display_name: str
    points_required: int = Field(..., ge=0)
    points_multiplier: float = Field(default=1.0, gt=0)
    discount_percentage: float = Field(default=0.0, ge=0, le=100)
    perks: list[str] = Field(default_factory=list)
    display_order: int = 0


class LoyaltyTransaction(BaseModel):
    """One ledger line (loyalty_transactions table, keyed by user_id + transaction_id)."""

    user_id: str
    transaction_id: str
    type: TransactionType
    source: TransactionSource
    points: int
    description: str
    balance_after: int
    reference_type: str | None = None
    reference_id: str | None = None
    created_by: str | None = None
    created_at: str

    model_config = ConfigDict(use_enum_values=True)


class Reward(BaseModel):
    """A reward members can redeem points for (loyalty_rewards table)."""

    reward_id: str
    name: str
    description: str = ""
    points_required: int = Field(..., gt=0)
    reward_type: str = "discount"
    discount_percentage: float = Field(default=0.0, ge=0, le=100)
    min_tier: LoyaltyTier = LoyaltyTier.BRONZE
    featured: bool = False
    available: bool = True
    display_order: int = 0


class Redemption(BaseModel):
    """A redeemed reward awaiting use (loyalty_redemptions table)."""

    redemption_id: str
    user_id: str
    reward_id: str
    points_used: int
    status: str = "pending"
    redemption_code: str
    expires_at: str
    created_at: str


class PointsAdjustment(BaseModel):
    """Admin request body for a manual points correction."""

    points: int = Field(..., description="Positive to add, negative to deduct")
    description: str = Field(..., min_length=1, max_length=200)


class LoyaltySummary(BaseModel):
    """Response model for the member dashboard."""

    member: LoyaltyMember
    next_tier: TierDefinition | None = None
    tier_progress: float
    is_new_member: bool = False
