"""Data models for the Ekami Auto backend."""

from .comment import Comment, CommentNode, CommentStatus
from .loyalty import LoyaltyMember, LoyaltyTier, LoyaltyTransaction, TierDefinition
from .notification import EmailMessage, NotificationResult
from .repair import (
    IntakeForm,
    IntakeStep,
    RepairRequest,
    RepairStatus,
    ServicePackage,
)
from .review import Review, ReviewStatus
from .user import Identity
from .valuation import ValuationRequest, ValueEstimate

__all__ = [
    "IntakeForm",
    "IntakeStep",
    "RepairRequest",
    "RepairStatus",
    "ServicePackage",
    "Comment",
    "CommentNode",
    "CommentStatus",
    "LoyaltyMember",
    "LoyaltyTier",
    "LoyaltyTransaction",
    "TierDefinition",
    "Review",
    "ReviewStatus",
    "EmailMessage",
    "NotificationResult",
    "Identity",
    "ValuationRequest",
    "ValueEstimate",
]
