"""Services for the Ekami Auto backend."""

from .auth_service import AuthenticationError, AuthService
from .comment_service import CommentService, CommentTree, build_comment_tree
from .email_service import EmailService, Notifier
from .intake_validation import ValidationResult, validate_form, validate_step
from .intake_wizard import IntakeFormStore, IntakeWizard, PhotoSet
from .loyalty_service import LoyaltyService
from .repair_request_service import (
    PersistenceError,
    RepairRequestService,
    SubmissionOutcome,
    SubmissionState,
)
from .review_service import ReviewService
from .valuation_service import ValuationService

__all__ = [
    "AuthService",
    "AuthenticationError",
    "CommentService",
    "CommentTree",
    "build_comment_tree",
    "EmailService",
    "Notifier",
    "ValidationResult",
    "validate_form",
    "validate_step",
    "IntakeFormStore",
    "IntakeWizard",
    "PhotoSet",
    "LoyaltyService",
    "PersistenceError",
    "RepairRequestService",
    "SubmissionOutcome",
    "SubmissionState",
    "ReviewService",
    "ValuationService",
]
