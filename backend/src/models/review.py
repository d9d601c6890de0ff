"""Vehicle review data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewSubmission(BaseModel):
    """Request body for reviewing a car.

    A rating of 0 means "not selected yet" and is rejected by the service
    with a user-facing message rather than by schema validation.
    """

    rating: int = Field(..., ge=0, le=5)
    comment: str = Field(default="", max_length=2000)
    booking_id: str | None = None
    car_name: str | None = Field(None, max_length=200, description="Shown in the admin alert")


class Review(BaseModel):
    """Stored review (reviews table, keyed by car_id + review_id)."""

    car_id: str
    review_id: str
    user_id: str
    user_name: str
    booking_id: str | None = None
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    status: ReviewStatus = ReviewStatus.PENDING
    admin_response: str | None = None
    created_at: str

    model_config = ConfigDict(use_enum_values=True)


class ReviewModeration(BaseModel):
    status: ReviewStatus


class ReviewResponse(BaseModel):
    admin_response: str = Field(..., min_length=1, max_length=2000)
