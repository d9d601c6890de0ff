"""Customer reviews of cars, moderated before they are shown."""

import logging
from datetime import UTC, datetime

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from ulid import ULID

from models.review import Review, ReviewStatus, ReviewSubmission
from models.user import Identity
from services.auth_service import AuthenticationError
from utils.dynamodb_utils import (
    PersistenceError,
    model_to_item,
    parse_from_dynamodb,
    parse_items_from_dynamodb,
    query_all,
    scan_all,
)

logger = logging.getLogger(__name__)

RATING_REQUIRED = "Please select a rating"
SIGN_IN_REQUIRED = "You must be logged in to submit a review"


def summarize_ratings(reviews: list[Review]) -> dict:
    """Average rating (one decimal) and count of the given reviews."""
    if not reviews:
        return {"average_rating": None, "review_count": 0}
    average = sum(r.rating for r in reviews) / len(reviews)
    return {"average_rating": round(average, 1), "review_count": len(reviews)}


class ReviewService:
    """Service for car reviews."""

    def __init__(self, table, notifier=None):
        """Initialize the review service.

        Args:
            table: DynamoDB table for reviews (hash car_id, range review_id)
            notifier: Optional EmailService for new review alerts
        """
        self.table = table
        self.notifier = notifier

    def submit_review(
        self, identity: Identity | None, car_id: str, submission: ReviewSubmission
    ) -> Review:
        """Store a review as pending and alert the admins.

        Raises:
            AuthenticationError: If nobody is signed in
            ValueError: If no rating was selected
        """
        if submission.rating == 0:
            raise ValueError(RATING_REQUIRED)
        if identity is None:
            raise AuthenticationError(SIGN_IN_REQUIRED)

        review = Review(
            car_id=car_id,
            review_id=str(ULID()),
            user_id=identity.user_id,
            user_name=identity.display_name or identity.email or "Anonymous",
            booking_id=submission.booking_id,
            rating=submission.rating,
            comment=submission.comment.strip(),
            status=ReviewStatus.PENDING,
            created_at=datetime.now(UTC).isoformat(),
        )

        try:
            self.table.put_item(Item=model_to_item(review))
        except ClientError as e:
            logger.error("Failed to submit review for car %s: %s", car_id, e)
            raise PersistenceError(f"Failed to submit review: {e}")

        if self.notifier is not None:
            car_name = submission.car_name or car_id
            self.notifier.notify(self.notifier.review_email(review, car_name))
        return review

    def list_approved_reviews(self, car_id: str) -> list[Review]:
        """Published reviews of a car, newest first."""
        try:
            items = query_all(self.table, KeyConditionExpression=Key("car_id").eq(car_id))
        except ClientError as e:
            raise PersistenceError(f"Failed to list reviews: {e}")

        reviews = [Review(**item) for item in parse_items_from_dynamodb(items)]
        reviews = [r for r in reviews if r.status == ReviewStatus.APPROVED.value]
        reviews.sort(key=lambda r: r.created_at, reverse=True)
        return reviews

    def list_reviews(self, status: ReviewStatus | None = None) -> list[Review]:
        """All reviews for the moderation queue, newest first."""
        try:
            items = scan_all(self.table)
        except ClientError as e:
            raise PersistenceError(f"Failed to list reviews: {e}")

        reviews = [Review(**item) for item in parse_items_from_dynamodb(items)]
        if status:
            reviews = [r for r in reviews if r.status == ReviewStatus(status).value]
        reviews.sort(key=lambda r: r.created_at, reverse=True)
        return reviews

    def moderate(
        self, car_id: str, review_id: str, status: ReviewStatus
    ) -> Review | None:
        return self._update(
            car_id,
            review_id,
            UpdateExpression="SET #s = :s",
            ExpressionAttributeNames={"#s": "status"},
            ExpressionAttributeValues={":s": ReviewStatus(status).value},
        )

    def respond(self, car_id: str, review_id: str, response: str) -> Review | None:
        return self._update(
            car_id,
            review_id,
            UpdateExpression="SET admin_response = :r",
            ExpressionAttributeValues={":r": response.strip()},
        )

    def delete_review(self, car_id: str, review_id: str) -> bool:
        try:
            self.table.delete_item(
                Key={"car_id": car_id, "review_id": review_id},
                ConditionExpression="attribute_exists(review_id)",
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise PersistenceError(f"Failed to delete review: {e}")

    def _update(self, car_id: str, review_id: str, **kwargs) -> Review | None:
        try:
            response = self.table.update_item(
                Key={"car_id": car_id, "review_id": review_id},
                ConditionExpression="attribute_exists(review_id)",
                ReturnValues="ALL_NEW",
                **kwargs,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise PersistenceError(f"Failed to update review: {e}")
        return Review(**parse_from_dynamodb(response["Attributes"]))
