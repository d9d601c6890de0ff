"""Tests for car reviews."""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from models.review import ReviewStatus, ReviewSubmission
from services.auth_service import AuthenticationError
from services.review_service import (
    RATING_REQUIRED,
    SIGN_IN_REQUIRED,
    ReviewService,
    summarize_ratings,
)
from utils.dynamodb_utils import PersistenceError


@pytest.fixture
def mock_table():
    """Create a mock DynamoDB table."""
    table = Mock()
    table.put_item.return_value = {}
    table.query.return_value = {"Items": []}
    table.scan.return_value = {"Items": []}
    table.delete_item.return_value = {}
    return table


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def service(mock_table, notifier):
    return ReviewService(mock_table, notifier=notifier)


def _item(review_id, rating, status="approved", created_at="2026-01-01T00:00:00+00:00"):
    return {
        "car_id": "car-1",
        "review_id": review_id,
        "user_id": "u1",
        "user_name": "Awa",
        "rating": rating,
        "comment": "ok",
        "status": status,
        "created_at": created_at,
    }


class TestSubmitReview:
    """Tests for submit_review."""

    def test_stored_pending_and_alerted(self, service, mock_table, notifier, identity):
        review = service.submit_review(
            identity,
            "car-1",
            ReviewSubmission(rating=5, comment="  Great car  ", car_name="Toyota Prado"),
        )

        assert review.status == "pending"
        assert review.comment == "Great car"
        assert review.user_name == "Jean Mbarga"
        item = mock_table.put_item.call_args.kwargs["Item"]
        assert item["status"] == "pending"
        assert item["rating"] == 5
        notifier.review_email.assert_called_once_with(review, "Toyota Prado")
        notifier.notify.assert_called_once()

    def test_car_id_used_when_no_name(self, service, notifier, identity):
        review = service.submit_review(identity, "car-1", ReviewSubmission(rating=3))
        notifier.review_email.assert_called_once_with(review, "car-1")

    def test_rating_required(self, service, mock_table, identity):
        with pytest.raises(ValueError, match=RATING_REQUIRED):
            service.submit_review(identity, "car-1", ReviewSubmission(rating=0))
        mock_table.put_item.assert_not_called()

    def test_sign_in_required(self, service, mock_table):
        with pytest.raises(AuthenticationError, match=SIGN_IN_REQUIRED):
            service.submit_review(None, "car-1", ReviewSubmission(rating=4))
        mock_table.put_item.assert_not_called()

    def test_storage_error(self, service, mock_table, notifier, identity):
        mock_table.put_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "DB error"}},
            "PutItem",
        )
        with pytest.raises(PersistenceError, match="Failed to submit review"):
            service.submit_review(identity, "car-1", ReviewSubmission(rating=4))
        notifier.notify.assert_not_called()


class TestListing:
    """Tests for public listing and the moderation queue."""

    def test_only_approved_newest_first(self, service, mock_table):
        mock_table.query.return_value = {
            "Items": [
                _item("r1", 4, created_at="2026-01-01T00:00:00+00:00"),
                _item("r2", 2, status="pending"),
                _item("r3", 5, created_at="2026-03-01T00:00:00+00:00"),
            ]
        }
        reviews = service.list_approved_reviews("car-1")
        assert [r.review_id for r in reviews] == ["r3", "r1"]

    def test_summarize_ratings(self, service, mock_table):
        mock_table.query.return_value = {"Items": [_item("r1", 4), _item("r2", 5)]}
        reviews = service.list_approved_reviews("car-1")
        assert summarize_ratings(reviews) == {"average_rating": 4.5, "review_count": 2}

    def test_summarize_ratings_empty(self):
        assert summarize_ratings([]) == {"average_rating": None, "review_count": 0}

    def test_moderation_queue_filter(self, service, mock_table):
        mock_table.scan.return_value = {
            "Items": [_item("r1", 4), _item("r2", 2, status="pending")]
        }
        pending = service.list_reviews(ReviewStatus.PENDING)
        assert [r.review_id for r in pending] == ["r2"]


class TestModeration:
    """Tests for admin actions."""

    def test_approve(self, service, mock_table):
        mock_table.update_item.return_value = {"Attributes": _item("r1", 4)}
        review = service.moderate("car-1", "r1", ReviewStatus.APPROVED)

        assert review.status == "approved"
        kwargs = mock_table.update_item.call_args.kwargs
        assert kwargs["ExpressionAttributeValues"] == {":s": "approved"}

    def test_moderate_missing(self, service, mock_table):
        mock_table.update_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "no"}},
            "UpdateItem",
        )
        assert service.moderate("car-1", "nope", ReviewStatus.REJECTED) is None

    def test_respond(self, service, mock_table):
        mock_table.update_item.return_value = {
            "Attributes": {**_item("r1", 4), "admin_response": "Thank you!"}
        }
        review = service.respond("car-1", "r1", " Thank you! ")
        assert review.admin_response == "Thank you!"
        assert mock_table.update_item.call_args.kwargs["ExpressionAttributeValues"] == {
            ":r": "Thank you!"
        }

    def test_delete(self, service, mock_table):
        assert service.delete_review("car-1", "r1")

    def test_delete_missing(self, service, mock_table):
        mock_table.delete_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "no"}},
            "DeleteItem",
        )
        assert not service.delete_review("car-1", "nope")
