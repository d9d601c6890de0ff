"""Integration tests for API endpoints against moto-backed DynamoDB tables."""

import os
from datetime import UTC, datetime, timedelta

import boto3
import pytest
from jose import jwt
from moto import mock_aws

from models.loyalty import Reward, TierDefinition
from models.repair import ServicePackage
from utils.dynamodb_utils import model_to_item

# Set environment variables before any app imports
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "eu-west-3"
os.environ["ADMIN_USER_IDS"] = "admin_user"
os.environ.pop("RESEND_API_KEY", None)

TABLES = {
    "REPAIR_REQUESTS_TABLE": "ekami-auto-repair-requests-test",
    "SERVICE_PACKAGES_TABLE": "ekami-auto-service-packages-test",
    "BLOG_COMMENTS_TABLE": "ekami-auto-blog-comments-test",
    "COMMENT_LIKES_TABLE": "ekami-auto-comment-likes-test",
    "LOYALTY_MEMBERS_TABLE": "ekami-auto-loyalty-members-test",
    "LOYALTY_TRANSACTIONS_TABLE": "ekami-auto-loyalty-transactions-test",
    "LOYALTY_TIERS_TABLE": "ekami-auto-loyalty-tiers-test",
    "LOYALTY_REWARDS_TABLE": "ekami-auto-loyalty-rewards-test",
    "LOYALTY_REDEMPTIONS_TABLE": "ekami-auto-loyalty-redemptions-test",
    "REVIEWS_TABLE": "ekami-auto-reviews-test",
}
os.environ.update(TABLES)

# Test JWT secret (must match the one in environment)
TEST_JWT_SECRET = os.environ["JWT_SECRET_KEY"]


def create_test_token(user_id: str = "test_user", **claims) -> str:
    """Create a valid JWT token for testing."""
    payload = {
        "sub": user_id,
        "type": "access",
        "iat": datetime.now(UTC),
        "exp": datetime.now(UTC) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth(user_id: str = "test_user", **claims) -> dict:
    return {"Authorization": f"Bearer {create_test_token(user_id, **claims)}"}


def _key(*names):
    schema = [{"AttributeName": names[0], "KeyType": "HASH"}]
    if len(names) > 1:
        schema.append({"AttributeName": names[1], "KeyType": "RANGE"})
    return schema


def _gsi(name, attribute):
    return {
        "IndexName": name,
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
    }


def _create(dynamodb, env_var, keys, extra_attributes=(), indexes=None):
    attributes = {name for name in keys} | set(extra_attributes)
    kwargs = {
        "TableName": TABLES[env_var],
        "KeySchema": _key(*keys),
        "AttributeDefinitions": [
            {"AttributeName": name, "AttributeType": "S"} for name in sorted(attributes)
        ],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexes:
        kwargs["GlobalSecondaryIndexes"] = indexes
    return dynamodb.create_table(**kwargs)


@pytest.fixture(scope="module")
def aws_mock():
    """Set up AWS mock for the entire module."""
    with mock_aws():
        yield


@pytest.fixture(scope="module")
def dynamodb_tables(aws_mock):
    """Create DynamoDB tables for testing."""
    dynamodb = boto3.resource("dynamodb", region_name="eu-west-3")

    tables = {
        "repair_requests": _create(
            dynamodb,
            "REPAIR_REQUESTS_TABLE",
            ["request_id"],
            ["user_id", "status"],
            [_gsi("UserIdIndex", "user_id"), _gsi("StatusIndex", "status")],
        ),
        "packages": _create(dynamodb, "SERVICE_PACKAGES_TABLE", ["package_id"]),
        "comments": _create(dynamodb, "BLOG_COMMENTS_TABLE", ["post_id", "comment_id"]),
        "likes": _create(
            dynamodb,
            "COMMENT_LIKES_TABLE",
            ["comment_id", "user_id"],
            indexes=[_gsi("UserIdIndex", "user_id")],
        ),
        "members": _create(dynamodb, "LOYALTY_MEMBERS_TABLE", ["user_id"]),
        "transactions": _create(
            dynamodb, "LOYALTY_TRANSACTIONS_TABLE", ["user_id", "transaction_id"]
        ),
        "tiers": _create(dynamodb, "LOYALTY_TIERS_TABLE", ["tier_name"]),
        "rewards": _create(dynamodb, "LOYALTY_REWARDS_TABLE", ["reward_id"]),
        "redemptions": _create(dynamodb, "LOYALTY_REDEMPTIONS_TABLE", ["redemption_id"]),
        "reviews": _create(dynamodb, "REVIEWS_TABLE", ["car_id", "review_id"]),
    }

    tables["packages"].put_item(
        Item=model_to_item(
            ServicePackage(package_id="oil-change", name="Oil Change", price=25000)
        )
    )
    for order, (tier, required) in enumerate(
        [("bronze", 0), ("silver", 1000), ("gold", 5000), ("platinum", 15000)], start=1
    ):
        tables["tiers"].put_item(
            Item=model_to_item(
                TierDefinition(
                    tier_name=tier,
                    display_name=tier.title(),
                    points_required=required,
                    display_order=order,
                )
            )
        )
    tables["rewards"].put_item(
        Item=model_to_item(
            Reward(reward_id="wash", name="Free Car Wash", points_required=60, display_order=1)
        )
    )

    yield tables


@pytest.fixture(scope="module")
def app_client(dynamodb_tables):
    """Create FastAPI test client after tables are set up."""
    # Import app after mock is active
    from fastapi.testclient import TestClient

    from handlers.api_handler import app, reset_services

    reset_services()
    yield TestClient(app)
    reset_services()


def _submission(key="01HZX3K8J5ABCDEFGHJKMNPQRS"):
    return {
        "form": {
            "service": {"service_package_ids": ["oil-change"]},
            "vehicle": {"make": "Toyota", "model": "Corolla", "year": 2018, "mileage": 85000},
            "problem": {"description": "Engine light on", "urgency_level": "high"},
            "appointment": {"date": "2026-06-01", "time": "10:00"},
            "contact": {"name": "Jean", "email": "jean@example.cm", "phone": "650000000"},
        },
        "idempotency_key": key,
    }


class TestRepairRequestFlow:
    """Submit, replay, read back and move a repair request along."""

    def test_signed_out_submission_is_not_stored(self, app_client, dynamodb_tables):
        response = app_client.post("/api/v1/repair-requests", json=_submission("signed-out-key"))

        assert response.status_code == 401
        assert response.json()["redirect_to"] == "/sign-in"
        assert "Item" not in dynamodb_tables["repair_requests"].get_item(
            Key={"request_id": "signed-out-key"}
        )

    def test_submit_and_replay(self, app_client):
        headers = auth("customer_1")

        first = app_client.post("/api/v1/repair-requests", json=_submission(), headers=headers)
        assert first.status_code == 201
        body = first.json()
        assert body["state"] == "done"
        # No Resend key configured: stored, but the alert could not be sent
        assert body["warning"] == "Email notification failed to send"
        assert body["request"]["status"] == "received"

        replay = app_client.post("/api/v1/repair-requests", json=_submission(), headers=headers)
        assert replay.status_code == 200
        assert replay.json()["duplicate"] is True

        mine = app_client.get("/api/v1/repair-requests", headers=headers).json()
        assert mine["count"] == 1
        assert mine["requests"][0]["mileage"] == 85000

    def test_other_user_cannot_read(self, app_client):
        response = app_client.get(
            "/api/v1/repair-requests/01HZX3K8J5ABCDEFGHJKMNPQRS", headers=auth("someone")
        )
        assert response.status_code == 404

    def test_admin_moves_request(self, app_client):
        response = app_client.put(
            "/api/v1/admin/repair-requests/01HZX3K8J5ABCDEFGHJKMNPQRS/status",
            json={"status": "diagnosis", "estimated_cost": 45000},
            headers=auth("admin_user"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "diagnosis"

        listed = app_client.get(
            "/api/v1/admin/repair-requests?status=diagnosis", headers=auth("admin_user")
        ).json()
        assert listed["count"] == 1

    def test_packages_listed(self, app_client):
        response = app_client.get("/api/v1/service-packages")
        assert [p["package_id"] for p in response.json()["packages"]] == ["oil-change"]


class TestCommentFlow:
    """Thread building, depth limit, likes and deletion."""

    def test_thread(self, app_client):
        url = "/api/v1/posts/winter-tips/comments"
        author = auth("reader_1", name="Awa")

        root = app_client.post(url, json={"content": "Great post"}, headers=author).json()
        reply = app_client.post(
            url, json={"content": "Agreed", "parent_id": root["comment_id"]}, headers=author
        ).json()
        nested = app_client.post(
            url, json={"content": "Same", "parent_id": reply["comment_id"]}, headers=author
        ).json()
        too_deep = app_client.post(
            url, json={"content": "Nope", "parent_id": nested["comment_id"]}, headers=author
        )
        assert too_deep.status_code == 400

        like_url = f"{url}/{root['comment_id']}/like"
        assert app_client.post(like_url, headers=auth("reader_2")).json()["changed"] is True
        assert app_client.post(like_url, headers=auth("reader_2")).json()["changed"] is False

        thread = app_client.get(url, headers=auth("reader_2")).json()
        assert thread["count"] == 3
        top = thread["comments"][0]
        assert top["user_liked"] is True
        assert top["comment"]["likes"] == 1
        assert top["comment"]["user_name"] == "Awa"
        assert top["replies"][0]["replies"][0]["can_reply"] is False

        forbidden = app_client.delete(f"{url}/{root['comment_id']}", headers=auth("reader_2"))
        assert forbidden.status_code == 403

        deleted = app_client.delete(f"{url}/{root['comment_id']}", headers=author)
        assert deleted.status_code == 204
        assert app_client.get(url).json()["count"] == 0


class TestLoyaltyFlow:
    """Enrollment, redemption and the points ledger."""

    def test_enroll_and_redeem(self, app_client):
        headers = auth("member_1", email="member@example.cm")

        first = app_client.get("/api/v1/loyalty/me", headers=headers).json()
        assert first["is_new_member"] is True
        assert first["member"]["available_points"] == 100
        assert first["next_tier"]["tier_name"] == "silver"
        assert [r["reward_id"] for r in first["rewards"]] == ["wash"]

        second = app_client.get("/api/v1/loyalty/me", headers=headers).json()
        assert second["is_new_member"] is False

        redeemed = app_client.post("/api/v1/loyalty/rewards/wash/redeem", headers=headers)
        assert redeemed.status_code == 201
        assert redeemed.json()["redemption_code"].startswith("EK-")

        again = app_client.post("/api/v1/loyalty/rewards/wash/redeem", headers=headers)
        assert again.status_code == 400
        assert again.json()["detail"] == "Not enough points!"

        ledger = app_client.get("/api/v1/loyalty/transactions", headers=headers).json()
        assert ledger["count"] == 2
        assert sorted(t["points"] for t in ledger["transactions"]) == [-60, 100]

    def test_admin_adjust(self, app_client):
        app_client.get("/api/v1/loyalty/me", headers=auth("member_2"))

        response = app_client.post(
            "/api/v1/admin/loyalty/member_2/adjust",
            json={"points": 900, "description": "Goodwill"},
            headers=auth("admin_user"),
        )

        assert response.status_code == 200
        assert response.json()["lifetime_points"] == 1000


class TestReviewFlow:
    """Reviews stay hidden until approved."""

    def test_moderation(self, app_client):
        submitted = app_client.post(
            "/api/v1/cars/car-42/reviews",
            json={"rating": 4, "comment": "Clean and reliable", "car_name": "Toyota Prado"},
            headers=auth("renter_1", name="Paul"),
        )
        assert submitted.status_code == 201
        review_id = submitted.json()["review_id"]

        assert app_client.get("/api/v1/cars/car-42/reviews").json()["count"] == 0

        approved = app_client.put(
            f"/api/v1/admin/cars/car-42/reviews/{review_id}/status",
            json={"status": "approved"},
            headers=auth("admin_user"),
        )
        assert approved.status_code == 200

        listed = app_client.get("/api/v1/cars/car-42/reviews").json()
        assert listed["count"] == 1
        assert listed["average_rating"] == 4.0
