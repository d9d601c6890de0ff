"""Pytest configuration and shared fixtures."""

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest

# Set before any app module builds an AuthService or a boto3 resource
TEST_JWT_SECRET = "unit-test-secret-key"
os.environ["JWT_SECRET_KEY"] = TEST_JWT_SECRET
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-3")
os.environ.pop("RESEND_API_KEY", None)

from models.comment import Comment  # noqa: E402
from models.loyalty import LoyaltyMember, TierDefinition  # noqa: E402
from models.repair import (  # noqa: E402
    AppointmentSlot,
    ContactInfo,
    IntakeForm,
    ProblemDetails,
    ServiceSelection,
    VehicleInfo,
)
from models.user import Identity  # noqa: E402
from utils.cache import clear_all_caches  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear all caches before and after each test."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def identity():
    """A signed-in customer."""
    return Identity(
        user_id="user_123", display_name="Jean Mbarga", email="jean@example.cm"
    )


@pytest.fixture
def complete_form():
    """An intake form that passes every step."""
    return IntakeForm(
        service=ServiceSelection(service_package_ids=["oil-change"]),
        vehicle=VehicleInfo(
            make="Toyota", model="Corolla", year=2018, mileage=85000, license_plate="LT 123 AB"
        ),
        problem=ProblemDetails(description="Engine light is on", urgency_level="high"),
        appointment=AppointmentSlot(date="2025-01-01", time="10:00"),
        contact=ContactInfo(
            name="Jean Mbarga", email="jean@example.cm", phone="+237 650 000 000"
        ),
    )


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table."""
    table = Mock()
    table.put_item.return_value = {}
    table.get_item.return_value = {}
    table.query.return_value = {"Items": []}
    table.scan.return_value = {"Items": []}
    table.delete_item.return_value = {}
    table.update_item.return_value = {"Attributes": {}}
    return table


@pytest.fixture
def tiers():
    """Standard tier ladder."""
    return [
        TierDefinition(
            tier_name="bronze", display_name="Bronze", points_required=0, display_order=1
        ),
        TierDefinition(
            tier_name="silver",
            display_name="Silver",
            points_required=1000,
            points_multiplier=1.25,
            discount_percentage=5,
            display_order=2,
        ),
        TierDefinition(
            tier_name="gold",
            display_name="Gold",
            points_required=5000,
            points_multiplier=1.5,
            discount_percentage=10,
            display_order=3,
        ),
        TierDefinition(
            tier_name="platinum",
            display_name="Platinum",
            points_required=15000,
            points_multiplier=2.0,
            discount_percentage=15,
            display_order=4,
        ),
    ]


@pytest.fixture
def make_member():
    """Factory for loyalty members with sensible defaults."""

    def _make(**overrides) -> LoyaltyMember:
        now = datetime.now(UTC).isoformat()
        data = {
            "user_id": "user_123",
            "email": "jean@example.cm",
            "total_points": 100,
            "available_points": 100,
            "lifetime_points": 100,
            "tier": "bronze",
            "created_at": now,
            "updated_at": now,
        }
        data.update(overrides)
        return LoyaltyMember(**data)

    return _make


@pytest.fixture
def make_comment():
    """Factory for approved comments on post-1."""

    def _make(comment_id: str, parent_id: str | None = None, **overrides) -> Comment:
        created = datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=len(comment_id))
        data = {
            "post_id": "post-1",
            "comment_id": comment_id,
            "user_id": "user_123",
            "user_name": "Jean",
            "content": f"Comment {comment_id}",
            "parent_id": parent_id,
            "created_at": created.isoformat(),
            "updated_at": created.isoformat(),
        }
        data.update(overrides)
        return Comment(**data)

    return _make
