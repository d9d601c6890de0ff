"""Transactional email notifications sent through the Resend API."""

import html
import logging
import os
from abc import ABC, abstractmethod

import requests

from models.comment import Comment
from models.notification import EmailMessage, NotificationResult
from models.repair import RepairRequest, ServiceLocation
from models.review import Review
from utils.constants import DEFAULT_EMAIL_FROM, DEFAULT_MANAGER_EMAIL

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Fire-and-forget notification boundary.

    ``notify`` never raises: any failure is logged and reported through the
    returned NotificationResult so callers can carry on with their write.
    """

    def notify(self, message: EmailMessage) -> NotificationResult:
        try:
            result = self._send(message)
        except Exception as e:
            logger.warning("Notification '%s' failed: %s", message.subject, e)
            return NotificationResult(success=False, error=str(e))
        if not result.success:
            logger.warning(
                "Notification '%s' was not delivered: %s", message.subject, result.error
            )
        return result

    @abstractmethod
    def _send(self, message: EmailMessage) -> NotificationResult:
        """Deliver one message. May raise; ``notify`` contains the failure."""


class EmailService(Notifier):
    """Sends email via Resend and builds the admin alert messages."""

    RESEND_API_URL = "https://api.resend.com/emails"
    REQUEST_TIMEOUT_SECONDS = 10

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
        manager_email: str | None = None,
    ):
        """Initialize the email service.

        Args:
            api_key: Resend API key (defaults to RESEND_API_KEY)
            from_address: Sender (defaults to EMAIL_FROM)
            manager_email: Recipient of admin alerts (defaults to MANAGER_EMAIL)
        """
        self.api_key = api_key or os.environ.get("RESEND_API_KEY")
        self.from_address = from_address or os.environ.get(
            "EMAIL_FROM", DEFAULT_EMAIL_FROM
        )
        self.manager_email = manager_email or os.environ.get(
            "MANAGER_EMAIL", DEFAULT_MANAGER_EMAIL
        )

    def _send(self, message: EmailMessage) -> NotificationResult:
        if not self.api_key:
            return NotificationResult(
                success=False, error="Resend API key not configured"
            )

        try:
            response = requests.post(
                self.RESEND_API_URL,
                json=message.to_payload(),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            return NotificationResult(success=False, error=f"Email request failed: {e}")

        if not response.ok:
            return NotificationResult(
                success=False,
                error=f"Email API error: {response.status_code} {response.text[:200]}",
            )

        message_id = None
        try:
            message_id = response.json().get("id")
        except ValueError:
            pass
        logger.info("Sent email '%s' (id=%s)", message.subject, message_id)
        return NotificationResult(success=True, message_id=message_id)

    # ============================================
    # Admin alert messages
    # ============================================

    def repair_request_email(
        self, request: RepairRequest, service_name: str
    ) -> EmailMessage:
        return EmailMessage(
            from_address=self.from_address,
            to=[self.manager_email],
            subject=f"🔧 New Service Request - {service_name}",
            html=build_repair_request_html(request, service_name),
        )

    def comment_email(self, comment: Comment) -> EmailMessage:
        return EmailMessage(
            from_address=self.from_address,
            to=[self.manager_email],
            subject="New Blog Comment Posted",
            html=build_comment_html(comment),
        )

    def review_email(self, review: Review, car_name: str) -> EmailMessage:
        return EmailMessage(
            from_address=self.from_address,
            to=[self.manager_email],
            subject=f"New Review - {car_name} ({review.rating} stars)",
            html=build_review_html(review, car_name),
        )


def _esc(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value))


def build_repair_request_html(request: RepairRequest, service_name: str) -> str:
    """HTML body of the new service request alert sent to the workshop manager."""
    location = (
        "Drop-off"
        if request.service_location == ServiceLocation.DROP_OFF.value
        else "Mobile Service"
    )
    vehicle = " ".join(
        str(part)
        for part in (request.vehicle_year, request.vehicle_make, request.vehicle_model)
        if part
    )
    mileage = request.mileage if request.mileage is not None else "Not provided"

    lines = [
        "<h2>🔧 New Service Request</h2>",
        f"<p><strong>Request ID:</strong> {_esc(request.request_id)}</p>",
        f"<p><strong>Service:</strong> {_esc(service_name)}</p>",
        f"<p><strong>Customer:</strong> {_esc(request.customer_name)}</p>",
        f"<p><strong>Email:</strong> {_esc(request.customer_email)}</p>",
        f"<p><strong>Phone:</strong> {_esc(request.customer_phone)}</p>",
        "<hr />",
        f"<p><strong>Vehicle:</strong> {_esc(vehicle)}</p>",
        f"<p><strong>Mileage:</strong> {_esc(mileage)} km</p>",
        f"<p><strong>License Plate:</strong> {_esc(request.license_plate or 'Not provided')}</p>",
        "<hr />",
        f"<p><strong>Problem:</strong> {_esc(request.problem_description)}</p>",
        f"<p><strong>Urgency:</strong> {_esc(str(request.urgency_level).upper())}</p>",
        "<hr />",
        f"<p><strong>Appointment:</strong> {_esc(request.appointment_date)} at {_esc(request.appointment_time)}</p>",
        f"<p><strong>Service Location:</strong> {location}</p>",
    ]
    if request.notes:
        lines.append(f"<p><strong>Additional Notes:</strong> {_esc(request.notes)}</p>")
    lines += [
        "<hr />",
        "<p><em>Please review and assign a mechanic in the admin dashboard.</em></p>",
    ]
    return "\n".join(lines)


def build_comment_html(comment: Comment) -> str:
    return "\n".join(
        [
            "<h2>New Comment on Blog Post</h2>",
            f"<p><strong>From:</strong> {_esc(comment.user_name or 'Anonymous')}</p>",
            f"<p><strong>Email:</strong> {_esc(comment.user_email)}</p>",
            f"<p><strong>Post:</strong> {_esc(comment.post_id)}</p>",
            "<p><strong>Comment:</strong></p>",
            f"<p>{_esc(comment.content)}</p>",
            "<p><strong>Status:</strong> Auto-approved and published</p>",
        ]
    )


def build_review_html(review: Review, car_name: str) -> str:
    return "\n".join(
        [
            "<h2>New Review Submitted</h2>",
            f"<p><strong>Vehicle:</strong> {_esc(car_name)}</p>",
            f"<p><strong>Rating:</strong> {'⭐' * review.rating} ({review.rating}/5)</p>",
            "<hr />",
            f"<p><strong>Customer:</strong> {_esc(review.user_name)}</p>",
            "<p><strong>Review:</strong></p>",
            f"<p>{_esc(review.comment)}</p>",
            "<hr />",
            "<p><em>This review is pending approval. Please review it in the admin dashboard.</em></p>",
        ]
    )
