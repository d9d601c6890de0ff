"""Notification-related data models."""

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """A transactional email ready to hand to the mail provider."""

    from_address: str = Field(..., description="Sender, e.g. 'Ekami Auto <noreply@...>'")
    to: list[str] = Field(..., min_length=1, description="Recipient addresses")
    subject: str
    html: str

    def to_payload(self) -> dict:
        """Body for the provider's send endpoint."""
        return {
            "from": self.from_address,
            "to": self.to,
            "subject": self.subject,
            "html": self.html,
        }


class NotificationResult(BaseModel):
    """Outcome of a best-effort notification. Failures are data, not exceptions."""

    success: bool
    message_id: str | None = None
    error: str | None = None
