"""User identity models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """The signed-in caller, as asserted by a verified access token."""

    user_id: str
    display_name: str | None = None
    email: str | None = None
