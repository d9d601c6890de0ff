"""Bearer token verification and issuance."""

import os
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from models.user import Identity


class AuthenticationError(Exception):
    """Authentication error."""

    pass


class AuthService:
    """Verifies the access tokens presented by the web client.

    Tokens are HS256 JWTs carrying ``sub`` (user id), ``type`` ("access") and
    optionally ``name`` and ``email`` for the display identity.
    """

    JWT_ALGORITHM = "HS256"
    JWT_EXPIRATION_HOURS = 24 * 7  # 7 days

    def __init__(self, jwt_secret: str | None = None):
        """Initialize auth service.

        Args:
            jwt_secret: Secret for signing JWTs (defaults to JWT_SECRET_KEY)
        """
        self.jwt_secret = jwt_secret or os.environ.get(
            "JWT_SECRET_KEY", "dev-secret-change-in-prod"
        )

    def create_access_token(
        self, identity: Identity, expires_in: timedelta | None = None
    ) -> str:
        """Issue an access token for ``identity``."""
        now = datetime.now(UTC)
        payload = {
            "sub": identity.user_id,
            "type": "access",
            "iat": now,
            "exp": now + (expires_in or timedelta(hours=self.JWT_EXPIRATION_HOURS)),
        }
        if identity.display_name:
            payload["name"] = identity.display_name
        if identity.email:
            payload["email"] = identity.email
        return jwt.encode(payload, self.jwt_secret, algorithm=self.JWT_ALGORITHM)

    def verify_access_token(self, token: str) -> Identity:
        """Verify an access token and return the caller's identity.

        Args:
            token: JWT access token

        Returns:
            Identity built from the token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.JWT_ALGORITHM],
                options={"verify_exp": True},
            )
        except ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        if payload.get("type") != "access":
            raise AuthenticationError("Invalid token type")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Missing user ID in token")

        return Identity(
            user_id=user_id,
            display_name=payload.get("name"),
            email=payload.get("email"),
        )
