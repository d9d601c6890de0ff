"""Shared constants for the Ekami Auto backend."""

# Where the client sends a signed-out user, and where it lands after a
# successful repair request.
SIGN_IN_PATH = "/sign-in"
REPAIR_REQUEST_SUCCESS_PATH = "/account?tab=services"

# Photo picker limits for the repair intake wizard
MAX_INTAKE_PHOTOS = 5
MAX_PHOTO_SIZE_BYTES = 5 * 1024 * 1024

# Replies are allowed on comments at depth 0 and 1 only
MAX_COMMENT_REPLY_DEPTH = 2

# Loyalty program
WELCOME_BONUS_POINTS = 100
REDEMPTION_VALIDITY_DAYS = 90
RECENT_TRANSACTIONS_LIMIT = 20
POINTS_EARN_UNIT_XAF = 1000  # 1 base point per 1,000 XAF spent

# Outbound email defaults (overridable via EMAIL_FROM / MANAGER_EMAIL)
DEFAULT_EMAIL_FROM = "Ekami Auto <onboarding@resend.dev>"
DEFAULT_MANAGER_EMAIL = "kerryngong@ekamiauto.com"

# Currency used by every price in the system
CURRENCY = "XAF"
