"""Main FastAPI application handler for Lambda deployment."""

import logging
import os
import time
from datetime import UTC, datetime

import boto3
from botocore.exceptions import ClientError
from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from mangum import Mangum

from models.comment import CommentCreate, CommentEdit, CommentModeration
from models.loyalty import PointsAdjustment
from models.repair import (
    IntakeForm,
    IntakeStep,
    MechanicAssignment,
    RepairStatus,
    RepairStatusUpdate,
    RepairSubmission,
)
from models.review import ReviewModeration, ReviewResponse, ReviewStatus, ReviewSubmission
from models.user import Identity
from models.valuation import ValuationRequest
from services.auth_service import AuthenticationError, AuthService
from services.comment_service import CommentService
from services.email_service import EmailService
from services.intake_validation import (
    APPOINTMENT_TIME_SLOTS,
    min_appointment_date,
    validate_form,
    validate_step,
)
from services.loyalty_service import LoyaltyService
from services.repair_request_service import (
    PersistenceError,
    RepairRequestService,
    SubmissionOutcome,
    SubmissionState,
)
from services.review_service import ReviewService, summarize_ratings
from services.valuation_service import ValuationService
from utils.cache import CACHE_CONTROL_PRIVATE, CACHE_CONTROL_PUBLIC

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Ekami Auto API",
    description="API for repair requests, blog comments, loyalty and reviews",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log API requests with timing for CloudWatch monitoring."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    # Log slow requests (>1s) at WARNING level for monitoring
    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


# Lazy-initialized AWS clients and services
# Required for Lambda SnapStart - connections must be re-established after restore
_dynamodb = None
_auth_service = None
_email_service = None
_repair_request_service = None
_comment_service = None
_loyalty_service = None
_review_service = None
_valuation_service = None

# Security scheme for bearer token authentication
security = HTTPBearer(auto_error=False)


def reset_services():
    """Reset all lazy-initialized services. Useful for testing.

    Also resets boto3's default session so that subsequent calls to
    boto3.resource() create fresh sessions within the current mock context
    (e.g., moto's mock_aws).
    """
    global _dynamodb, _auth_service, _email_service, _repair_request_service
    global _comment_service, _loyalty_service, _review_service, _valuation_service
    _dynamodb = None
    _auth_service = None
    _email_service = None
    _repair_request_service = None
    _comment_service = None
    _loyalty_service = None
    _review_service = None
    _valuation_service = None
    boto3.DEFAULT_SESSION = None


def get_dynamodb():
    """Get or create DynamoDB resource (lazy init for SnapStart)."""
    global _dynamodb
    if _dynamodb is None:
        region = os.environ.get("AWS_DEFAULT_REGION", "eu-west-3")
        _dynamodb = boto3.resource("dynamodb", region_name=region)
    return _dynamodb


def _table(env_var: str, default: str):
    return get_dynamodb().Table(os.environ.get(env_var, default))


def get_auth_service():
    """Get or create AuthService (lazy init for SnapStart)."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService(jwt_secret=os.environ.get("JWT_SECRET_KEY"))
    return _auth_service


def get_email_service():
    """Get or create EmailService."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def get_repair_request_service():
    """Get or create RepairRequestService (lazy init for SnapStart)."""
    global _repair_request_service
    if _repair_request_service is None:
        _repair_request_service = RepairRequestService(
            table=_table("REPAIR_REQUESTS_TABLE", "ekami-auto-repair-requests-dev"),
            packages_table=_table(
                "SERVICE_PACKAGES_TABLE", "ekami-auto-service-packages-dev"
            ),
            notifier=get_email_service(),
        )
    return _repair_request_service


def get_comment_service():
    """Get or create CommentService (lazy init for SnapStart)."""
    global _comment_service
    if _comment_service is None:
        _comment_service = CommentService(
            table=_table("BLOG_COMMENTS_TABLE", "ekami-auto-blog-comments-dev"),
            likes_table=_table("COMMENT_LIKES_TABLE", "ekami-auto-comment-likes-dev"),
            notifier=get_email_service(),
        )
    return _comment_service


def get_loyalty_service():
    """Get or create LoyaltyService (lazy init for SnapStart)."""
    global _loyalty_service
    if _loyalty_service is None:
        _loyalty_service = LoyaltyService(
            members_table=_table(
                "LOYALTY_MEMBERS_TABLE", "ekami-auto-loyalty-members-dev"
            ),
            transactions_table=_table(
                "LOYALTY_TRANSACTIONS_TABLE", "ekami-auto-loyalty-transactions-dev"
            ),
            tiers_table=_table("LOYALTY_TIERS_TABLE", "ekami-auto-loyalty-tiers-dev"),
            rewards_table=_table(
                "LOYALTY_REWARDS_TABLE", "ekami-auto-loyalty-rewards-dev"
            ),
            redemptions_table=_table(
                "LOYALTY_REDEMPTIONS_TABLE", "ekami-auto-loyalty-redemptions-dev"
            ),
        )
    return _loyalty_service


def get_review_service():
    """Get or create ReviewService (lazy init for SnapStart)."""
    global _review_service
    if _review_service is None:
        _review_service = ReviewService(
            table=_table("REVIEWS_TABLE", "ekami-auto-reviews-dev"),
            notifier=get_email_service(),
        )
    return _review_service


def get_valuation_service():
    global _valuation_service
    if _valuation_service is None:
        _valuation_service = ValuationService()
    return _valuation_service


def get_admin_user_ids() -> set[str]:
    raw = os.environ.get("ADMIN_USER_IDS", "")
    return {user_id.strip() for user_id in raw.split(",") if user_id.strip()}


# MARK: - Authentication Dependency


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> Identity:
    """Extract the caller's identity from the JWT.

    Raises:
        HTTPException: If token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return get_auth_service().verify_access_token(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> Identity | None:
    """Extract the caller's identity if a valid token is present.

    Returns None if no token is provided or the token does not verify.
    """
    if not credentials:
        return None

    try:
        return get_auth_service().verify_access_token(credentials.credentials)
    except AuthenticationError:
        return None


async def get_admin_identity(
    identity: Identity = Depends(get_current_identity),  # noqa: B008
) -> Identity:
    if identity.user_id not in get_admin_user_ids():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Service Packages


@app.get("/api/v1/service-packages")
async def get_service_packages(response: Response):
    """List active service packages, cheapest first."""
    packages = get_repair_request_service().list_service_packages()
    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return {
        "packages": [p.model_dump() for p in packages],
        "count": len(packages),
    }


# MARK: - Repair Requests


def _outcome_body(outcome: SubmissionOutcome) -> dict:
    return {
        "state": outcome.state.value,
        "request": outcome.request.model_dump() if outcome.request else None,
        "error": outcome.error,
        "warning": outcome.warning,
        "redirect_to": outcome.redirect_to,
        "return_to": outcome.return_to,
        "duplicate": outcome.duplicate,
    }


@app.get("/api/v1/repair-requests/appointment-options")
async def get_appointment_options(response: Response):
    """Bounds for the appointment picker."""
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "time_slots": APPOINTMENT_TIME_SLOTS,
        "min_date": min_appointment_date().isoformat(),
    }


@app.post("/api/v1/repair-requests/steps/{step}/validate")
async def validate_intake_step(step: int, form: IntakeForm):
    """Check one wizard step before the client moves past it."""
    result = validate_step(IntakeStep(step), form)
    body = {"step": step, "ok": result.ok, "message": result.message}
    if not result.ok:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)
    return body


@app.post("/api/v1/repair-requests", status_code=status.HTTP_201_CREATED)
async def submit_repair_request(
    submission: RepairSubmission,
    identity: Identity | None = Depends(get_optional_identity),  # noqa: B008
):
    """Submit the repair intake wizard.

    Signed-out callers get a 401 with the sign-in redirect in the body, so the
    client can send them back to ``origin_path`` afterwards. The server never
    saw the wizard advance, so every step is checked here before the request
    is handed over as a final-step submission.
    """
    checked = validate_form(submission.form)
    if not checked.ok:
        outcome = SubmissionOutcome(state=SubmissionState.INVALID, error=checked.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=_outcome_body(outcome)
        )

    outcome = get_repair_request_service().submit(
        submission.form,
        identity,
        current_step=IntakeStep.CONTACT,
        idempotency_key=submission.idempotency_key,
        origin_path=submission.origin_path,
    )
    body = _outcome_body(outcome)

    if outcome.state == SubmissionState.UNAUTHENTICATED:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=body)
    if outcome.state == SubmissionState.INVALID:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)
    if outcome.state == SubmissionState.PERSIST_FAILED:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body)
    if outcome.duplicate:
        return JSONResponse(status_code=status.HTTP_200_OK, content=body)
    return body


@app.get("/api/v1/repair-requests")
async def get_my_repair_requests(
    response: Response,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    """Repair requests of the signed-in customer, newest first."""
    requests = get_repair_request_service().list_user_requests(identity.user_id)
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "requests": [r.model_dump() for r in requests],
        "count": len(requests),
    }


@app.get("/api/v1/repair-requests/{request_id}")
async def get_repair_request(
    request_id: str,
    response: Response,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    request = get_repair_request_service().get_user_request(
        request_id, identity.user_id
    )
    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair request {request_id} not found",
        )
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return request.model_dump()


@app.get("/api/v1/admin/repair-requests")
async def admin_list_repair_requests(
    status_filter: str | None = Query(
        None, alias="status", description="Filter by status"
    ),
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    repair_status = None
    if status_filter:
        try:
            repair_status = RepairStatus(status_filter.lower())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status. Must be one of: {[s.value for s in RepairStatus]}",
            )

    requests = get_repair_request_service().list_requests(repair_status)
    return {
        "requests": [r.model_dump() for r in requests],
        "count": len(requests),
    }


@app.put("/api/v1/admin/repair-requests/{request_id}/status")
async def admin_update_repair_status(
    request_id: str,
    update: RepairStatusUpdate,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    request = get_repair_request_service().update_status(
        request_id,
        update.status,
        admin_notes=update.admin_notes,
        estimated_cost=update.estimated_cost,
        final_cost=update.final_cost,
    )
    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair request {request_id} not found",
        )
    return request.model_dump()


@app.put("/api/v1/admin/repair-requests/{request_id}/assign")
async def admin_assign_mechanic(
    request_id: str,
    assignment: MechanicAssignment,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    request = get_repair_request_service().assign_mechanic(
        request_id, assignment.mechanic_id
    )
    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repair request {request_id} not found",
        )
    return request.model_dump()


# MARK: - Blog Comments


@app.get("/api/v1/posts/{post_id}/comments")
async def get_post_comments(
    post_id: str,
    response: Response,
    identity: Identity | None = Depends(get_optional_identity),  # noqa: B008
):
    """Approved comments of a post as a reply tree, pinned first."""
    try:
        tree = get_comment_service().list_thread(
            post_id, viewer_id=identity.user_id if identity else None
        )
    except PersistenceError as e:
        logger.error("Failed to load comments for %s: %s", post_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load comments",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "comments": [node.model_dump() for node in tree.roots],
        "count": len(tree),
    }


@app.post("/api/v1/posts/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    body: CommentCreate,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    comment = get_comment_service().post_comment(
        identity, post_id, body.content, parent_id=body.parent_id
    )
    return comment.model_dump()


@app.put("/api/v1/posts/{post_id}/comments/{comment_id}")
async def edit_comment(
    post_id: str,
    comment_id: str,
    body: CommentEdit,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    comment = get_comment_service().edit_comment(
        identity, post_id, comment_id, body.content
    )
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found",
        )
    return comment.model_dump()


@app.delete(
    "/api/v1/posts/{post_id}/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_comment(
    post_id: str,
    comment_id: str,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    if not get_comment_service().delete_comment(identity, post_id, comment_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/api/v1/posts/{post_id}/comments/{comment_id}/like")
async def like_comment(
    post_id: str,
    comment_id: str,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    changed = get_comment_service().like_comment(identity, post_id, comment_id)
    return {"comment_id": comment_id, "liked": True, "changed": changed}


@app.delete("/api/v1/posts/{post_id}/comments/{comment_id}/like")
async def unlike_comment(
    post_id: str,
    comment_id: str,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    changed = get_comment_service().unlike_comment(identity, post_id, comment_id)
    return {"comment_id": comment_id, "liked": False, "changed": changed}


@app.put("/api/v1/admin/posts/{post_id}/comments/{comment_id}/status")
async def admin_moderate_comment(
    post_id: str,
    comment_id: str,
    body: CommentModeration,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    comment = get_comment_service().set_status(post_id, comment_id, body.status)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found",
        )
    return comment.model_dump()


@app.post("/api/v1/admin/posts/{post_id}/comments/{comment_id}/pin")
async def admin_toggle_pin(
    post_id: str,
    comment_id: str,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    comment = get_comment_service().toggle_pin(post_id, comment_id)
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found",
        )
    return comment.model_dump()


# MARK: - Loyalty


@app.get("/api/v1/loyalty/me")
async def get_my_loyalty(
    response: Response,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    """Membership summary; enrolls the caller with a welcome bonus on first visit."""
    service = get_loyalty_service()
    summary = service.get_summary(identity)
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        **summary.model_dump(),
        "tiers": [t.model_dump() for t in service.list_tiers()],
        "rewards": [r.model_dump() for r in service.list_rewards()],
    }


@app.get("/api/v1/loyalty/transactions")
async def get_my_loyalty_transactions(
    response: Response,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    transactions = get_loyalty_service().recent_transactions(identity.user_id)
    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    return {
        "transactions": [t.model_dump() for t in transactions],
        "count": len(transactions),
    }


@app.post(
    "/api/v1/loyalty/rewards/{reward_id}/redeem",
    status_code=status.HTTP_201_CREATED,
)
async def redeem_reward(
    reward_id: str,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    redemption = get_loyalty_service().redeem_reward(identity, reward_id)
    return redemption.model_dump()


@app.post("/api/v1/admin/loyalty/{user_id}/adjust")
async def admin_adjust_points(
    user_id: str,
    adjustment: PointsAdjustment,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    member = get_loyalty_service().adjust_points(
        user_id, adjustment.points, adjustment.description, admin_id=admin.user_id
    )
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Loyalty member {user_id} not found",
        )
    return member.model_dump()


@app.get("/api/v1/admin/loyalty/stats")
async def admin_loyalty_stats(
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    return get_loyalty_service().program_stats()


# MARK: - Reviews


@app.get("/api/v1/cars/{car_id}/reviews")
async def get_car_reviews(car_id: str, response: Response):
    reviews = get_review_service().list_approved_reviews(car_id)
    summary = summarize_ratings(reviews)
    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return {
        "reviews": [r.model_dump() for r in reviews],
        "count": summary["review_count"],
        "average_rating": summary["average_rating"],
    }


@app.post("/api/v1/cars/{car_id}/reviews", status_code=status.HTTP_201_CREATED)
async def submit_car_review(
    car_id: str,
    submission: ReviewSubmission,
    identity: Identity = Depends(get_current_identity),  # noqa: B008
):
    """Submit a review; it is shown only after an admin approves it."""
    review = get_review_service().submit_review(identity, car_id, submission)
    return review.model_dump()


@app.get("/api/v1/admin/reviews")
async def admin_list_reviews(
    status_filter: ReviewStatus | None = Query(None, alias="status"),
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    reviews = get_review_service().list_reviews(status_filter)
    return {"reviews": [r.model_dump() for r in reviews], "count": len(reviews)}


@app.put("/api/v1/admin/cars/{car_id}/reviews/{review_id}/status")
async def admin_moderate_review(
    car_id: str,
    review_id: str,
    body: ReviewModeration,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    review = get_review_service().moderate(car_id, review_id, body.status)
    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Review {review_id} not found",
        )
    return review.model_dump()


@app.put("/api/v1/admin/cars/{car_id}/reviews/{review_id}/response")
async def admin_respond_to_review(
    car_id: str,
    review_id: str,
    body: ReviewResponse,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    review = get_review_service().respond(car_id, review_id, body.admin_response)
    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Review {review_id} not found",
        )
    return review.model_dump()


@app.delete(
    "/api/v1/admin/cars/{car_id}/reviews/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def admin_delete_review(
    car_id: str,
    review_id: str,
    admin: Identity = Depends(get_admin_identity),  # noqa: B008
):
    if not get_review_service().delete_review(car_id, review_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Review {review_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# MARK: - Car Tools


@app.post("/api/v1/tools/car-value")
async def estimate_car_value(request: ValuationRequest):
    """Quick market value estimate in XAF."""
    return get_valuation_service().estimate(request).model_dump()


# MARK: - Error Handlers


@app.exception_handler(ClientError)
async def aws_client_error_handler(request, exc: ClientError):
    """Handle AWS client errors."""
    error_code = exc.response["Error"]["Code"]
    error_message = exc.response["Error"]["Message"]

    if error_code == "ResourceNotFoundException":
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"Resource not found: {error_message}"},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"AWS error: {error_message}"},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request, exc: PersistenceError):
    logger.error("Persistence error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request, exc: AuthenticationError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(PermissionError)
async def permission_error_handler(request, exc: PermissionError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)}
    )


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    """Handle value errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


# MARK: - Lambda Handler

# Create the Lambda handler
api_handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
