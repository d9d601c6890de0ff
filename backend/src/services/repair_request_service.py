"""Repair request submission and workshop management."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from models.notification import NotificationResult
from models.repair import (
    IntakeForm,
    IntakeStep,
    RepairRequest,
    RepairStatus,
    ServicePackage,
)
from models.user import Identity
from services.intake_validation import validate_step
from utils.cache import cached_service_packages
from utils.constants import REPAIR_REQUEST_SUCCESS_PATH, SIGN_IN_PATH
from utils.dynamodb_utils import (
    PersistenceError,
    item_to_model,
    model_to_item,
    parse_items_from_dynamodb,
    query_all,
    scan_all,
    table_name,
)

logger = logging.getLogger(__name__)

CUSTOM_SERVICE_NAME = "Custom Service"
SIGN_IN_REQUIRED = "Please sign in to submit a service request"
FINAL_STEP_REQUIRED = "Please complete every step before submitting"


class SubmissionState(str, Enum):
    """States a repair request submission passes through."""

    IDLE = "idle"
    VALIDATING = "validating"
    UNAUTHENTICATED = "unauthenticated"
    INVALID = "invalid"
    SUBMITTING = "submitting"
    PERSIST_FAILED = "persist_failed"
    PERSISTED = "persisted"
    NOTIFY_ATTEMPTED = "notify_attempted"
    DONE = "done"


@dataclass
class SubmissionOutcome:
    """Where a submission ended up and what the client should do next."""

    state: SubmissionState
    request: RepairRequest | None = None
    error: str | None = None
    warning: str | None = None
    redirect_to: str | None = None
    return_to: str | None = None
    duplicate: bool = False
    notification: NotificationResult | None = None
    history: list[SubmissionState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == SubmissionState.DONE


class RepairRequestService:
    """Service for repair requests and the service package catalogue."""

    def __init__(self, table, packages_table=None, notifier=None):
        """Initialize the repair request service.

        Args:
            table: DynamoDB table for repair requests (hash key request_id,
                GSIs UserIdIndex and StatusIndex)
            packages_table: Optional DynamoDB table for service packages
            notifier: Optional EmailService used for the manager alert
        """
        self.table = table
        self.packages_table = packages_table
        self.notifier = notifier

    @property
    def cache_scope(self) -> str | None:
        """Catalogue table behind the cached package list."""
        return table_name(self.packages_table)

    # ============================================
    # Submission
    # ============================================

    def submit(
        self,
        form: IntakeForm,
        identity: Identity | None,
        current_step: IntakeStep = IntakeStep.CONTACT,
        idempotency_key: str = "",
        origin_path: str = "/repairs/request",
    ) -> SubmissionOutcome:
        """Submit a completed intake form.

        Submission is only accepted from the final step. Only that step is
        re-validated; earlier steps were checked when the wizard advanced past
        them. ``form`` is never modified.

        Args:
            form: The joined intake form
            identity: The signed-in caller, or None
            current_step: The step the wizard is on
            idempotency_key: Client-generated key, stored as the request_id
            origin_path: Path to come back to after signing in

        Returns:
            SubmissionOutcome describing the terminal state
        """
        history = [SubmissionState.IDLE, SubmissionState.VALIDATING]

        if IntakeStep(current_step) != IntakeStep.CONTACT:
            history += [SubmissionState.INVALID, SubmissionState.IDLE]
            return SubmissionOutcome(
                state=SubmissionState.INVALID, error=FINAL_STEP_REQUIRED, history=history
            )

        result = validate_step(current_step, form)
        if not result.ok:
            history += [SubmissionState.INVALID, SubmissionState.IDLE]
            return SubmissionOutcome(
                state=SubmissionState.INVALID, error=result.message, history=history
            )

        if identity is None:
            history.append(SubmissionState.UNAUTHENTICATED)
            return SubmissionOutcome(
                state=SubmissionState.UNAUTHENTICATED,
                error=SIGN_IN_REQUIRED,
                redirect_to=SIGN_IN_PATH,
                return_to=origin_path,
                history=history,
            )

        if not idempotency_key:
            raise ValueError("idempotency_key is required")

        history.append(SubmissionState.SUBMITTING)
        request = self.build_request(form, identity, idempotency_key)

        try:
            stored, duplicate = self._create(request)
        except PersistenceError as e:
            logger.error("Repair request %s was not stored: %s", idempotency_key, e)
            history += [SubmissionState.PERSIST_FAILED, SubmissionState.IDLE]
            return SubmissionOutcome(
                state=SubmissionState.PERSIST_FAILED, error=str(e), history=history
            )

        history.append(SubmissionState.PERSISTED)

        notification = None
        warning = None
        if duplicate:
            logger.info("Repair request %s replayed; skipping notification", stored.request_id)
        else:
            notification = self._notify_manager(stored)
            history.append(SubmissionState.NOTIFY_ATTEMPTED)
            if not notification.success:
                warning = "Email notification failed to send"

        history.append(SubmissionState.DONE)
        return SubmissionOutcome(
            state=SubmissionState.DONE,
            request=stored,
            warning=warning,
            redirect_to=REPAIR_REQUEST_SUCCESS_PATH,
            duplicate=duplicate,
            notification=notification,
            history=history,
        )

    def build_request(
        self, form: IntakeForm, identity: Identity, request_id: str
    ) -> RepairRequest:
        """Flatten an intake form into the stored record shape."""
        now = datetime.now(UTC).isoformat()
        package_ids = list(form.service.service_package_ids)

        return RepairRequest(
            request_id=request_id,
            user_id=identity.user_id,
            service_package_ids=package_ids,
            service_package_id=package_ids[0] if package_ids else None,
            vehicle_make=form.vehicle.make.strip(),
            vehicle_model=form.vehicle.model.strip(),
            vehicle_year=form.vehicle.year,
            mileage=form.vehicle.mileage,
            license_plate=form.vehicle.license_plate or None,
            problem_description=form.problem.description or form.service.custom_service,
            urgency_level=form.problem.urgency_level,
            status=RepairStatus.RECEIVED,
            appointment_date=form.appointment.date or None,
            appointment_time=form.appointment.time or None,
            service_location=form.appointment.service_location,
            customer_name=form.contact.name.strip(),
            customer_email=form.contact.email.strip(),
            customer_phone=form.contact.phone.strip(),
            photo_urls=[],
            notes=form.contact.notes or None,
            created_at=now,
            updated_at=now,
        )

    def _create(self, request: RepairRequest) -> tuple[RepairRequest, bool]:
        """Write the request once. Returns (stored record, was_duplicate)."""
        try:
            self.table.put_item(
                Item=model_to_item(request),
                ConditionExpression="attribute_not_exists(request_id)",
            )
            logger.info(
                "Stored repair request %s for user %s", request.request_id, request.user_id
            )
            return request, False
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                raise PersistenceError(f"Failed to create repair request: {e}")

        existing = self.get_request(request.request_id)
        if existing is None or existing.user_id != request.user_id:
            raise PersistenceError("Submission key already used by another request")
        return existing, True

    def _notify_manager(self, request: RepairRequest) -> NotificationResult:
        if self.notifier is None:
            return NotificationResult(success=False, error="No notifier configured")
        service_name = self.service_name_for(request)
        return self.notifier.notify(
            self.notifier.repair_request_email(request, service_name)
        )

    def service_name_for(self, request: RepairRequest) -> str:
        """Display name for the alert subject: the first package, or a custom service."""
        if not request.service_package_id:
            return CUSTOM_SERVICE_NAME
        try:
            packages = self.list_service_packages()
        except PersistenceError as e:
            logger.warning("Could not resolve package name: %s", e)
            return CUSTOM_SERVICE_NAME
        for package in packages:
            if package.package_id == request.service_package_id:
                return package.name
        return CUSTOM_SERVICE_NAME

    # ============================================
    # Reads
    # ============================================

    def get_request(self, request_id: str) -> RepairRequest | None:
        try:
            response = self.table.get_item(Key={"request_id": request_id})
        except ClientError as e:
            raise PersistenceError(f"Failed to get repair request: {e}")
        item = response.get("Item")
        if not item:
            return None
        return item_to_model(item, RepairRequest)

    def get_user_request(self, request_id: str, user_id: str) -> RepairRequest | None:
        """Fetch a request only if it belongs to ``user_id``."""
        request = self.get_request(request_id)
        if request is None or request.user_id != user_id:
            return None
        return request

    def list_user_requests(self, user_id: str) -> list[RepairRequest]:
        """All requests of one customer, newest first."""
        try:
            items = query_all(
                self.table,
                IndexName="UserIdIndex",
                KeyConditionExpression=Key("user_id").eq(user_id),
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to list repair requests: {e}")

        requests = [RepairRequest(**item) for item in parse_items_from_dynamodb(items)]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests

    def list_requests(self, status: RepairStatus | None = None) -> list[RepairRequest]:
        """All requests for the admin dashboard, newest first."""
        try:
            if status:
                items = query_all(
                    self.table,
                    IndexName="StatusIndex",
                    KeyConditionExpression=Key("status").eq(RepairStatus(status).value),
                )
            else:
                items = scan_all(self.table)
        except ClientError as e:
            raise PersistenceError(f"Failed to list repair requests: {e}")

        requests = [RepairRequest(**item) for item in parse_items_from_dynamodb(items)]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests

    # ============================================
    # Workshop updates
    # ============================================

    def update_status(
        self,
        request_id: str,
        status: RepairStatus,
        admin_notes: str | None = None,
        estimated_cost: float | None = None,
        final_cost: float | None = None,
    ) -> RepairRequest | None:
        """Move a request along its lifecycle.

        Returns:
            The updated request, or None if it does not exist
        """
        request = self.get_request(request_id)
        if request is None:
            return None

        status = RepairStatus(status)
        now = datetime.now(UTC).isoformat()
        request.status = status.value
        request.updated_at = now
        if status == RepairStatus.SCHEDULED and not request.scheduled_at:
            request.scheduled_at = now
        if status == RepairStatus.COMPLETED:
            request.completed_at = now
        if admin_notes is not None:
            request.admin_notes = admin_notes
        if estimated_cost is not None:
            request.estimated_cost = estimated_cost
        if final_cost is not None:
            request.final_cost = final_cost

        self._replace(request)
        logger.info("Repair request %s moved to %s", request_id, status.value)
        return request

    def assign_mechanic(self, request_id: str, mechanic_id: str) -> RepairRequest | None:
        """Assign a mechanic; a freshly received request becomes scheduled."""
        request = self.get_request(request_id)
        if request is None:
            return None

        now = datetime.now(UTC).isoformat()
        request.assigned_mechanic_id = mechanic_id
        request.updated_at = now
        if request.status == RepairStatus.RECEIVED.value:
            request.status = RepairStatus.SCHEDULED.value
            request.scheduled_at = request.scheduled_at or now

        self._replace(request)
        return request

    def _replace(self, request: RepairRequest) -> None:
        try:
            self.table.put_item(
                Item=model_to_item(request),
                ConditionExpression="attribute_exists(request_id)",
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to update repair request: {e}")

    # ============================================
    # Service package catalogue
    # ============================================

    @cached_service_packages
    def list_service_packages(self) -> list[ServicePackage]:
        """Active packages, cheapest first."""
        if self.packages_table is None:
            return []
        try:
            items = scan_all(self.packages_table)
        except ClientError as e:
            raise PersistenceError(f"Failed to list service packages: {e}")

        packages = [ServicePackage(**item) for item in parse_items_from_dynamodb(items)]
        packages = [p for p in packages if p.is_active]
        packages.sort(key=lambda p: p.price)
        return packages
