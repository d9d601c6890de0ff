"""Repair intake wizard: form state, photo picker and step sequencing.

The wizard is a plain object with its collaborators passed in, so the whole
flow can be driven from tests or from an HTTP handler without a UI.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ulid import ULID

from models.repair import IntakeForm, IntakeStep, PhotoAttachment
from models.user import Identity
from services.intake_validation import ValidationResult, validate_step
from services.repair_request_service import (
    FINAL_STEP_REQUIRED,
    RepairRequestService,
    SubmissionOutcome,
    SubmissionState,
)
from utils.constants import MAX_INTAKE_PHOTOS, MAX_PHOTO_SIZE_BYTES

logger = logging.getLogger(__name__)

SUBMISSION_IN_PROGRESS = "Submission already in progress"
ALREADY_SUBMITTED = "This request has already been submitted"

# Flat field name -> (form section, attribute on that section)
FIELD_MAP: dict[str, tuple[str, str]] = {
    "service_package_ids": ("service", "service_package_ids"),
    "custom_service": ("service", "custom_service"),
    "vehicle_make": ("vehicle", "make"),
    "vehicle_model": ("vehicle", "model"),
    "vehicle_year": ("vehicle", "year"),
    "mileage": ("vehicle", "mileage"),
    "license_plate": ("vehicle", "license_plate"),
    "problem_description": ("problem", "description"),
    "urgency_level": ("problem", "urgency_level"),
    "appointment_date": ("appointment", "date"),
    "appointment_time": ("appointment", "time"),
    "service_location": ("appointment", "service_location"),
    "customer_name": ("contact", "name"),
    "customer_email": ("contact", "email"),
    "customer_phone": ("contact", "phone"),
    "notes": ("contact", "notes"),
}


@dataclass
class PhotoBatchResult:
    """What happened to a batch of picked files."""

    added: list[PhotoAttachment] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class PhotoSet:
    """Picked photos, capped in count and size, images only."""

    def __init__(
        self,
        max_photos: int = MAX_INTAKE_PHOTOS,
        max_size_bytes: int = MAX_PHOTO_SIZE_BYTES,
    ):
        self.max_photos = max_photos
        self.max_size_bytes = max_size_bytes
        self._photos: list[PhotoAttachment] = []

    def __len__(self) -> int:
        return len(self._photos)

    @property
    def photos(self) -> list[PhotoAttachment]:
        return list(self._photos)

    def add(self, files: list[PhotoAttachment]) -> PhotoBatchResult:
        """Add a batch of files.

        A batch that would push the set past ``max_photos`` is rejected as a
        whole. Otherwise each file that is not an image or is too large is
        skipped with its own message and the rest are kept.
        """
        result = PhotoBatchResult()
        if len(self._photos) + len(files) > self.max_photos:
            result.errors.append(f"You can only upload up to {self.max_photos} photos")
            return result

        for photo in files:
            if not photo.content_type.startswith("image/"):
                result.errors.append(f"{photo.filename} is not an image file")
                continue
            if photo.size_bytes > self.max_size_bytes:
                max_mb = self.max_size_bytes // (1024 * 1024)
                result.errors.append(
                    f"{photo.filename} is too large. Max size is {max_mb}MB"
                )
                continue
            result.added.append(photo)

        self._photos.extend(result.added)
        return result

    def remove(self, index: int) -> PhotoAttachment:
        """Remove the photo at ``index``.

        Raises:
            IndexError: If there is no photo at that position
        """
        return self._photos.pop(index)

    def clear(self) -> None:
        self._photos.clear()


class IntakeFormStore:
    """Owns the in-progress IntakeForm and is the only way to change it."""

    def __init__(self, form: IntakeForm | None = None, photos: PhotoSet | None = None):
        self._form = form or IntakeForm()
        self._photos = photos if photos is not None else PhotoSet()
        self._photos.add(list(self._form.photos))

    @property
    def form(self) -> IntakeForm:
        """A snapshot of the current form, photos included."""
        snapshot = self._form.model_copy(deep=True)
        snapshot.photos = self._photos.photos
        return snapshot

    def get(self, field_name: str) -> Any:
        section, attr = self._resolve(field_name)
        return getattr(getattr(self._form, section), attr)

    def update(self, field_name: str, value: Any) -> None:
        """Replace a single field; every other field is left as it was.

        Package selection and custom service text are mutually exclusive:
        filling one in clears the other.

        Raises:
            ValueError: If ``field_name`` is unknown or ``value`` does not fit it
        """
        section, attr = self._resolve(field_name)
        setattr(getattr(self._form, section), attr, value)

        if field_name == "service_package_ids" and self._form.service.service_package_ids:
            self._form.service.custom_service = ""
        elif field_name == "custom_service" and (value or "").strip():
            self._form.service.service_package_ids = []

    def toggle_package(self, package_id: str) -> list[str]:
        """Select or deselect one package, returning the new selection."""
        selected = list(self._form.service.service_package_ids)
        if package_id in selected:
            selected.remove(package_id)
        else:
            selected.append(package_id)
        self.update("service_package_ids", selected)
        return self._form.service.service_package_ids

    def add_photos(self, files: list[PhotoAttachment]) -> PhotoBatchResult:
        return self._photos.add(files)

    def remove_photo(self, index: int) -> PhotoAttachment:
        return self._photos.remove(index)

    def reset(self) -> None:
        self._form = IntakeForm()
        self._photos.clear()

    @staticmethod
    def _resolve(field_name: str) -> tuple[str, str]:
        try:
            return FIELD_MAP[field_name]
        except KeyError:
            raise ValueError(f"Unknown intake form field: {field_name}")


class IntakeWizard:
    """Six-step repair intake flow ending in a single submission."""

    FIRST_STEP = IntakeStep.SERVICE_SELECTION
    LAST_STEP = IntakeStep.CONTACT

    def __init__(
        self,
        repair_service: RepairRequestService,
        identity: Identity | None = None,
        package_id: str | None = None,
        origin_path: str = "/repairs/request",
        store: IntakeFormStore | None = None,
    ):
        """Start a wizard.

        Args:
            repair_service: Coordinator that persists and notifies on submit
            identity: The signed-in caller, if any; prefills contact fields
            package_id: Package chosen before entering the wizard, if any
            origin_path: Where to come back to after a sign-in redirect
            store: Existing form store (a fresh one is created otherwise)
        """
        self.repair_service = repair_service
        self.identity = identity
        self.origin_path = origin_path
        self.store = store or IntakeFormStore()
        self.idempotency_key = str(ULID())
        self.last_error: str | None = None
        self.outcome: SubmissionOutcome | None = None

        self._step = self.FIRST_STEP
        self._in_flight = False
        self._submitted = False

        if package_id:
            self.store.update("service_package_ids", [package_id])
        if identity:
            if identity.display_name:
                self.store.update("customer_name", identity.display_name)
            if identity.email:
                self.store.update("customer_email", identity.email)

    @property
    def current_step(self) -> IntakeStep:
        return self._step

    @property
    def is_submitted(self) -> bool:
        return self._submitted

    @property
    def is_submitting(self) -> bool:
        return self._in_flight

    def is_last_step(self) -> bool:
        return self._step == self.LAST_STEP

    def advance(self) -> ValidationResult:
        """Move to the next step if the current one validates.

        On the last step this is a no-op that still reports the validation
        result; use ``submit`` to finish.
        """
        result = validate_step(self._step, self.store.form)
        if not result.ok:
            self.last_error = result.message
            return result

        self.last_error = None
        if not self.is_last_step():
            self._step = IntakeStep(self._step + 1)
        return result

    def retreat(self) -> IntakeStep:
        """Go back one step (never before the first)."""
        if self._step > self.FIRST_STEP:
            self._step = IntakeStep(self._step - 1)
        return self._step

    def submit(self) -> SubmissionOutcome:
        """Hand the form to the coordinator from the last step.

        Only one submission runs at a time. The form is torn down once the
        coordinator reports DONE and kept intact on every other outcome so
        the user can correct it and retry with the same idempotency key.
        """
        if self._submitted:
            return SubmissionOutcome(state=SubmissionState.DONE, error=ALREADY_SUBMITTED)
        if self._in_flight:
            return SubmissionOutcome(state=SubmissionState.SUBMITTING, error=SUBMISSION_IN_PROGRESS)
        if not self.is_last_step():
            self.last_error = FINAL_STEP_REQUIRED
            return SubmissionOutcome(state=SubmissionState.INVALID, error=FINAL_STEP_REQUIRED)

        self._in_flight = True
        try:
            outcome = self.repair_service.submit(
                self.store.form,
                self.identity,
                current_step=self._step,
                idempotency_key=self.idempotency_key,
                origin_path=self.origin_path,
            )
        finally:
            self._in_flight = False

        self.outcome = outcome
        self.last_error = outcome.error
        if outcome.state == SubmissionState.DONE:
            self._submitted = True
            self.store.reset()
            logger.info("Repair intake %s submitted", self.idempotency_key)
        return outcome
