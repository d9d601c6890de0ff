"""Per-step validation rules for the repair intake wizard.

Each validator reads only the fields its own step collects and returns a
ValidationResult. Rule failures are ordinary return values; nothing here
raises for bad user input.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from models.repair import IntakeForm, IntakeStep

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Hourly slots offered by the appointment picker
APPOINTMENT_TIME_SLOTS = [f"{hour:02d}:00" for hour in range(8, 18)]

SERVICE_REQUIRED = "Please select at least one service or describe your custom needs"
VEHICLE_REQUIRED = "Please provide vehicle make and model"
PROBLEM_REQUIRED = "Please describe the problem"
APPOINTMENT_REQUIRED = "Please select appointment date and time"
CONTACT_REQUIRED = "Please fill in all contact information"
EMAIL_INVALID = "Please enter a valid email address"


@dataclass(frozen=True)
class ValidationResult:
    """Result of checking one wizard step."""

    ok: bool
    message: str | None = None

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, message: str) -> "ValidationResult":
        return cls(ok=False, message=message)

    def __bool__(self) -> bool:
        return self.ok


def _filled(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def validate_service_selection(form: IntakeForm) -> ValidationResult:
    service = form.service
    if service.service_package_ids or _filled(service.custom_service):
        return ValidationResult.passed()
    return ValidationResult.failed(SERVICE_REQUIRED)


def validate_vehicle_info(form: IntakeForm) -> ValidationResult:
    if _filled(form.vehicle.make) and _filled(form.vehicle.model):
        return ValidationResult.passed()
    return ValidationResult.failed(VEHICLE_REQUIRED)


def validate_problem_description(form: IntakeForm) -> ValidationResult:
    """A description is optional when a catalogue package already says what to do."""
    if form.service.service_package_ids or _filled(form.problem.description):
        return ValidationResult.passed()
    return ValidationResult.failed(PROBLEM_REQUIRED)


def validate_photo_upload(form: IntakeForm) -> ValidationResult:
    # Photos are optional; PhotoSet enforces per-file limits when they are added
    return ValidationResult.passed()


def validate_appointment(form: IntakeForm) -> ValidationResult:
    """Both a date and a time must be chosen.

    Dates are not compared with today here: the picker's lower bound
    (min_appointment_date) is the only guard against past appointments, and a
    slot earlier today is accepted.
    """
    if _filled(form.appointment.date) and _filled(form.appointment.time):
        return ValidationResult.passed()
    return ValidationResult.failed(APPOINTMENT_REQUIRED)


def validate_contact(form: IntakeForm) -> ValidationResult:
    contact = form.contact
    if not (_filled(contact.name) and _filled(contact.email) and _filled(contact.phone)):
        return ValidationResult.failed(CONTACT_REQUIRED)
    if not is_valid_email(contact.email):
        return ValidationResult.failed(EMAIL_INVALID)
    return ValidationResult.passed()


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


STEP_VALIDATORS: dict[IntakeStep, Callable[[IntakeForm], ValidationResult]] = {
    IntakeStep.SERVICE_SELECTION: validate_service_selection,
    IntakeStep.VEHICLE_INFO: validate_vehicle_info,
    IntakeStep.PROBLEM_DESCRIPTION: validate_problem_description,
    IntakeStep.PHOTO_UPLOAD: validate_photo_upload,
    IntakeStep.APPOINTMENT: validate_appointment,
    IntakeStep.CONTACT: validate_contact,
}


def validate_step(step: IntakeStep | int, form: IntakeForm) -> ValidationResult:
    """Run the validator for a single step.

    Raises:
        ValueError: If ``step`` is not a wizard step number.
    """
    return STEP_VALIDATORS[IntakeStep(step)](form)


def validate_form(form: IntakeForm) -> ValidationResult:
    """Run every step in wizard order and report the first failure."""
    for step in IntakeStep:
        result = validate_step(step, form)
        if not result.ok:
            return result
    return ValidationResult.passed()


def min_appointment_date(today: date | None = None) -> date:
    """Earliest date the appointment picker offers (today)."""
    return today or date.today()
