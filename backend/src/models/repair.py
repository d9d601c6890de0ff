"""Repair service data models: intake form sections and stored requests."""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IntakeStep(IntEnum):
    """Ordered steps of the repair intake wizard."""

    SERVICE_SELECTION = 1
    VEHICLE_INFO = 2
    PROBLEM_DESCRIPTION = 3
    PHOTO_UPLOAD = 4
    APPOINTMENT = 5
    CONTACT = 6

    @property
    def title(self) -> str:
        return _STEP_TITLES[self]


_STEP_TITLES = {
    IntakeStep.SERVICE_SELECTION: "Service",
    IntakeStep.VEHICLE_INFO: "Vehicle",
    IntakeStep.PROBLEM_DESCRIPTION: "Problem",
    IntakeStep.PHOTO_UPLOAD: "Photos",
    IntakeStep.APPOINTMENT: "Appointment",
    IntakeStep.CONTACT: "Contact",
}


class UrgencyLevel(str, Enum):
    """How soon the customer needs the vehicle looked at."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class ServiceLocation(str, Enum):
    """Where the work happens."""

    DROP_OFF = "drop-off"  # Customer brings the car to the garage
    MOBILE = "mobile"  # Mechanic travels to the customer


class RepairStatus(str, Enum):
    """Lifecycle of a repair request, from intake to pickup."""

    RECEIVED = "received"
    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    DIAGNOSIS = "diagnosis"
    QUOTE_PROVIDED = "quote_provided"
    APPROVED = "approved"
    PARTS_ORDERED = "parts_ordered"
    IN_PROGRESS = "in_progress"
    QUALITY_CHECK = "quality_check"
    READY_PICKUP = "ready_pickup"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ---------------------------------------------------------------------------
# Intake form sections (one per wizard step)
# ---------------------------------------------------------------------------


class ServiceSelection(BaseModel):
    """Step 1: catalogue packages and/or a free-text custom service."""

    service_package_ids: list[str] = Field(default_factory=list)
    custom_service: str = ""

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("service_package_ids")
    @classmethod
    def collapse_duplicates(cls, v: list[str]) -> list[str]:
        """Selection is a set; keep first-seen order for display."""
        return list(dict.fromkeys(pid for pid in v if pid))


class VehicleInfo(BaseModel):
    """Step 2: the vehicle to be serviced."""

    make: str = ""
    model: str = ""
    year: int | None = None
    mileage: int | None = Field(None, ge=0)
    license_plate: str = ""

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("year", "mileage", mode="before")
    @classmethod
    def empty_string_is_none(cls, v):
        return _blank_to_none(v)


class ProblemDetails(BaseModel):
    """Step 3: what is wrong and how urgent it is."""

    description: str = ""
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM

    model_config = ConfigDict(validate_assignment=True)


class PhotoAttachment(BaseModel):
    """Step 4: a picked image, kept as metadata only (never uploaded here)."""

    filename: str
    content_type: str
    size_bytes: int = Field(..., ge=0)


class AppointmentSlot(BaseModel):
    """Step 5: preferred date (YYYY-MM-DD) and time of day (HH:MM)."""

    date: str = ""
    time: str = ""
    service_location: ServiceLocation = ServiceLocation.DROP_OFF

    model_config = ConfigDict(validate_assignment=True)


class ContactInfo(BaseModel):
    """Step 6: how to reach the customer."""

    name: str = ""
    email: str = ""
    phone: str = ""
    notes: str = ""

    model_config = ConfigDict(validate_assignment=True)


class IntakeForm(BaseModel):
    """All sections of the intake wizard, joined for submission."""

    service: ServiceSelection = Field(default_factory=ServiceSelection)
    vehicle: VehicleInfo = Field(default_factory=VehicleInfo)
    problem: ProblemDetails = Field(default_factory=ProblemDetails)
    photos: list[PhotoAttachment] = Field(default_factory=list)
    appointment: AppointmentSlot = Field(default_factory=AppointmentSlot)
    contact: ContactInfo = Field(default_factory=ContactInfo)


# ---------------------------------------------------------------------------
# Catalogue and stored records
# ---------------------------------------------------------------------------


class ServicePackage(BaseModel):
    """A fixed-price service offered in the catalogue."""

    package_id: str = Field(..., description="Unique package identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="What the package covers")
    price: float = Field(..., ge=0, description="Price in XAF")
    duration_minutes: int = Field(default=60, ge=0)
    category: str = Field(default="general")
    includes: list[str] = Field(default_factory=list)
    image_url: str | None = None
    is_active: bool = True


class RepairRequest(BaseModel):
    """A submitted repair request as stored in the repair_requests table."""

    request_id: str = Field(..., description="Idempotency key supplied at submission")
    user_id: str = Field(..., description="Customer who submitted the request")

    service_package_ids: list[str] = Field(default_factory=list)
    service_package_id: str | None = Field(None, description="First selected package")

    vehicle_make: str
    vehicle_model: str
    vehicle_year: int | None = None
    mileage: int | None = None
    license_plate: str | None = None

    problem_description: str = ""
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    status: RepairStatus = RepairStatus.RECEIVED

    appointment_date: str | None = None
    appointment_time: str | None = None
    service_location: ServiceLocation = ServiceLocation.DROP_OFF

    customer_name: str
    customer_email: str
    customer_phone: str
    photo_urls: list[str] = Field(default_factory=list)
    notes: str | None = None

    # Filled in by the workshop
    estimated_cost: float | None = None
    final_cost: float | None = None
    assigned_mechanic_id: str | None = None
    admin_notes: str | None = None

    created_at: str
    updated_at: str
    scheduled_at: str | None = None
    completed_at: str | None = None

    model_config = ConfigDict(use_enum_values=True)


class RepairSubmission(BaseModel):
    """Request body for submitting the intake wizard over HTTP."""

    form: IntakeForm
    idempotency_key: str = Field(..., min_length=8, max_length=64)
    origin_path: str = Field(default="/repairs/request", max_length=200)


class RepairStatusUpdate(BaseModel):
    """Admin request body for moving a request along its lifecycle."""

    status: RepairStatus
    admin_notes: str | None = Field(None, max_length=2000)
    estimated_cost: float | None = Field(None, ge=0)
    final_cost: float | None = Field(None, ge=0)


class MechanicAssignment(BaseModel):
    """Admin request body for assigning a mechanic."""

    mechanic_id: str = Field(..., min_length=1)
