"""Car value estimator models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VehicleCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class AccidentHistory(str, Enum):
    NO = "no"
    MINOR = "minor"
    YES = "yes"


class ValuationRequest(BaseModel):
    """Inputs to the quick car value estimate."""

    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int = Field(..., ge=1950, le=2100)
    mileage: int = Field(..., ge=0, description="Odometer reading in km")
    condition: VehicleCondition = VehicleCondition.GOOD
    accident_history: AccidentHistory = AccidentHistory.NO
    owners: int = Field(default=1, ge=1)

    model_config = ConfigDict(use_enum_values=True)


class ValueEstimate(BaseModel):
    """Estimated market value in XAF with a +/-10% band."""

    estimated_value: int
    min_value: int
    max_value: int
    currency: str = "XAF"
