"""Quick car value estimate used by the car tools page."""

from datetime import UTC, datetime

from models.valuation import AccidentHistory, ValuationRequest, ValueEstimate, VehicleCondition

BASE_VALUE_XAF = 15_000_000

# Yearly depreciation: steeper for the first years of ownership
EARLY_YEARS = 5
EARLY_YEAR_RETENTION = 0.85
LATER_YEAR_RETENTION = 0.90

MILEAGE_STEP_KM = 10_000
MILEAGE_STEP_REDUCTION = 0.02

CONDITION_MULTIPLIERS = {
    VehicleCondition.EXCELLENT: 1.15,
    VehicleCondition.GOOD: 1.0,
    VehicleCondition.FAIR: 0.85,
    VehicleCondition.POOR: 0.70,
}

ACCIDENT_MULTIPLIERS = {
    AccidentHistory.NO: 1.0,
    AccidentHistory.MINOR: 0.92,
    AccidentHistory.YES: 0.85,
}

EXTRA_OWNER_REDUCTION = 0.05
RANGE_SPREAD = 0.10


class ValuationService:
    """Deterministic market value estimate in XAF."""

    def __init__(self, current_year: int | None = None):
        self.current_year = current_year

    def estimate(self, request: ValuationRequest) -> ValueEstimate:
        current_year = self.current_year or datetime.now(UTC).year
        age = max(0, current_year - request.year)

        value = float(BASE_VALUE_XAF)
        for year in range(age):
            value *= EARLY_YEAR_RETENTION if year < EARLY_YEARS else LATER_YEAR_RETENTION

        mileage_steps = request.mileage // MILEAGE_STEP_KM
        value *= max(0.0, 1 - mileage_steps * MILEAGE_STEP_REDUCTION)

        value *= CONDITION_MULTIPLIERS[VehicleCondition(request.condition)]
        value *= ACCIDENT_MULTIPLIERS[AccidentHistory(request.accident_history)]

        if request.owners > 1:
            value *= max(0.0, 1 - (request.owners - 1) * EXTRA_OWNER_REDUCTION)

        return ValueEstimate(
            estimated_value=round(value),
            min_value=round(value * (1 - RANGE_SPREAD)),
            max_value=round(value * (1 + RANGE_SPREAD)),
        )
