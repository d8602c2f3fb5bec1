"""
Deterministic portfolio projection under monthly compounding.

The recurrence is::

    value[0] = start_value
    value[m] = max(0, value[m - 1] * (1 + annual_growth_rate / 12) + monthly_contribution)

Arithmetic runs in ``Decimal``. In ``round-per-step`` mode every step is
rounded to cents before feeding the next one; in ``round-at-output`` mode the
recurrence keeps full precision and only the emitted points are rounded.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .numeric import (
    MONTHS_PER_YEAR,
    InvalidInput,
    ensure_finite,
    ensure_non_negative,
    quantize_currency,
    round_currency,
    to_decimal,
)

logger = logging.getLogger(__name__)

MAX_HORIZON_MONTHS = 1200
MAX_HORIZON_YEARS = MAX_HORIZON_MONTHS // MONTHS_PER_YEAR


class GrowthScenario(str, Enum):
    """Named annual growth-rate assumptions."""

    CONSERVATIVE = "conservative"
    BASE = "base"
    AGGRESSIVE = "aggressive"

    @property
    def annual_rate(self) -> float:
        return SCENARIO_RATES[self]


SCENARIO_RATES: Dict[GrowthScenario, float] = {
    GrowthScenario.CONSERVATIVE: 0.04,
    GrowthScenario.BASE: 0.07,
    GrowthScenario.AGGRESSIVE: 0.10,
}


class RoundingMode(str, Enum):
    """Where the recurrence rounds to cents."""

    PER_STEP = "round-per-step"
    AT_OUTPUT = "round-at-output"


def horizon_months_for_years(years: float) -> int:
    """Whole months in a horizon expressed in years, at least one."""
    ensure_finite("years", years)
    return max(1, int(round(years * MONTHS_PER_YEAR)))


class ProjectionRequest(BaseModel):
    """Inputs for a projection."""

    model_config = ConfigDict(allow_inf_nan=False)

    start_value: float = Field(..., ge=0, description="Portfolio value at month 0")
    monthly_contribution: float = Field(
        default=0.0, description="Added every month; negative is a net withdrawal"
    )
    horizon_months: int = Field(
        ..., gt=0, le=MAX_HORIZON_MONTHS, description="Number of months to project"
    )
    annual_growth_rate: float = Field(
        ..., description="Annual growth as a fraction, e.g. 0.07 for 7%"
    )

    @classmethod
    def from_scenario(
        cls,
        start_value: float,
        monthly_contribution: float,
        years: float,
        scenario: GrowthScenario = GrowthScenario.BASE,
    ) -> "ProjectionRequest":
        """Build a request from a horizon in years and a named scenario."""
        return cls(
            start_value=start_value,
            monthly_contribution=monthly_contribution,
            horizon_months=horizon_months_for_years(years),
            annual_growth_rate=GrowthScenario(scenario).annual_rate,
        )


class ProjectionPoint(BaseModel):
    """Portfolio value at the end of a month."""

    month_index: int = Field(..., ge=0, description="Months since the start")
    value: float = Field(..., ge=0, description="Portfolio value at the end of the month")


class ProjectionSeries(BaseModel):
    """Month-by-month projected values, month 0 first."""

    points: List[ProjectionPoint] = Field(..., min_length=1)
    monthly_contribution: float = Field(default=0.0)
    annual_growth_rate: float = Field(default=0.0)

    @model_validator(mode="after")
    def validate_ordering(self):
        indices = [point.month_index for point in self.points]
        if indices != list(range(len(indices))):
            raise ValueError("Projection points must be indexed 0..horizon in order")
        return self

    @property
    def horizon_months(self) -> int:
        return len(self.points) - 1

    @property
    def start_value(self) -> float:
        return self.points[0].value

    @property
    def final_value(self) -> float:
        return self.points[-1].value

    @property
    def total_contributions(self) -> float:
        """Contributions scheduled over the horizon (before any floor)."""
        return round_currency(
            to_decimal(self.monthly_contribution) * self.horizon_months
        )

    @property
    def values(self) -> NDArray[np.float64]:
        return np.array([point.value for point in self.points], dtype=np.float64)

    def to_dict(self) -> Dict[str, object]:
        return {
            "horizon_months": self.horizon_months,
            "annual_growth_rate": self.annual_growth_rate,
            "monthly_contribution": self.monthly_contribution,
            "final_value": self.final_value,
            "points": [
                {"month_index": point.month_index, "value": point.value}
                for point in self.points
            ],
        }


class Projector:
    """Projects a portfolio forward with a fixed monthly contribution."""

    def __init__(self, rounding: RoundingMode = RoundingMode.PER_STEP):
        self.rounding = RoundingMode(rounding)

    def project(self, request: ProjectionRequest) -> ProjectionSeries:
        """Run the compounding recurrence.

        Args:
            request: Start value, contribution, horizon and growth rate

        Returns:
            ProjectionSeries with ``horizon_months + 1`` points

        Raises:
            InvalidInput: If the horizon is not positive or any amount is malformed
        """
        self._validate_request(request)

        monthly_rate = to_decimal(request.annual_growth_rate) / MONTHS_PER_YEAR
        growth = Decimal(1) + monthly_rate
        contribution = to_decimal(request.monthly_contribution)
        zero = Decimal(0)

        value = to_decimal(request.start_value)
        points = [ProjectionPoint(month_index=0, value=request.start_value)]
        for month in range(1, request.horizon_months + 1):
            value = max(zero, value * growth + contribution)
            if self.rounding is RoundingMode.PER_STEP:
                value = quantize_currency(value)
            points.append(
                ProjectionPoint(month_index=month, value=float(quantize_currency(value)))
            )

        logger.debug(
            "Projected %s months from %s to %s",
            request.horizon_months,
            request.start_value,
            points[-1].value,
        )
        return ProjectionSeries(
            points=points,
            monthly_contribution=request.monthly_contribution,
            annual_growth_rate=request.annual_growth_rate,
        )

    @staticmethod
    def _validate_request(request: ProjectionRequest) -> None:
        ensure_non_negative("start_value", request.start_value)
        ensure_finite("monthly_contribution", request.monthly_contribution)
        ensure_finite("annual_growth_rate", request.annual_growth_rate)
        if isinstance(request.horizon_months, bool) or not isinstance(
            request.horizon_months, int
        ):
            raise InvalidInput("horizon_months must be an integer")
        if request.horizon_months <= 0:
            raise InvalidInput(
                f"horizon_months must be positive, got {request.horizon_months}"
            )
        if request.horizon_months > MAX_HORIZON_MONTHS:
            raise InvalidInput(
                f"horizon_months must be at most {MAX_HORIZON_MONTHS}, "
                f"got {request.horizon_months}"
            )


def project(
    request: ProjectionRequest, rounding: Optional[RoundingMode] = None
) -> ProjectionSeries:
    """Project with the given (or default per-step) rounding mode."""
    return Projector(rounding or RoundingMode.PER_STEP).project(request)
