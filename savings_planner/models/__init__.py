"""Planning engine: monthly allocation and growth projection."""

from .allocator import (
    AllocationPolicy,
    AllocationRequest,
    AllocationResult,
    Allocator,
    Category,
    ROOM_LIMITED_CATEGORIES,
    allocate,
)
from .numeric import (
    InvalidInput,
    ensure_finite,
    ensure_non_negative,
    monthly_from_annual,
    round_currency,
)
from .projector import (
    MAX_HORIZON_MONTHS,
    GrowthScenario,
    ProjectionPoint,
    ProjectionRequest,
    ProjectionSeries,
    Projector,
    RoundingMode,
    horizon_months_for_years,
    project,
)

__all__ = [
    "MAX_HORIZON_MONTHS",
    "AllocationPolicy",
    "AllocationRequest",
    "AllocationResult",
    "Allocator",
    "Category",
    "ROOM_LIMITED_CATEGORIES",
    "allocate",
    "InvalidInput",
    "ensure_finite",
    "ensure_non_negative",
    "monthly_from_annual",
    "round_currency",
    "GrowthScenario",
    "ProjectionPoint",
    "ProjectionRequest",
    "ProjectionSeries",
    "Projector",
    "RoundingMode",
    "horizon_months_for_years",
    "project",
]
