"""
Monthly savings allocator.

Splits a monthly savings budget across the registered account categories in a
fixed priority order: the grant-matched RESP first, then the room-limited
TFSA and RRSP, and finally the unlimited non-registered (Margin) account.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .numeric import (
    InvalidInput,
    ensure_non_negative,
    monthly_from_annual,
    round_currency,
)

if TYPE_CHECKING:
    from savings_planner.config import Settings

logger = logging.getLogger(__name__)

# Parts come from repeated float subtraction; large budgets need relative slack.
CONSERVATION_TOLERANCE = 1e-6
CONSERVATION_RTOL = 1e-12


class Category(str, Enum):
    """Account categories a monthly budget can be allocated to."""

    RESP = "resp"  # matched savings, ceiling scales with dependents
    TFSA = "tfsa"
    RRSP = "rrsp"
    MARGIN = "margin"  # unlimited fallback

    @property
    def label(self) -> str:
        return "Margin" if self is Category.MARGIN else self.name


ROOM_LIMITED_CATEGORIES = (Category.TFSA, Category.RRSP)


class AllocationPolicy(BaseModel):
    """Priority order and ceilings used by the allocator."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    matched_category: Category = Field(
        default=Category.RESP, description="Category receiving grant-matched savings"
    )
    fallback_category: Category = Field(
        default=Category.MARGIN, description="Unlimited category absorbing the rest"
    )
    matched_annual_ceiling_per_dependent: float = Field(
        default=2500.0,
        ge=0,
        description="Annual contribution per dependent that maximizes the matching grant",
    )
    room_priority: List[Category] = Field(
        default_factory=lambda: list(ROOM_LIMITED_CATEGORIES),
        description="Room-limited categories, highest priority first",
    )

    @field_validator("room_priority")
    @classmethod
    def validate_room_priority(cls, v: List[Category]) -> List[Category]:
        """Room priority must list distinct room-limited categories."""
        if len(set(v)) != len(v):
            raise ValueError("room_priority must not repeat a category")
        for category in v:
            if category not in ROOM_LIMITED_CATEGORIES:
                raise ValueError(f"{category.value} is not a room-limited category")
        return v

    @model_validator(mode="after")
    def validate_distinct_roles(self):
        if self.matched_category == self.fallback_category:
            raise ValueError("matched and fallback categories must differ")
        for category in (self.matched_category, self.fallback_category):
            if category in ROOM_LIMITED_CATEGORIES:
                raise ValueError(
                    f"{category.value} is room-limited and cannot be matched or fallback"
                )
        return self

    @property
    def matched_monthly_ceiling_per_dependent(self) -> float:
        return monthly_from_annual(self.matched_annual_ceiling_per_dependent)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AllocationPolicy":
        """Build a policy from application settings."""
        return cls(
            matched_annual_ceiling_per_dependent=settings.resp_annual_ceiling_per_dependent
        )


class AllocationRequest(BaseModel):
    """Inputs for a single allocation."""

    model_config = ConfigDict(allow_inf_nan=False)

    monthly_budget: float = Field(..., ge=0, description="Funds available this month")
    dependent_count: int = Field(
        default=0, ge=0, description="Beneficiaries eligible for the matched category"
    )
    room_by_category: Dict[Category, float] = Field(
        default_factory=dict,
        description="Remaining annual room per category; absent means zero",
    )

    @field_validator("room_by_category")
    @classmethod
    def validate_room(cls, v: Dict[Category, float]) -> Dict[Category, float]:
        for category, room in v.items():
            if room < 0:
                raise ValueError(f"Room for {category.value} must be non-negative")
        return v

    def room_for(self, category: Category) -> float:
        return self.room_by_category.get(category, 0.0)


class AllocationResult(BaseModel):
    """Split of the monthly budget plus the reasoning behind it."""

    monthly_budget: float = Field(..., ge=0, description="Budget that was allocated")
    allocation_by_category: Dict[Category, float] = Field(
        ..., description="Amount per category, full precision"
    )
    rationale: List[str] = Field(
        default_factory=list, description="One line per funded category, in order"
    )

    @model_validator(mode="after")
    def validate_conservation(self):
        missing = set(Category) - set(self.allocation_by_category)
        if missing:
            names = sorted(c.value for c in missing)
            raise ValueError(f"Allocation is missing categories: {names}")
        if any(amount < 0 for amount in self.allocation_by_category.values()):
            raise ValueError("Allocations must be non-negative")
        total = float(np.sum(list(self.allocation_by_category.values())))
        if not np.isclose(
            total,
            self.monthly_budget,
            rtol=CONSERVATION_RTOL,
            atol=CONSERVATION_TOLERANCE,
        ):
            raise ValueError(
                f"Allocations must sum to the budget {self.monthly_budget}, got {total}"
            )
        return self

    def amount_for(self, category: Category) -> float:
        return self.allocation_by_category[category]

    def rounded(self) -> Dict[Category, float]:
        """Allocation rounded to cents for display."""
        return {
            category: round_currency(self.allocation_by_category[category])
            for category in Category
        }

    def percentages(self) -> Dict[Category, float]:
        """Share of the budget per category, in percent."""
        if self.monthly_budget == 0:
            return {category: 0.0 for category in Category}
        return {
            category: round_currency(
                100 * self.allocation_by_category[category] / self.monthly_budget
            )
            for category in Category
        }

    def to_dict(self) -> Dict[str, object]:
        return {
            "monthly_budget": round_currency(self.monthly_budget),
            "allocation_by_category": {
                category.value: amount for category, amount in self.rounded().items()
            },
            "percentages": {
                category.value: pct for category, pct in self.percentages().items()
            },
            "rationale": list(self.rationale),
        }


class Allocator:
    """Greedy single-pass allocator driven by an AllocationPolicy."""

    def __init__(self, policy: Optional[AllocationPolicy] = None):
        """Initialize the allocator.

        Args:
            policy: Priority and ceiling configuration; defaults apply when omitted
        """
        self.policy = policy or AllocationPolicy()

    def allocate(self, request: AllocationRequest) -> AllocationResult:
        """Split the monthly budget across categories.

        Args:
            request: Budget, dependent count and remaining annual room

        Returns:
            AllocationResult covering every category

        Raises:
            InvalidInput: If the budget, room or dependent count is malformed
        """
        self._validate_request(request)

        policy = self.policy
        remaining = request.monthly_budget
        allocation: Dict[Category, float] = {category: 0.0 for category in Category}
        rationale: List[str] = []

        if request.dependent_count > 0 and remaining > 0:
            target = policy.matched_monthly_ceiling_per_dependent * request.dependent_count
            amount = min(remaining, target)
            if amount > 0:
                allocation[policy.matched_category] += amount
                remaining -= amount
                rationale.append(
                    f"Allocate ${amount:,.2f} to {policy.matched_category.label} to capture "
                    f"the matching grant for {request.dependent_count} dependent(s) "
                    f"(up to ${policy.matched_annual_ceiling_per_dependent:,.0f}/dependent/yr)."
                )

        for category in policy.room_priority:
            room = request.room_for(category)
            if remaining <= 0 or room <= 0:
                continue
            amount = min(remaining, monthly_from_annual(room))
            if amount > 0:
                allocation[category] += amount
                remaining -= amount
                rationale.append(
                    f"Allocate ${amount:,.2f} to {category.label} (within remaining room)."
                )

        allocation[policy.fallback_category] += remaining
        if remaining > 0:
            rationale.append(
                f"Allocate remaining ${remaining:,.2f} to non-registered "
                f"({policy.fallback_category.label})."
            )

        logger.debug("Allocated %s across %s", request.monthly_budget, allocation)
        return AllocationResult(
            monthly_budget=request.monthly_budget,
            allocation_by_category=allocation,
            rationale=rationale,
        )

    @staticmethod
    def _validate_request(request: AllocationRequest) -> None:
        """Check preconditions that model_construct or mutation could bypass."""
        ensure_non_negative("monthly_budget", request.monthly_budget)
        if isinstance(request.dependent_count, bool) or not isinstance(
            request.dependent_count, int
        ):
            raise InvalidInput("dependent_count must be an integer")
        if request.dependent_count < 0:
            raise InvalidInput("dependent_count must be non-negative")
        for category, room in request.room_by_category.items():
            ensure_non_negative(f"room for {Category(category).value}", room)


def allocate(
    request: AllocationRequest, policy: Optional[AllocationPolicy] = None
) -> AllocationResult:
    """Allocate a monthly budget with the given (or default) policy."""
    return Allocator(policy).allocate(request)
