"""
Planning service for turning a user's stored data into a savings plan.

The service reads accounts, contribution room, children and snapshots for a
user, resolves them into allocation and projection requests for an explicit
calendar year, and runs the planning engine. It never reads the clock; the
caller decides which year is current.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from savings_planner.database.base import get_db
from savings_planner.database.models import (
    ACCOUNT_TYPES,
    AccountSnapshot,
    Child,
    ContributionRoom,
    ManualAccount,
)
from savings_planner.models.allocator import (
    AllocationPolicy,
    AllocationRequest,
    AllocationResult,
    Allocator,
    Category,
)
from savings_planner.models.numeric import round_currency
from savings_planner.models.projector import (
    GrowthScenario,
    ProjectionRequest,
    ProjectionSeries,
    Projector,
    RoundingMode,
)

logger = logging.getLogger(__name__)

# RESP grants are paid through the calendar year a beneficiary turns 17.
MAX_BENEFICIARY_AGE = 17


class PlanningService:
    """Service resolving stored user data into allocation and projection runs."""

    def __init__(
        self,
        db: Optional[Session] = None,
        policy: Optional[AllocationPolicy] = None,
        rounding: RoundingMode = RoundingMode.PER_STEP,
    ) -> None:
        """Initialize the planning service.

        Args:
            db: Database session; a new one is opened when omitted
            policy: Allocation policy passed to the allocator
            rounding: Rounding mode passed to the projector
        """
        self.db = db if db is not None else next(get_db())
        self.allocator = Allocator(policy)
        self.projector = Projector(rounding)
        self.logger = logging.getLogger(__name__)

    def remaining_room(self, user_id: str, year: int) -> Dict[Category, float]:
        """Remaining TFSA/RRSP room for a user in a calendar year.

        A missing room record means zero room. Deposits already made this year
        are subtracted, never going below zero.
        """
        room = (
            self.db.query(ContributionRoom)
            .filter(ContributionRoom.user_id == user_id, ContributionRoom.year == year)
            .first()
        )
        if room is None:
            return {Category.TFSA: 0.0, Category.RRSP: 0.0}

        return {
            Category.TFSA: max(0.0, float(room.tfsa or 0) - float(room.tfsa_deposited or 0)),
            Category.RRSP: max(0.0, float(room.rrsp or 0) - float(room.rrsp_deposited or 0)),
        }

    def dependent_count(self, user_id: str, year: int) -> int:
        """Number of children still eligible for RESP grants in ``year``."""
        return (
            self.db.query(Child)
            .filter(
                Child.user_id == user_id,
                Child.birth_year <= year,
                Child.birth_year >= year - MAX_BENEFICIARY_AGE,
            )
            .count()
        )

    def balances_by_type(self, user_id: str) -> Dict[str, float]:
        """Sum of manual account balances per account type."""
        totals = {account_type: 0.0 for account_type in ACCOUNT_TYPES}
        accounts = (
            self.db.query(ManualAccount).filter(ManualAccount.user_id == user_id).all()
        )
        for account in accounts:
            account_type = (account.type or "OTHER").upper()
            totals[account_type] = totals.get(account_type, 0.0) + float(
                account.balance or 0
            )
        return {
            account_type: round_currency(total) for account_type, total in totals.items()
        }

    def snapshot_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Recorded portfolio totals, oldest first."""
        snapshots = (
            self.db.query(AccountSnapshot)
            .filter(AccountSnapshot.user_id == user_id)
            .order_by(AccountSnapshot.taken_on.asc())
            .all()
        )
        return [
            {"taken_on": snapshot.taken_on.isoformat(), "total": float(snapshot.total)}
            for snapshot in snapshots
        ]

    def build_allocation_request(
        self, user_id: str, monthly_budget: float, year: int
    ) -> AllocationRequest:
        """Resolve a user's room and dependents for ``year`` into a request."""
        return AllocationRequest(
            monthly_budget=monthly_budget,
            dependent_count=self.dependent_count(user_id, year),
            room_by_category=self.remaining_room(user_id, year),
        )

    def allocate(self, request: AllocationRequest) -> AllocationResult:
        return self.allocator.allocate(request)

    def project(self, request: ProjectionRequest) -> ProjectionSeries:
        return self.projector.project(request)

    def plan_for_user(
        self,
        user_id: str,
        monthly_budget: float,
        year: int,
        years: float,
        scenario: GrowthScenario = GrowthScenario.BASE,
    ) -> Dict[str, Any]:
        """Build a complete plan for a user.

        Args:
            user_id: Authenticated user identity
            monthly_budget: Savings available each month
            year: Calendar year whose room record applies
            years: Projection horizon in years
            scenario: Named growth assumption

        Returns:
            Dictionary with the allocation, the projection from the current
            total balance, balances by type and snapshot history

        Raises:
            InvalidInput: If the budget or horizon is malformed
        """
        try:
            self.logger.info(f"Building plan for user {user_id} as of {year}")

            allocation = self.allocate(
                self.build_allocation_request(user_id, monthly_budget, year)
            )

            by_type = self.balances_by_type(user_id)
            total = round_currency(sum(by_type.values()))
            # Net debt is projected from an empty portfolio.
            projection = self.project(
                ProjectionRequest.from_scenario(
                    start_value=max(0.0, total),
                    monthly_contribution=monthly_budget,
                    years=years,
                    scenario=scenario,
                )
            )

            return {
                "year": year,
                "scenario": GrowthScenario(scenario).value,
                "allocation": allocation.to_dict(),
                "projection": projection.to_dict(),
                "balances_by_type": by_type,
                "total": total,
                "history": self.snapshot_history(user_id),
            }

        except Exception as e:
            self.logger.error(f"Plan for user {user_id} failed: {str(e)}")
            raise
