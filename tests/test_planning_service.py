"""
Tests for the planning service.

The service is exercised against an in-memory SQLite database so that room
resolution, dependent counting and balance aggregation run real queries.
"""

from datetime import date
from unittest.mock import patch

import pytest

from savings_planner.database.models import (
    AccountSnapshot,
    Child,
    ContributionRoom,
    ManualAccount,
    User,
)
from savings_planner.models.allocator import AllocationPolicy, Category
from savings_planner.models.numeric import InvalidInput
from savings_planner.models.projector import GrowthScenario, RoundingMode
from savings_planner.services.planning_service import PlanningService


@pytest.fixture
def populated_user(db_session, test_user):
    """A user with accounts, room for two years, children and snapshots."""
    db_session.add_all(
        [
            ManualAccount(user_id=test_user.id, name="TFSA Main", type="TFSA", balance=2200),
            ManualAccount(user_id=test_user.id, name="RRSP Main", type="RRSP", balance=1550),
            ManualAccount(user_id=test_user.id, name="Margin", type="MARGIN", balance=320),
            ContributionRoom(
                user_id=test_user.id,
                year=2025,
                tfsa=7000,
                rrsp=18000,
                tfsa_deposited=1000,
                rrsp_deposited=0,
            ),
            ContributionRoom(user_id=test_user.id, year=2024, tfsa=100, rrsp=100),
            Child(user_id=test_user.id, name="Ada", birth_year=2018),
            Child(user_id=test_user.id, name="Ben", birth_year=2005),
            AccountSnapshot(user_id=test_user.id, taken_on=date(2025, 2, 1), total=3900),
            AccountSnapshot(user_id=test_user.id, taken_on=date(2025, 1, 1), total=3500),
        ]
    )
    db_session.commit()
    return test_user


class TestRoomResolution:
    """Test remaining room lookup by explicit year."""

    def test_remaining_room_subtracts_deposits(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        room = service.remaining_room(populated_user.id, 2025)

        assert room == {Category.TFSA: 6000.0, Category.RRSP: 18000.0}

    def test_year_selects_record(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        assert service.remaining_room(populated_user.id, 2024) == {
            Category.TFSA: 100.0,
            Category.RRSP: 100.0,
        }

    def test_missing_year_means_zero_room(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        assert service.remaining_room(populated_user.id, 2030) == {
            Category.TFSA: 0.0,
            Category.RRSP: 0.0,
        }

    def test_over_deposit_floors_at_zero(self, db_session, test_user):
        db_session.add(
            ContributionRoom(
                user_id=test_user.id, year=2025, tfsa=500, rrsp=0, tfsa_deposited=800
            )
        )
        db_session.commit()
        service = PlanningService(db=db_session)

        assert service.remaining_room(test_user.id, 2025)[Category.TFSA] == 0.0

    def test_rows_are_scoped_to_user(self, db_session, populated_user):
        other = User(id="someone-else")
        db_session.add(other)
        db_session.commit()
        service = PlanningService(db=db_session)

        assert service.remaining_room(other.id, 2025)[Category.TFSA] == 0.0
        assert service.dependent_count(other.id, 2025) == 0


class TestDependents:
    """Test RESP beneficiary counting."""

    def test_only_eligible_children_counted(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        # Born 2005 turns 20 in 2025 and no longer attracts grants.
        assert service.dependent_count(populated_user.id, 2025) == 1
        assert service.dependent_count(populated_user.id, 2022) == 2

    def test_unborn_children_not_counted(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        assert service.dependent_count(populated_user.id, 2010) == 1


class TestBalances:
    def test_balances_by_type(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        by_type = service.balances_by_type(populated_user.id)

        assert by_type["TFSA"] == 2200.0
        assert by_type["RRSP"] == 1550.0
        assert by_type["MARGIN"] == 320.0
        assert by_type["RESP"] == 0.0
        assert sum(by_type.values()) == 4070.0

    def test_balances_are_rounded_to_cents(self, db_session, test_user):
        db_session.add_all(
            [
                ManualAccount(user_id=test_user.id, name="A", type="TFSA", balance=0.1),
                ManualAccount(user_id=test_user.id, name="B", type="TFSA", balance=0.2),
            ]
        )
        db_session.commit()
        service = PlanningService(db=db_session)

        assert service.balances_by_type(test_user.id)["TFSA"] == 0.3
        plan = service.plan_for_user(test_user.id, 100, 2025, 1)
        assert plan["total"] == 0.3

    def test_history_oldest_first(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        assert service.snapshot_history(populated_user.id) == [
            {"taken_on": "2025-01-01", "total": 3500.0},
            {"taken_on": "2025-02-01", "total": 3900.0},
        ]


class TestPlanForUser:
    """Test the complete user plan."""

    def test_plan(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        plan = service.plan_for_user(
            populated_user.id,
            monthly_budget=1000,
            year=2025,
            years=1,
            scenario=GrowthScenario.CONSERVATIVE,
        )

        assert plan["year"] == 2025
        assert plan["scenario"] == "conservative"
        assert plan["allocation"]["allocation_by_category"] == {
            "resp": 208.33,
            "tfsa": 500.0,
            "rrsp": 291.67,
            "margin": 0.0,
        }
        assert plan["total"] == 4070.0
        assert plan["projection"]["horizon_months"] == 12
        assert plan["projection"]["points"][0]["value"] == 4070.0
        assert plan["projection"]["final_value"] > 4070.0 + 12 * 1000
        assert len(plan["history"]) == 2

    def test_net_debt_projects_from_zero(self, db_session, test_user):
        """A negative net balance does not reject the plan."""
        db_session.add_all(
            [
                ManualAccount(user_id=test_user.id, name="TFSA", type="TFSA", balance=1000),
                ManualAccount(
                    user_id=test_user.id, name="Margin", type="MARGIN", balance=-5000
                ),
            ]
        )
        db_session.commit()
        service = PlanningService(db=db_session)

        plan = service.plan_for_user(test_user.id, 100, 2025, 1)

        assert plan["total"] == -4000.0
        assert plan["balances_by_type"]["MARGIN"] == -5000.0
        assert plan["projection"]["points"][0]["value"] == 0.0
        assert plan["projection"]["horizon_months"] == 12

    def test_policy_and_rounding_are_injected(self, db_session, populated_user):
        policy = AllocationPolicy(matched_annual_ceiling_per_dependent=1200)
        service = PlanningService(
            db=db_session, policy=policy, rounding=RoundingMode.AT_OUTPUT
        )

        plan = service.plan_for_user(populated_user.id, 1000, 2025, 1)

        assert plan["allocation"]["allocation_by_category"]["resp"] == 100.0
        assert service.projector.rounding is RoundingMode.AT_OUTPUT

    def test_negative_budget_propagates(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        with pytest.raises(ValueError):
            service.plan_for_user(populated_user.id, -1, 2025, 1)

    def test_invalid_input_is_logged(self, db_session, populated_user):
        service = PlanningService(db=db_session)

        with patch.object(service.logger, "error") as mock_error:
            with pytest.raises(InvalidInput):
                service.plan_for_user(populated_user.id, 100, 2025, float("nan"))

        mock_error.assert_called_once()

    def test_opens_session_when_not_given(self, db_session):
        with patch(
            "savings_planner.services.planning_service.get_db",
            return_value=iter([db_session]),
        ):
            service = PlanningService()

        assert service.db is db_session
