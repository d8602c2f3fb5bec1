"""
Planning blueprint exposing the allocator and projector over JSON.

The stateless endpoints take every input in the request body. The user-scoped
endpoint trusts the ``X-User-Id`` header set by the upstream auth gateway and
reads the user's stored room, dependents and balances.
"""

from datetime import date
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from savings_planner.models.allocator import AllocationRequest, Allocator
from savings_planner.models.numeric import InvalidInput, ensure_finite
from savings_planner.models.projector import (
    MAX_HORIZON_YEARS,
    GrowthScenario,
    ProjectionRequest,
    Projector,
    horizon_months_for_years,
)
from savings_planner.services.planning_service import PlanningService

plan_bp = Blueprint("plan", __name__, url_prefix="/api/plan")

USER_HEADER = "X-User-Id"


def _allocator() -> Allocator:
    return Allocator(current_app.config["ALLOCATION_POLICY"])


def _projector() -> Projector:
    return Projector(current_app.config["PROJECTION_ROUNDING"])


def _scenario(value: Optional[str]) -> GrowthScenario:
    """Resolve a scenario name, falling back to the configured default."""
    name = value or current_app.config["DEFAULT_GROWTH_SCENARIO"]
    try:
        return GrowthScenario(str(name).lower())
    except ValueError:
        allowed = [s.value for s in GrowthScenario]
        raise InvalidInput(f"scenario must be one of {allowed}, got {name!r}")


def _years(value: Any) -> float:
    if value is None:
        return float(current_app.config["DEFAULT_PROJECTION_YEARS"])
    try:
        years = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"years must be a number, got {value!r}")
    ensure_finite("years", years)
    if years > MAX_HORIZON_YEARS:
        raise InvalidInput(f"years must be at most {MAX_HORIZON_YEARS}, got {years}")
    return years


def _invalid(e: Exception) -> Any:
    return jsonify({"error": "Invalid input", "message": str(e)}), 400


def _projection_request(data: Dict[str, Any]) -> ProjectionRequest:
    """Build a projection request from a horizon and a rate or scenario."""
    horizon_months = data.get("horizon_months")
    if horizon_months is None:
        horizon_months = horizon_months_for_years(_years(data.get("years")))

    annual_growth_rate = data.get("annual_growth_rate")
    if annual_growth_rate is None:
        annual_growth_rate = _scenario(data.get("scenario")).annual_rate

    return ProjectionRequest.model_validate(
        {
            "start_value": data.get("start_value", 0),
            "monthly_contribution": data.get("monthly_contribution", 0),
            "horizon_months": horizon_months,
            "annual_growth_rate": annual_growth_rate,
        }
    )


@plan_bp.route("/allocate", methods=["POST"])
def allocate_budget() -> Any:
    """Split a monthly budget across RESP, TFSA, RRSP and Margin.

    Returns:
        JSON response with the allocation, percentages and rationale
    """
    try:
        data = request.get_json(silent=True) or {}
        allocation_request = AllocationRequest.model_validate(
            {
                "monthly_budget": data.get("monthly_budget", 0),
                "dependent_count": data.get("dependent_count", 0),
                "room_by_category": data.get("room") or {},
            }
        )
        result = _allocator().allocate(allocation_request)
        return jsonify(result.to_dict()), 200

    except (ValidationError, InvalidInput) as e:
        return _invalid(e)
    except Exception as e:
        current_app.logger.error(f"Error allocating budget: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@plan_bp.route("/project", methods=["POST"])
def project_growth() -> Any:
    """Project a portfolio forward under monthly compounding.

    Returns:
        JSON response with the month-by-month series
    """
    try:
        data = request.get_json(silent=True) or {}
        series = _projector().project(_projection_request(data))
        return jsonify(series.to_dict()), 200

    except (ValidationError, InvalidInput) as e:
        return _invalid(e)
    except Exception as e:
        current_app.logger.error(f"Error projecting growth: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@plan_bp.route("/compute", methods=["POST"])
def compute_plan() -> Any:
    """Allocate a monthly amount and project that amount saved from zero.

    Returns:
        JSON response with ``allocation`` and ``projection``
    """
    try:
        data = request.get_json(silent=True) or {}
        monthly = data.get("monthly", 0)
        allocation_request = AllocationRequest.model_validate(
            {
                "monthly_budget": monthly,
                "dependent_count": data.get("dependent_count", 0),
                "room_by_category": {
                    "tfsa": data.get("tfsa_room", 0),
                    "rrsp": data.get("rrsp_room", 0),
                },
            }
        )
        projection_request = _projection_request(
            {
                "start_value": 0,
                "monthly_contribution": monthly,
                "years": data.get("years"),
                "scenario": data.get("scenario"),
            }
        )

        allocation = _allocator().allocate(allocation_request)
        projection = _projector().project(projection_request)
        return (
            jsonify(
                {"allocation": allocation.to_dict(), "projection": projection.to_dict()}
            ),
            200,
        )

    except (ValidationError, InvalidInput) as e:
        return _invalid(e)
    except Exception as e:
        current_app.logger.error(f"Error computing plan: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@plan_bp.route("", methods=["GET"])
def user_plan() -> Any:
    """Plan for the authenticated user from their stored data.

    Query args:
        monthly_budget: Savings available each month (required)
        year: Calendar year whose room applies (defaults to this year)
        years: Projection horizon in years
        scenario: conservative, base or aggressive

    Returns:
        JSON response with allocation, projection, balances and history
    """
    user_id = request.headers.get(USER_HEADER)
    if not user_id:
        return jsonify({"error": "Unauthorized"}), 401

    try:
        monthly_budget = request.args.get("monthly_budget", type=float)
        if monthly_budget is None:
            return jsonify({"error": "monthly_budget is required"}), 400

        year = request.args.get("year", type=int) or date.today().year
        years = _years(request.args.get("years"))
        scenario = _scenario(request.args.get("scenario"))

        service = PlanningService(
            policy=current_app.config["ALLOCATION_POLICY"],
            rounding=current_app.config["PROJECTION_ROUNDING"],
        )
        plan = service.plan_for_user(user_id, monthly_budget, year, years, scenario)
        return jsonify(plan), 200

    except (ValidationError, InvalidInput) as e:
        return _invalid(e)
    except Exception as e:
        current_app.logger.error(f"Error building user plan: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500
