"""Health check blueprint."""

from flask import Blueprint, Response, jsonify

health_bp = Blueprint("health", __name__)

SERVICE_NAME = "savings-planner"


@health_bp.route("/healthz")
def health_check() -> Response:
    """Health check endpoint.

    Returns:
        JSON response with status and service name
    """
    return jsonify({"status": "ok", "service": SERVICE_NAME})
