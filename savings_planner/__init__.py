"""Savings Planner Flask Application Factory."""

from typing import Optional

from flask import Flask

from savings_planner.config import get_global_settings
from savings_planner.models.allocator import AllocationPolicy
from savings_planner.models.projector import RoundingMode


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_name: Configuration name (development, testing, production);
            overrides APP_ENV when given

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Configuration from Pydantic Settings
    settings = get_global_settings()
    app_env = config_name or settings.app_env
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["DATABASE_URL"] = settings.db_url
    app.config["ENV"] = settings.flask_env
    app.config["DEBUG"] = app_env == "development"
    app.config["TESTING"] = app_env == "testing"

    # Planning engine configuration
    app.config["ALLOCATION_POLICY"] = AllocationPolicy.from_settings(settings)
    app.config["PROJECTION_ROUNDING"] = RoundingMode(settings.projection_rounding)
    app.config["DEFAULT_GROWTH_SCENARIO"] = settings.default_growth_scenario
    app.config["DEFAULT_PROJECTION_YEARS"] = settings.default_projection_years

    app.logger.setLevel(settings.log_level)

    # Register blueprints
    from savings_planner.blueprints.health import health_bp
    from savings_planner.blueprints.plan import plan_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(plan_bp)

    return app
