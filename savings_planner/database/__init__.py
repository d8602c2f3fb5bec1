"""Database models and configuration for the savings planner."""

from .base import Base, get_db, get_engine, get_session
from .models import AccountSnapshot, Child, ContributionRoom, ManualAccount, User

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session",
    "User",
    "ManualAccount",
    "ContributionRoom",
    "Child",
    "AccountSnapshot",
]
