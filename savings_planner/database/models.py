"""
SQLAlchemy database models for the savings planner.

Every row is owned by a user; queries always filter on ``user_id``. The
identity itself comes from the upstream auth provider, so ``users.id`` is the
provider's opaque string id.
"""

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base

ACCOUNT_TYPES = ("RESP", "TFSA", "RRSP", "MARGIN", "OTHER")


class User(Base):
    """Authenticated user known to the planner."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    accounts = relationship(
        "ManualAccount", back_populates="user", cascade="all, delete-orphan"
    )
    rooms = relationship(
        "ContributionRoom", back_populates="user", cascade="all, delete-orphan"
    )
    children = relationship("Child", back_populates="user", cascade="all, delete-orphan")
    snapshots = relationship(
        "AccountSnapshot", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(id='{self.id}', email='{self.email}')>"


class ManualAccount(Base):
    """Investment account whose balance the user enters by hand."""

    __tablename__ = "manual_accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False, default="OTHER")
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (
        CheckConstraint(
            "type IN ('RESP', 'TFSA', 'RRSP', 'MARGIN', 'OTHER')", name="ck_account_type"
        ),
        Index("idx_manual_accounts_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<ManualAccount(id={self.id}, type='{self.type}', balance={self.balance})>"


class ContributionRoom(Base):
    """Annual TFSA/RRSP room for one user and calendar year."""

    __tablename__ = "contribution_rooms"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    year = Column(Integer, nullable=False)
    tfsa = Column(Numeric(15, 2), nullable=False, default=0)
    rrsp = Column(Numeric(15, 2), nullable=False, default=0)
    tfsa_deposited = Column(Numeric(15, 2), nullable=False, default=0)
    rrsp_deposited = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user = relationship("User", back_populates="rooms")

    __table_args__ = (
        UniqueConstraint("user_id", "year", name="uq_contribution_rooms_user_year"),
        CheckConstraint("year >= 1900 AND year <= 2100", name="ck_room_year_range"),
    )

    def __repr__(self):
        return (
            f"<ContributionRoom(user_id='{self.user_id}', year={self.year}, "
            f"tfsa={self.tfsa}, rrsp={self.rrsp})>"
        )


class Child(Base):
    """Dependent eligible for RESP grant matching."""

    __tablename__ = "children"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255))
    birth_year = Column(Integer, nullable=False)

    user = relationship("User", back_populates="children")

    __table_args__ = (
        CheckConstraint("birth_year >= 1900 AND birth_year <= 2100", name="ck_birth_year"),
    )

    def __repr__(self):
        return f"<Child(id={self.id}, birth_year={self.birth_year})>"


class AccountSnapshot(Base):
    """Total portfolio value recorded on a given day."""

    __tablename__ = "account_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    taken_on = Column(Date, nullable=False, default=date.today)
    total = Column(Numeric(15, 2), nullable=False)

    user = relationship("User", back_populates="snapshots")

    __table_args__ = (
        UniqueConstraint("user_id", "taken_on", name="uq_account_snapshots_user_day"),
    )

    def __repr__(self):
        return f"<AccountSnapshot(taken_on={self.taken_on}, total={self.total})>"
