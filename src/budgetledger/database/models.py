"""SQLAlchemy models for the budgetledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


class PurchaseEntry(Base):
    """Purchase entry model."""

    __tablename__ = "purchase_entries"

    id = Column(String(32), primary_key=True)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String, nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    note = Column(String, nullable=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )


class BudgetAllocation(Base):
    """Monthly budget allocation model."""

    __tablename__ = "budget_allocations"

    id = Column(String(32), primary_key=True)
    category = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    is_historical = Column(Boolean, default=False, nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # One allocation per category and month
    __table_args__ = (
        UniqueConstraint("category", "month", "year", name="uq_allocation_category_month"),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Background jobs write through the same session from worker threads
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
