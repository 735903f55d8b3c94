"""
SQLAlchemy models for database persistence.

Defines the database schema for closed interview sessions and their turns.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class InterviewSessionModel(Base):
    """Database model for closed interview sessions."""

    __tablename__ = "interview_sessions"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[str] = mapped_column(String(50), nullable=False)
    # Stored in the analysis-record shape: {"Correctness": {"score": "8/10", ...}, ...}
    analysis: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    evaluation_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    raw_evaluation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_now_utc,
        nullable=False,
    )

    # Relationships
    turns: Mapped[list["InterviewSessionTurnModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="InterviewSessionTurnModel.sequence",
    )


class InterviewSessionTurnModel(Base):
    """Database model for interview conversation turns."""

    __tablename__ = "interview_session_turns"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("interview_sessions.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_now_utc,
        nullable=False,
    )

    # Relationships
    session: Mapped["InterviewSessionModel"] = relationship(back_populates="turns")
