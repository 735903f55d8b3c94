"""
Database module for persistence.

Provides SQLAlchemy models, the repository pattern and the SQL-backed
session store for interview sessions.
"""

from mock_interviewer.db.models import (
    Base,
    InterviewSessionModel,
    InterviewSessionTurnModel,
)
from mock_interviewer.db.repository import SessionRepository
from mock_interviewer.db.store import (
    SqlSessionStore,
    create_engine,
    create_schema,
    create_session_factory,
)

__all__ = [
    "Base",
    "InterviewSessionModel",
    "InterviewSessionTurnModel",
    "SessionRepository",
    "SqlSessionStore",
    "create_engine",
    "create_schema",
    "create_session_factory",
]
