"""
SQL-backed session store.

Wraps the session repository in its own unit of work per call and turns
SQLAlchemy failures into StorageError.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mock_interviewer.config import get_settings
from mock_interviewer.db.models import Base
from mock_interviewer.db.repository import SessionRepository
from mock_interviewer.errors import StorageError
from mock_interviewer.schemas import InterviewSession

logger = logging.getLogger(__name__)


def create_engine(
    database_url: str | None = None,
    echo: bool | None = None,
) -> AsyncEngine:
    """
    Create an async engine.

    Args:
        database_url: SQLAlchemy async URL (uses config if not provided).
        echo: Log SQL statements (defaults to settings.debug).

    Returns:
        Async engine.
    """
    settings = get_settings()
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.debug if echo is None else echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine; objects stay usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SqlSessionStore:
    """Session store persisting closed sessions through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize the store.

        Args:
            session_factory: Factory producing async sessions.
        """
        self._session_factory = session_factory

    async def save_session(self, session: InterviewSession) -> str:
        """
        Persist a closed session.

        Args:
            session: Session to persist.

        Returns:
            The stored session id.

        Raises:
            StorageError: If the write failed.
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    model = await SessionRepository(db).save_session(session)
                    saved_id = str(model.id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save session {session.session_id}: {e}")
            raise StorageError(f"Failed to save session: {e}") from e

        logger.debug(f"Stored session {saved_id}")
        return saved_id

    async def load_recent_sessions(self, user_id: str, limit: int = 20) -> list[InterviewSession]:
        """
        Load a user's sessions, most recent first.

        Args:
            user_id: Opaque account id.
            limit: Maximum number to return.

        Returns:
            Stored sessions.

        Raises:
            StorageError: If the read failed.
        """
        try:
            async with self._session_factory() as db:
                models = await SessionRepository(db).get_recent_for_user(user_id, limit=limit)
                return [SessionRepository.to_interview_session(m) for m in models]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load sessions for {user_id}: {e}")
            raise StorageError(f"Failed to load sessions: {e}") from e
