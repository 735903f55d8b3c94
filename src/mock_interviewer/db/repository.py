"""
Repository pattern for database operations.

Provides a clean abstraction over SQLAlchemy for CRUD operations.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mock_interviewer.db.models import (
    Base,
    InterviewSessionModel,
    InterviewSessionTurnModel,
)
from mock_interviewer.evaluation import evaluation_from_record
from mock_interviewer.schemas import (
    ConversationTurn,
    InterviewContext,
    InterviewSession,
    TurnRole,
)

T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository for one mapped model."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    @property
    @abstractmethod
    def _model_class(self) -> type[T]:
        """Get the model class for this repository."""
        ...

    async def create(self, entity: T) -> T:
        """
        Create a new entity.

        Args:
            entity: The entity to create.

        Returns:
            The created entity.
        """
        self._session.add(entity)
        await self._session.flush()
        return entity


class SessionRepository(BaseRepository[InterviewSessionModel]):
    """Repository for interview session operations."""

    @property
    def _model_class(self) -> type[InterviewSessionModel]:
        """Get the model class."""
        return InterviewSessionModel

    async def save_session(self, session: InterviewSession) -> InterviewSessionModel:
        """
        Save a closed interview session.

        Args:
            session: Session to save.

        Returns:
            The created session model.
        """
        model = InterviewSessionModel(
            id=session.session_id,
            user_id=session.user_id,
            company=session.context.company,
            role=session.context.role,
            level=session.context.level,
            analysis=session.evaluation.to_record(),
            evaluation_available=session.evaluation_available,
            raw_evaluation=session.raw_evaluation,
            created_at=session.created_at,
        )

        for i, turn in enumerate(session.transcript):
            model.turns.append(
                InterviewSessionTurnModel(
                    id=turn.turn_id,
                    session_id=session.session_id,
                    sequence=i,
                    role=turn.role.value,
                    content=turn.content,
                    timestamp=turn.timestamp,
                )
            )

        return await self.create(model)

    async def get_recent_for_user(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[InterviewSessionModel]:
        """
        Get a user's sessions, most recent first.

        Args:
            user_id: Opaque account id.
            limit: Maximum number to return.

        Returns:
            List of sessions with their turns loaded.
        """
        model = self._model_class
        stmt = (
            select(model)
            .where(model.user_id == user_id)
            .options(selectinload(model.turns))
            .order_by(model.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def to_interview_session(model: InterviewSessionModel) -> InterviewSession:
        """
        Convert a loaded model to an InterviewSession.

        Args:
            model: Session model with turns loaded.

        Returns:
            The session record; all six categories are present.
        """
        return InterviewSession(
            session_id=model.id,
            user_id=model.user_id,
            context=InterviewContext(company=model.company, role=model.role, level=model.level),
            transcript=[
                ConversationTurn(
                    turn_id=turn.id,
                    role=TurnRole(turn.role),
                    content=turn.content,
                    timestamp=turn.timestamp,
                )
                for turn in model.turns
            ],
            evaluation=evaluation_from_record(model.analysis).with_defaults(),
            evaluation_available=model.evaluation_available,
            raw_evaluation=model.raw_evaluation,
            created_at=model.created_at,
        )
