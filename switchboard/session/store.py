"""
In-memory session store holding one WorkflowState per session.

Nothing is persisted: ending a session or restarting the process discards
its workflow state.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List
import logging

from .state import WorkflowState

logger = logging.getLogger(__name__)


@dataclass
class SessionMeta:
    """Metadata about a routing session."""
    session_id: str
    created_at: datetime
    last_active: datetime
    request_count: int
    stage: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat(),
            "request_count": self.request_count,
            "stage": self.stage,
        }


@dataclass
class _SessionRecord:
    created_at: datetime
    last_active: datetime
    request_count: int = 0
    state: WorkflowState = field(default_factory=WorkflowState)


class SessionStore:
    """Process-local storage for routing sessions."""

    def __init__(self):
        self._sessions: Dict[str, _SessionRecord] = {}

    def create_session(self) -> str:
        """
        Create a new session with a fresh research-stage state.

        Returns:
            session_id: UUID string
        """
        session_id = str(uuid.uuid4())
        now = datetime.utcnow()
        self._sessions[session_id] = _SessionRecord(created_at=now, last_active=now)
        logger.info(f"Created session {session_id}")
        return session_id

    def get_state(self, session_id: str) -> WorkflowState:
        """
        Get the mutable workflow state of a session.

        Raises:
            ValueError: If session doesn't exist
        """
        record = self._sessions.get(session_id)
        if record is None:
            raise ValueError(f"Session {session_id} not found")
        return record.state

    def touch(self, session_id: str) -> None:
        """
        Record activity on a session.

        Raises:
            ValueError: If session doesn't exist
        """
        record = self._sessions.get(session_id)
        if record is None:
            raise ValueError(f"Session {session_id} not found")
        record.last_active = datetime.utcnow()
        record.request_count += 1

    def get_meta(self, session_id: str) -> SessionMeta:
        """
        Raises:
            ValueError: If session doesn't exist
        """
        record = self._sessions.get(session_id)
        if record is None:
            raise ValueError(f"Session {session_id} not found")
        return self._meta(session_id, record)

    @staticmethod
    def _meta(session_id: str, record: _SessionRecord) -> SessionMeta:
        return SessionMeta(
            session_id=session_id,
            created_at=record.created_at,
            last_active=record.last_active,
            request_count=record.request_count,
            stage=record.state.stage.value,
        )

    def list_sessions(self) -> List[SessionMeta]:
        """
        List all sessions with metadata.

        Returns:
            List of SessionMeta objects, ordered by last_active (most recent first)
        """
        metas = [self._meta(sid, record) for sid, record in self._sessions.items()]
        metas.sort(key=lambda meta: meta.last_active, reverse=True)
        return metas

    def delete_session(self, session_id: str) -> bool:
        """
        End a session, resetting and discarding its workflow state.

        Returns:
            True if session was deleted, False if not found
        """
        record = self._sessions.pop(session_id, None)
        if record is None:
            logger.warning(f"Session {session_id} not found for deletion")
            return False

        record.state.reset()
        logger.info(f"Deleted session {session_id}")
        return True

    def cleanup_expired(self, timeout_minutes: int = 30) -> int:
        """
        Delete sessions that have been inactive for longer than timeout.

        Returns:
            Number of sessions deleted
        """
        cutoff = datetime.utcnow() - timedelta(minutes=timeout_minutes)
        expired = [
            sid for sid, record in self._sessions.items()
            if record.last_active < cutoff
        ]
        for session_id in expired:
            self.delete_session(session_id)

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")

        return len(expired)

    def session_exists(self, session_id: str) -> bool:
        return session_id in self._sessions
