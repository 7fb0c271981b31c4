"""
Session module: per-session workflow state and the in-memory session store.
"""
from .state import WorkflowState, ALLOWED_TRANSITIONS
from .store import SessionStore, SessionMeta

__all__ = [
    "WorkflowState",
    "ALLOWED_TRANSITIONS",
    "SessionStore",
    "SessionMeta",
]
