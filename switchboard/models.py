"""
HTTP request/response models for the Switchboard API.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, StringConstraints

from .routing.schemas import WorkflowStateSnapshot


class RouteRequest(BaseModel):
    """Raw user input for the router."""
    user_input: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    session_id: Optional[str] = None


class SessionInfo(BaseModel):
    """Metadata about a routing session."""
    session_id: str
    created_at: datetime
    last_active: datetime
    request_count: int
    stage: str


class SessionDetail(BaseModel):
    """A session with its current workflow state."""
    session: SessionInfo
    state: WorkflowStateSnapshot


class HandlerListing(BaseModel):
    count: int
    handlers: List[Dict[str, Any]]
