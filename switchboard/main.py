"""
Switchboard - specialist routing server.
Main FastAPI application exposing session boundaries and request routing.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .models import HandlerListing, RouteRequest, SessionDetail, SessionInfo
from .routing.handler_registry import list_handlers, load_registry
from .routing.router import RouterCore
from .routing.rule_table import RuleTable
from .routing.schemas import FinalResponse, Request
from .session.store import SessionStore
from .specialists.registry import build_ollama_registry

# Configure logging: console always, file when LOG_FILE is set
log_handlers: list = [logging.StreamHandler()]
if settings.log_file:
    log_handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=log_handlers,
)
logger = logging.getLogger(__name__)

# Global router instance
router_core: Optional[RouterCore] = None


def build_router() -> RouterCore:
    """Assemble the rule table, specialists and session store from settings."""
    specs = load_registry(settings.switchboard_registry_path)
    rule_table = RuleTable(specs)
    handlers = build_ollama_registry(
        specs,
        model=settings.specialist_model,
        prompts_dir=settings.specialist_prompts_dir,
        temperature=settings.specialist_temperature,
        max_tokens=settings.specialist_max_tokens,
    )
    return RouterCore(
        rule_table=rule_table,
        handlers=handlers,
        sessions=SessionStore(),
        max_hops=settings.switchboard_max_handoff_hops,
        domain_threshold=settings.switchboard_domain_threshold,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global router_core

    logger.info("Starting Switchboard...")
    try:
        router_core = build_router()
        logger.info(
            f"Router initialized with {len(router_core.rule_table.specs)} handlers, "
            f"model: {settings.specialist_model}"
        )
    except Exception as exc:
        logger.error(f"Failed to initialize router: {exc}", exc_info=True)
        router_core = None

    yield

    logger.info("Shutting down Switchboard...")


app = FastAPI(
    title="Switchboard",
    description="Deterministic specialist routing with workflow tracking",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_router() -> RouterCore:
    if not router_core:
        raise HTTPException(status_code=503, detail="Router not available")
    return router_core


def _session_info(core: RouterCore, session_id: str) -> SessionInfo:
    return SessionInfo(**core.sessions.get_meta(session_id).to_dict())


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Switchboard",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    if not router_core:
        return {"status": "degraded", "router": "unavailable", "handlers": 0}
    return {
        "status": "healthy",
        "router": "ready",
        "handlers": len(router_core.handlers),
        "max_handoff_hops": router_core.max_hops,
    }


@app.get("/handlers", response_model=HandlerListing)
async def get_handlers():
    """List the handler registry in declaration order."""
    core = _require_router()
    handlers = list_handlers(core.rule_table.specs)
    return HandlerListing(count=len(handlers), handlers=handlers)


@app.post("/route", response_model=FinalResponse)
async def route_request(request: RouteRequest):
    """
    Route a request to exactly one specialist.

    - If no session_id is given, or it is unknown, a new session is created.
    - The whole handoff chain runs before the response is returned.
    - Routing failures come back as a response with an error diagnostic,
      not as an HTTP error.
    """
    core = _require_router()
    core.sessions.cleanup_expired(timeout_minutes=settings.session_timeout_minutes)

    session_id = request.session_id
    if not session_id:
        session_id = core.start_session()
        logger.info(f"Created new session: {session_id}")
    elif not core.sessions.session_exists(session_id):
        logger.warning(f"Session {session_id} not found, creating new one")
        session_id = core.start_session()

    # Specialist calls block on the LLM; keep them off the event loop
    return await asyncio.to_thread(
        core.route, Request(text=request.user_input, session_id=session_id)
    )


# Session Management Endpoints

@app.get("/sessions")
async def list_sessions():
    """
    List all sessions with metadata.

    Returns:
        Sessions ordered by last_active (most recent first)
    """
    core = _require_router()
    sessions = core.sessions.list_sessions()
    return {
        "count": len(sessions),
        "sessions": [s.to_dict() for s in sessions]
    }


@app.post("/sessions")
async def start_session():
    """Start a new session in the research stage."""
    core = _require_router()
    return {"session_id": core.start_session()}


@app.get("/sessions/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str):
    """Get a session's metadata and a snapshot of its workflow state."""
    core = _require_router()
    if not core.sessions.session_exists(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    state = core.sessions.get_state(session_id)
    return SessionDetail(session=_session_info(core, session_id), state=state.snapshot())


@app.delete("/sessions/{session_id}")
async def end_session(session_id: str):
    """End a session, discarding its workflow state."""
    core = _require_router()
    if not core.end_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    return {"status": "success", "message": f"Session {session_id} ended"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "switchboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload
    )
