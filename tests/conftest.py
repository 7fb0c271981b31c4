"""
Pytest configuration and shared fixtures for Switchboard tests.
"""
from typing import AsyncGenerator, Callable, Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from switchboard.routing.handler_registry import load_registry
from switchboard.routing.router import RouterCore
from switchboard.routing.rule_table import RuleTable
from switchboard.routing.schemas import (
    HandlerId,
    HandlerResult,
    Request,
    WorkflowStateSnapshot,
)
from switchboard.session.store import SessionStore
from switchboard.specialists.base import SpecialistHandler
from switchboard.specialists.registry import SpecialistRegistry

Script = Union[str, HandlerResult, Callable[[Request, WorkflowStateSnapshot], HandlerResult]]


class ScriptedHandler(SpecialistHandler):
    """
    Handler that replays canned outputs.

    Each call consumes the next script entry; the last entry repeats once the
    script runs out. Every call records the request and the snapshot it saw.
    """

    def __init__(self, handler_id: HandlerId, script: Optional[Sequence[Script]] = None):
        super().__init__(handler_id)
        self.script: List[Script] = list(script or [f"{handler_id.value} answer"])
        self.calls: List[Request] = []
        self.snapshots: List[WorkflowStateSnapshot] = []

    def handle(self, request: Request, state: WorkflowStateSnapshot) -> HandlerResult:
        self.calls.append(request)
        self.snapshots.append(state)
        index = min(len(self.calls) - 1, len(self.script) - 1)
        entry = self.script[index]
        if callable(entry):
            return entry(request, state)
        if isinstance(entry, HandlerResult):
            return entry
        return HandlerResult(content=entry)


@pytest.fixture
def specs():
    """The built-in handler registry."""
    return load_registry()


@pytest.fixture
def rule_table(specs):
    return RuleTable(specs)


@pytest.fixture
def make_router(rule_table):
    """
    Factory building a RouterCore over scripted handlers.

    Handlers without a script answer with '<id> answer' and no handoff.
    Returns (router, handlers-by-id).
    """
    def _make(
        scripts: Optional[Dict[HandlerId, Sequence[Script]]] = None,
        max_hops: int = 6,
        table: Optional[RuleTable] = None,
    ):
        table = table or rule_table
        scripts = scripts or {}
        handlers = {
            handler_id: ScriptedHandler(handler_id, scripts.get(handler_id))
            for handler_id in table.handler_ids()
        }
        router = RouterCore(
            rule_table=table,
            handlers=SpecialistRegistry(list(handlers.values())),
            sessions=SessionStore(),
            max_hops=max_hops,
        )
        return router, handlers

    return _make


@pytest.fixture
def test_app():
    """Provide the FastAPI app instance."""
    # Import here so logging setup only runs for tests that need the app
    from switchboard.main import app
    return app


@pytest_asyncio.fixture
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test"
    ) as client:
        yield client
