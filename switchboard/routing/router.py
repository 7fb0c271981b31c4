"""
Switchboard Router Core.

Receives a request, classifies it (or follows the pending handoff), invokes
exactly one handler at a time, and interprets the handler's output. This is
the only module that calls SpecialistHandler.handle().

Routing failures never propagate out of route(): they are turned into a
FinalResponse carrying a diagnostic and the decision trail.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from .classifier import DEFAULT_DOMAIN_THRESHOLD, Classifier
from .conflict import ConflictResolver
from .errors import (
    AmbiguousMatchError,
    ChainLengthExceededError,
    HandlerFailureError,
    RoutingError,
)
from .handoff import HandoffValidator, parse_handoff, strip_directive
from .rule_table import RuleTable
from .schemas import (
    DecisionReason,
    FinalResponse,
    HandlerId,
    HandlerResult,
    HandoffEvent,
    HandoffKind,
    Request,
    RoutingDecision,
    RoutingDiagnostic,
    TraceEntry,
    WorkflowStage,
)
from ..session.state import WorkflowState
from ..session.store import SessionStore
from ..specialists.registry import SpecialistRegistry

logger = logging.getLogger(__name__)

BRIEF_READY_MARKER = "BRIEF READY"
DEFAULT_MAX_HOPS = 6
MAX_HOPS_CEILING = 8


@dataclass
class _RoutingRun:
    """Bookkeeping for one route() call."""
    trace: List[TraceEntry] = field(default_factory=list)
    hops: int = 0
    path: List[HandlerId] = field(default_factory=list)
    last_handler: Optional[HandlerId] = None
    last_content: Optional[str] = None
    last_reason: Optional[DecisionReason] = None

    def add(self, event: str, handler: Optional[HandlerId] = None, detail: str = "") -> None:
        self.trace.append(
            TraceEntry(step=len(self.trace) + 1, event=event, handler=handler, detail=detail)
        )


def has_brief_marker(content: str) -> bool:
    return any(line.strip() == BRIEF_READY_MARKER for line in content.splitlines())


def remove_brief_marker(content: str) -> str:
    lines = [line for line in content.splitlines() if line.strip() != BRIEF_READY_MARKER]
    return "\n".join(lines).strip()


class RouterCore:
    """Single-active-handler dispatcher with bounded handoff chains."""

    def __init__(
        self,
        rule_table: RuleTable,
        handlers: SpecialistRegistry,
        sessions: Optional[SessionStore] = None,
        max_hops: int = DEFAULT_MAX_HOPS,
        domain_threshold: int = DEFAULT_DOMAIN_THRESHOLD,
    ):
        if not 1 <= max_hops <= MAX_HOPS_CEILING:
            raise ValueError(f"max_hops must be between 1 and {MAX_HOPS_CEILING}, got {max_hops}")

        self.rule_table = rule_table
        self.handlers = handlers
        self.sessions = sessions or SessionStore()
        self.max_hops = max_hops
        self.classifier = Classifier(rule_table, ConflictResolver(), domain_threshold)
        self.validator = HandoffValidator(rule_table)

        missing = [h.value for h in rule_table.handler_ids() if h not in handlers]
        if missing:
            logger.warning(f"No handler instance registered for: {missing}")

        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    # ------------------------------------------------------------------
    # Session boundary
    # ------------------------------------------------------------------

    def start_session(self) -> str:
        return self.sessions.create_session()

    def end_session(self, session_id: str) -> bool:
        return self.sessions.delete_session(session_id)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, request: Request) -> FinalResponse:
        """
        Route one request to completion, including its whole handoff chain.

        Raises:
            ValueError: if the request's session does not exist.
            RuntimeError: if called from inside a handler while routing.
        """
        if self._owner == threading.get_ident():
            raise RuntimeError("Nested routing is not permitted while a handler is active")

        state = self.sessions.get_state(request.session_id)

        with self._lock:
            self._owner = threading.get_ident()
            run = _RoutingRun()
            try:
                self.sessions.touch(request.session_id)
                return self._route_chain(request, state, run)
            except AmbiguousMatchError as exc:
                logger.warning(f"Ambiguous match for session {request.session_id}: {exc}")
                return self._clarification(request, state, run, exc)
            except RoutingError as exc:
                logger.error(f"Routing failed for session {request.session_id}: {exc}")
                return self._failure(request, state, run, exc)
            finally:
                state.close_chain()
                self._owner = None

    def _route_chain(
        self, request: Request, state: WorkflowState, run: _RoutingRun
    ) -> FinalResponse:
        while True:
            if state.active_handler is None:
                decision = self.classifier.classify(request, state)
                run.add(
                    "classified",
                    decision.selected_handler,
                    f"reason={decision.reason.value} tier={decision.tier} matched={decision.matched!r}",
                )
                if decision.reason == DecisionReason.NO_MATCH:
                    return self._direct_response(request, state, run)
                state.active_handler = decision.selected_handler
            else:
                decision = RoutingDecision(
                    selected_handler=state.active_handler,
                    reason=DecisionReason.HANDOFF_FOLLOW,
                )

            handler_id = state.active_handler
            run.last_reason = decision.reason
            result = self._invoke(handler_id, request, state, run)
            content = strip_directive(result)
            content = self._absorb_output(handler_id, content, state, run)
            run.last_handler = handler_id
            run.last_content = content

            directive = parse_handoff(result)
            if directive is not None:
                event = self.validator.validate(
                    directive, handler_id, state.open_chain(), state.next_sequence
                )
                if event.kind == HandoffKind.RESEARCH_GAP:
                    self._check_hop_bound(event, run)
                    self._open_gap(event, state, run)
                self._follow(event, state, run)
                continue

            if state.gap_open and handler_id != HandlerId.COMPRESSION:
                event = self._gap_resolved_event(handler_id, state)
                self._follow(event, state, run)
                continue

            run.add("terminal", handler_id, f"hops={run.hops}")
            return FinalResponse(
                session_id=request.session_id,
                content=content,
                handler=handler_id,
                reason=decision.reason,
                stage=state.stage,
                hops=run.hops,
                trace=run.trace,
            )

    def _invoke(
        self, handler_id: HandlerId, request: Request, state: WorkflowState, run: _RoutingRun
    ) -> HandlerResult:
        """Invoke the active handler. The only call site of handle()."""
        handler = self.handlers.get(handler_id)
        if handler is None:
            raise HandlerFailureError(handler_id.value, "no handler instance registered")

        if handler_id == HandlerId.COMPRESSION:
            self._transition(state, WorkflowStage.COMPRESSION, run)
            state.gap_open = False
        state.record_invocation(handler_id, self.rule_table.is_domain(handler_id))

        run.path.append(handler_id)
        run.add("invoke", handler_id, f"stage={state.stage.value}")
        snapshot = state.snapshot()

        try:
            result = handler.handle(request, snapshot)
        except Exception as exc:
            logger.error(f"Handler '{handler_id.value}' raised: {exc}", exc_info=True)
            raise HandlerFailureError(handler_id.value, str(exc)) from exc

        if not isinstance(result, HandlerResult):
            raise HandlerFailureError(
                handler_id.value, f"returned {type(result).__name__}, expected HandlerResult"
            )
        return result

    def _absorb_output(
        self, handler_id: HandlerId, content: str, state: WorkflowState, run: _RoutingRun
    ) -> str:
        """Apply the state changes a handler's output implies and return the content to report."""
        if handler_id == HandlerId.COMPRESSION and has_brief_marker(content):
            brief = remove_brief_marker(content)
            if state.mark_brief_ready(brief):
                run.add("brief_ready", handler_id, f"stage={state.stage.value}")
                return brief
            logger.warning(
                f"Brief from compression rejected in stage {state.stage.value}; previous brief kept"
            )
            run.add("brief_rejected", handler_id, f"stage={state.stage.value}")
            return content

        # Findings still accrue while compression pulls in missing domain detail
        if self.rule_table.is_domain(handler_id) and state.stage in (
            WorkflowStage.RESEARCH, WorkflowStage.COMPRESSION
        ):
            state.add_finding(handler_id, content)
        return content

    def _open_gap(self, event: HandoffEvent, state: WorkflowState, run: _RoutingRun) -> None:
        if event.source != HandlerId.IMPLEMENTATION or state.stage != WorkflowStage.IMPLEMENTATION:
            logger.warning(
                f"Research gap from '{event.source.value}' in stage {state.stage.value} "
                f"followed as a plain handoff"
            )
            return
        if state.open_research_gap():
            logger.warning(
                f"Research gap: {event.target.value} needed ({event.justification or 'no reason given'})"
            )
            run.add("gap_opened", event.target, event.justification)
            run.add("stage", None, f"stage={state.stage.value}")

    def _gap_resolved_event(self, handler_id: HandlerId, state: WorkflowState) -> HandoffEvent:
        if HandlerId.COMPRESSION not in self.rule_table:
            raise HandlerFailureError(
                HandlerId.COMPRESSION.value, "not registered, cannot resume after research gap"
            )
        self.validator.check_cycle(handler_id, HandlerId.COMPRESSION, state.open_chain())
        return HandoffEvent(
            source=handler_id,
            target=HandlerId.COMPRESSION,
            justification="research gap resolved",
            sequence=state.next_sequence,
            kind=HandoffKind.GAP_RESOLVED,
        )

    def _check_hop_bound(self, event: HandoffEvent, run: _RoutingRun) -> None:
        if run.hops + 1 > self.max_hops:
            path = [h.value for h in run.path] + [event.target.value]
            raise ChainLengthExceededError(self.max_hops, path)

    def _follow(self, event: HandoffEvent, state: WorkflowState, run: _RoutingRun) -> None:
        """Count one hop and hand the chain to the event's target."""
        self._check_hop_bound(event, run)

        run.hops += 1
        state.append_event(event)
        state.active_handler = event.target
        run.add(
            event.kind.value,
            event.target,
            f"{event.source.value} -> {event.target.value}: {event.justification}",
        )

    def _transition(self, state: WorkflowState, target: WorkflowStage, run: _RoutingRun) -> None:
        if state.advance(target):
            run.add("stage", None, f"stage={target.value}")

    # ------------------------------------------------------------------
    # Terminal responses
    # ------------------------------------------------------------------

    def _direct_response(
        self, request: Request, state: WorkflowState, run: _RoutingRun
    ) -> FinalResponse:
        names = ", ".join(spec.display_name for spec in self.rule_table.specs)
        content = (
            "No specialist matched this request, so it was not routed. "
            f"Available specialists: {names}. "
            "Rephrase the request or say 'route to <specialist>'."
        )
        run.add("terminal", None, "no_match")
        return FinalResponse(
            session_id=request.session_id,
            content=content,
            reason=DecisionReason.NO_MATCH,
            stage=state.stage,
            trace=run.trace,
        )

    def _clarification(
        self,
        request: Request,
        state: WorkflowState,
        run: _RoutingRun,
        exc: AmbiguousMatchError,
    ) -> FinalResponse:
        options = " or ".join(f"'route to {name}'" for name in exc.candidates)
        run.add("ambiguous", None, exc.message)
        return FinalResponse(
            session_id=request.session_id,
            content=(
                f"This request fits several specialists equally well "
                f"({', '.join(exc.candidates)}). Which one should handle it? Reply with {options}."
            ),
            stage=state.stage,
            hops=run.hops,
            needs_clarification=True,
            error=RoutingDiagnostic(kind=exc.kind, message=exc.message, details=exc.details),
            trace=run.trace,
        )

    def _failure(
        self,
        request: Request,
        state: WorkflowState,
        run: _RoutingRun,
        exc: RoutingError,
    ) -> FinalResponse:
        run.add("error", run.last_handler, exc.message)
        if run.last_content:
            content = f"{run.last_content}\n\n[routing aborted: {exc.message}]"
        else:
            content = f"Request could not be routed: {exc.message}"
        return FinalResponse(
            session_id=request.session_id,
            content=content,
            handler=run.last_handler,
            reason=run.last_reason,
            stage=state.stage,
            hops=run.hops,
            error=RoutingDiagnostic(kind=exc.kind, message=exc.message, details=exc.details),
            trace=run.trace,
        )
