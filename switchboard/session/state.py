"""
Workflow state tracker.

One WorkflowState per session. Only the router mutates it; handlers see a
frozen WorkflowStateSnapshot.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..routing.schemas import (
    Finding,
    HandlerId,
    HandoffEvent,
    WorkflowStage,
    WorkflowStateSnapshot,
)

logger = logging.getLogger(__name__)

# The only stage changes the machine accepts. implementation -> research is
# the single backward edge, taken on a research gap.
ALLOWED_TRANSITIONS = {
    (WorkflowStage.RESEARCH, WorkflowStage.COMPRESSION),
    (WorkflowStage.COMPRESSION, WorkflowStage.IMPLEMENTATION),
    (WorkflowStage.IMPLEMENTATION, WorkflowStage.RESEARCH),
}


@dataclass
class WorkflowState:
    """Mutable, session-scoped routing state."""
    stage: WorkflowStage = WorkflowStage.RESEARCH
    domains_touched: Set[HandlerId] = field(default_factory=set)
    handoff_chain: List[HandoffEvent] = field(default_factory=list)
    active_handler: Optional[HandlerId] = None
    brief: Optional[str] = None
    findings: List[Finding] = field(default_factory=list)
    # Index into handoff_chain where the unresolved chain begins.
    chain_start: int = 0
    gap_open: bool = False

    def advance(self, target: WorkflowStage) -> bool:
        """
        Move to ``target`` if the transition is allowed.

        Returns:
            True if the stage changed, False if the request was ignored.
        """
        if target == self.stage:
            return False
        if (self.stage, target) not in ALLOWED_TRANSITIONS:
            logger.warning(
                f"Ignoring stage transition {self.stage.value} -> {target.value}"
            )
            return False
        logger.info(f"Stage transition {self.stage.value} -> {target.value}")
        self.stage = target
        return True

    def record_invocation(self, handler_id: HandlerId, is_domain: bool) -> None:
        """Count a domain handler toward coverage while researching."""
        if is_domain and self.stage == WorkflowStage.RESEARCH:
            self.domains_touched.add(handler_id)

    def add_finding(self, handler_id: HandlerId, content: str) -> None:
        self.findings.append(Finding(handler=handler_id, content=content))

    def mark_brief_ready(self, brief: str) -> bool:
        """Store the implementation brief and enter the implementation stage."""
        if not self.advance(WorkflowStage.IMPLEMENTATION):
            return False
        self.brief = brief
        self.findings.clear()
        return True

    def open_research_gap(self) -> bool:
        """Take the backward edge after the implementer reports missing research."""
        if not self.advance(WorkflowStage.RESEARCH):
            return False
        self.gap_open = True
        return True

    @property
    def next_sequence(self) -> int:
        return len(self.handoff_chain) + 1

    def open_chain(self) -> List[HandoffEvent]:
        """Handoff events since the last terminal response."""
        return self.handoff_chain[self.chain_start:]

    def append_event(self, event: HandoffEvent) -> None:
        self.handoff_chain.append(event)

    def close_chain(self) -> None:
        """Mark the current chain as resolved and clear the active handler."""
        self.chain_start = len(self.handoff_chain)
        self.active_handler = None
        self.gap_open = False

    def snapshot(self) -> WorkflowStateSnapshot:
        return WorkflowStateSnapshot(
            stage=self.stage,
            domains_touched=frozenset(self.domains_touched),
            handoff_chain=tuple(self.handoff_chain),
            active_handler=self.active_handler,
            brief=self.brief,
            findings=tuple(self.findings),
        )

    def reset(self) -> None:
        """Return to a fresh research-stage state."""
        self.stage = WorkflowStage.RESEARCH
        self.domains_touched.clear()
        self.handoff_chain.clear()
        self.active_handler = None
        self.brief = None
        self.findings.clear()
        self.chain_start = 0
        self.gap_open = False
