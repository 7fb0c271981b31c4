"""
Pydantic models for Switchboard routing.

Value objects that cross component boundaries are frozen. The only mutable
routing state is WorkflowState, which lives in switchboard.session.state and
is owned by the router.
"""
from enum import Enum
from typing import FrozenSet, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class HandlerId(str, Enum):
    """Closed set of specialists the router can invoke."""
    COMPRESSION = "compression"
    IMPLEMENTATION = "implementation"
    CONFIG = "config"
    UI = "ui"
    NETWORKING = "networking"
    API = "api"
    ANALYSIS = "analysis"
    ARCHITECTURE = "architecture"


class WorkflowStage(str, Enum):
    """Session macro-phase."""
    RESEARCH = "research"
    COMPRESSION = "compression"
    IMPLEMENTATION = "implementation"


class DecisionReason(str, Enum):
    """Why a handler was (or was not) selected."""
    RULE_MATCH = "rule_match"
    EXPLICIT_OVERRIDE = "explicit_override"
    HANDOFF_FOLLOW = "handoff_follow"
    NO_MATCH = "no_match"


class HandoffKind(str, Enum):
    HANDOFF = "handoff"
    RESEARCH_GAP = "research_gap"
    GAP_RESOLVED = "gap_resolved"


# Structural predicates a rule may carry in addition to its lexical triggers.
RuleCondition = Literal["domain_threshold", "brief_present"]


class Request(BaseModel):
    """A single user request bound to a session."""

    text: str
    session_id: str

    model_config = ConfigDict(frozen=True)


class HandlerSpec(BaseModel):
    """
    One entry of the handler registry.

    The registry is the source of truth for the rule table: each spec yields
    exactly one routing rule.
    """

    handler_id: HandlerId
    display_name: str
    tier: int = Field(..., ge=1, le=4, description="Priority tier, 1 is checked first")
    triggers: List[str] = Field(default_factory=list, description="Regex trigger set")
    specificity_rank: int = Field(
        ..., description="Higher rank wins same-tier conflicts"
    )
    aliases: List[str] = Field(
        default_factory=list, description="Extra names accepted by 'route to <name>'"
    )
    condition: Optional[RuleCondition] = None
    active_stages: List[WorkflowStage] = Field(
        default_factory=lambda: list(WorkflowStage)
    )
    counts_as_domain: bool = Field(
        False, description="Invocations during research count toward domain coverage"
    )

    model_config = ConfigDict(extra="forbid")


class RoutingDecision(BaseModel):
    """Output of the classifier, consumed by the invocation step."""

    selected_handler: Optional[HandlerId] = None
    reason: DecisionReason
    tier: Optional[int] = None
    matched: Optional[str] = Field(
        None, description="Trigger text or condition that produced the match"
    )

    model_config = ConfigDict(frozen=True)


class HandoffEvent(BaseModel):
    """A followed handoff. Appended to the chain, never mutated."""

    source: HandlerId
    target: HandlerId
    justification: str = ""
    sequence: int
    kind: HandoffKind = HandoffKind.HANDOFF

    model_config = ConfigDict(frozen=True)


class Finding(BaseModel):
    """Research output of a domain handler, kept for the compression step."""

    handler: HandlerId
    content: str

    model_config = ConfigDict(frozen=True)


class WorkflowStateSnapshot(BaseModel):
    """Read-only view of a session's workflow state handed to handlers."""

    stage: WorkflowStage
    domains_touched: FrozenSet[HandlerId] = frozenset()
    handoff_chain: Tuple[HandoffEvent, ...] = ()
    active_handler: Optional[HandlerId] = None
    brief: Optional[str] = None
    findings: Tuple[Finding, ...] = ()

    model_config = ConfigDict(frozen=True)


class HandlerResult(BaseModel):
    """What a handler returns. It can recommend a handoff but never invoke one."""

    content: str
    handoff_directive: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TraceEntry(BaseModel):
    """One row of the decision trail reported with every response."""

    step: int
    event: str
    handler: Optional[HandlerId] = None
    detail: str = ""


class RoutingDiagnostic(BaseModel):
    """Structured description of a routing failure."""

    kind: str
    message: str
    details: dict = Field(default_factory=dict)


class FinalResponse(BaseModel):
    """Terminal result of routing one request."""

    session_id: str
    content: str
    handler: Optional[HandlerId] = None
    reason: Optional[DecisionReason] = None
    stage: WorkflowStage
    hops: int = 0
    needs_clarification: bool = False
    error: Optional[RoutingDiagnostic] = None
    trace: List[TraceEntry] = Field(default_factory=list)
