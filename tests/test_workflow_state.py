"""
Unit tests for the workflow state machine.
"""
import itertools

import pytest

from switchboard.routing.schemas import HandlerId, HandoffEvent, WorkflowStage
from switchboard.session.state import ALLOWED_TRANSITIONS, WorkflowState


def test_initial_state():
    state = WorkflowState()

    assert state.stage == WorkflowStage.RESEARCH
    assert state.domains_touched == set()
    assert state.handoff_chain == []
    assert state.active_handler is None
    assert state.brief is None


def test_forward_cycle():
    state = WorkflowState()

    assert state.advance(WorkflowStage.COMPRESSION)
    assert state.advance(WorkflowStage.IMPLEMENTATION)
    assert state.advance(WorkflowStage.RESEARCH)
    assert state.stage == WorkflowStage.RESEARCH


@pytest.mark.parametrize(
    "current,target",
    [
        pair for pair in itertools.permutations(WorkflowStage, 2)
        if pair not in ALLOWED_TRANSITIONS
    ],
)
def test_disallowed_transitions_ignored(current, target):
    state = WorkflowState(stage=current)

    assert not state.advance(target)
    assert state.stage == current


def test_same_stage_is_noop():
    state = WorkflowState()
    assert not state.advance(WorkflowStage.RESEARCH)


def test_domains_only_counted_during_research():
    state = WorkflowState()
    state.record_invocation(HandlerId.CONFIG, is_domain=True)
    state.record_invocation(HandlerId.COMPRESSION, is_domain=False)

    state.advance(WorkflowStage.COMPRESSION)
    state.record_invocation(HandlerId.UI, is_domain=True)

    assert state.domains_touched == {HandlerId.CONFIG}


def test_domains_touched_is_monotonic_within_research():
    state = WorkflowState()
    for handler in (HandlerId.CONFIG, HandlerId.UI, HandlerId.CONFIG):
        before = set(state.domains_touched)
        state.record_invocation(handler, is_domain=True)
        assert before <= state.domains_touched
    assert len(state.domains_touched) == 2


def test_mark_brief_ready():
    state = WorkflowState(stage=WorkflowStage.COMPRESSION)
    state.add_finding(HandlerId.CONFIG, "use ConfigFile")

    assert state.mark_brief_ready("Goal: save settings")

    assert state.stage == WorkflowStage.IMPLEMENTATION
    assert state.brief == "Goal: save settings"
    assert state.findings == []


def test_mark_brief_ready_requires_compression_stage():
    state = WorkflowState()

    assert not state.mark_brief_ready("too early")
    assert state.stage == WorkflowStage.RESEARCH
    assert state.brief is None


def test_open_research_gap():
    state = WorkflowState(stage=WorkflowStage.IMPLEMENTATION, brief="Goal")

    assert state.open_research_gap()

    assert state.stage == WorkflowStage.RESEARCH
    assert state.gap_open
    assert state.brief == "Goal"


def test_open_research_gap_outside_implementation():
    state = WorkflowState()
    assert not state.open_research_gap()
    assert not state.gap_open


def test_chain_bookkeeping():
    state = WorkflowState()
    first = HandoffEvent(source=HandlerId.CONFIG, target=HandlerId.UI, sequence=state.next_sequence)
    state.append_event(first)
    state.active_handler = HandlerId.UI

    assert state.open_chain() == [first]
    assert state.next_sequence == 2

    state.close_chain()

    assert state.open_chain() == []
    assert state.handoff_chain == [first]
    assert state.active_handler is None


def test_snapshot_is_detached():
    state = WorkflowState()
    state.record_invocation(HandlerId.CONFIG, is_domain=True)
    snapshot = state.snapshot()

    state.record_invocation(HandlerId.UI, is_domain=True)

    assert snapshot.domains_touched == frozenset({HandlerId.CONFIG})
    with pytest.raises(Exception):
        snapshot.stage = WorkflowStage.IMPLEMENTATION


def test_reset():
    state = WorkflowState(stage=WorkflowStage.IMPLEMENTATION, brief="Goal", gap_open=True)
    state.domains_touched.add(HandlerId.UI)
    state.append_event(HandoffEvent(source=HandlerId.CONFIG, target=HandlerId.UI, sequence=1))
    state.chain_start = 1

    state.reset()

    assert state == WorkflowState()
