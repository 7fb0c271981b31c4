"""
Unit tests for the handler registry and the rule table built from it.
"""
import json

import pytest
from pydantic import ValidationError

from switchboard.routing.handler_registry import (
    DEFAULT_HANDLER_SPECS,
    dump_registry,
    list_handlers,
    load_registry,
)
from switchboard.routing.rule_table import RuleTable
from switchboard.routing.schemas import HandlerId, HandlerSpec, WorkflowStage


def _spec(handler_id, tier=3, rank=10, triggers=None, **extra):
    return HandlerSpec(
        handler_id=handler_id,
        display_name=handler_id.value.title(),
        tier=tier,
        triggers=triggers or [rf"\b{handler_id.value}\b"],
        specificity_rank=rank,
        **extra,
    )


def test_default_registry_covers_every_handler(rule_table):
    """Every HandlerId has exactly one rule in the built-in registry."""
    assert set(rule_table.handler_ids()) == set(HandlerId)
    assert len(rule_table.rules) == len(HandlerId)


def test_default_registry_tiers(rule_table):
    assert rule_table.tiers == [1, 2, 3, 4]
    assert [r.handler_id for r in rule_table.rules_for_tier(1)] == [HandlerId.COMPRESSION]
    assert [r.handler_id for r in rule_table.rules_for_tier(2)] == [HandlerId.IMPLEMENTATION]
    assert [r.handler_id for r in rule_table.rules_for_tier(3)] == [
        HandlerId.CONFIG, HandlerId.UI, HandlerId.NETWORKING, HandlerId.API,
    ]
    assert [r.handler_id for r in rule_table.rules_for_tier(4)] == [
        HandlerId.ANALYSIS, HandlerId.ARCHITECTURE,
    ]


def test_default_registry_has_total_precedence(rule_table):
    """No same-tier pair is left without a winner."""
    assert rule_table.precedence_gaps() == []


def test_rules_are_immutable(rule_table):
    rule = rule_table.get_rule(HandlerId.UI)
    with pytest.raises(Exception):
        rule.specificity = 99


def test_rule_match_is_case_insensitive(rule_table):
    rule = rule_table.get_rule(HandlerId.UI)
    assert rule.match("Where do I anchor the HUD?") == "HUD"
    assert rule.match("nothing relevant here") is None


def test_compression_rule_only_active_before_implementation(rule_table):
    rule = rule_table.get_rule(HandlerId.COMPRESSION)
    assert rule.is_active(WorkflowStage.RESEARCH)
    assert rule.is_active(WorkflowStage.COMPRESSION)
    assert not rule.is_active(WorkflowStage.IMPLEMENTATION)


@pytest.mark.parametrize("name,expected", [
    ("config", HandlerId.CONFIG),
    ("Settings", HandlerId.CONFIG),
    ("persistence", HandlerId.CONFIG),
    ("UI Layout", HandlerId.UI),
    ("client-server", HandlerId.NETWORKING),
    ("Research Compressor", HandlerId.COMPRESSION),
    ("coder", HandlerId.IMPLEMENTATION),
    ("review", HandlerId.ANALYSIS),
    ("design", HandlerId.ARCHITECTURE),
])
def test_resolve_name(rule_table, name, expected):
    assert rule_table.resolve_name(name) == expected


def test_resolve_unknown_name(rule_table):
    assert rule_table.resolve_name("physics") is None


def test_is_domain(rule_table):
    assert rule_table.is_domain(HandlerId.CONFIG)
    assert rule_table.is_domain(HandlerId.ARCHITECTURE)
    assert not rule_table.is_domain(HandlerId.COMPRESSION)
    assert not rule_table.is_domain(HandlerId.IMPLEMENTATION)


def test_duplicate_handler_rejected():
    with pytest.raises(ValueError, match="registered twice"):
        RuleTable([_spec(HandlerId.UI), _spec(HandlerId.UI, rank=20)])


def test_invalid_trigger_rejected():
    with pytest.raises(ValueError, match="Invalid trigger"):
        RuleTable([_spec(HandlerId.UI, triggers=["(unclosed"])])


def test_empty_registry_rejected():
    with pytest.raises(ValueError, match="empty"):
        RuleTable([])


def test_conflicting_alias_rejected():
    with pytest.raises(ValueError, match="claimed by both"):
        RuleTable([
            _spec(HandlerId.UI, aliases=["screen"]),
            _spec(HandlerId.API, rank=5, aliases=["screen"]),
        ])


def test_precedence_gaps_reported():
    """Two same-tier rules with the same rank form a gap; other tiers don't."""
    table = RuleTable([
        _spec(HandlerId.UI, tier=3, rank=10),
        _spec(HandlerId.API, tier=3, rank=10),
        _spec(HandlerId.ARCHITECTURE, tier=4, rank=10),
    ])
    assert table.precedence_gaps() == [(HandlerId.UI, HandlerId.API)]


def test_tier_out_of_range_rejected():
    with pytest.raises(ValidationError):
        _spec(HandlerId.UI, tier=5)


def test_load_registry_default_is_a_copy():
    specs = load_registry()
    specs[0].display_name = "changed"
    assert DEFAULT_HANDLER_SPECS[0].display_name != "changed"


def test_load_registry_from_json(tmp_path):
    """A dumped registry loads back into an equivalent rule table."""
    path = tmp_path / "registry.json"
    path.write_text(dump_registry(load_registry()), encoding="utf-8")

    specs = load_registry(str(path))
    table = RuleTable(specs)

    assert table.handler_ids() == [spec.handler_id for spec in DEFAULT_HANDLER_SPECS]
    assert table.get_rule(HandlerId.CONFIG).specificity == 40


def test_load_registry_rejects_unknown_handler(tmp_path):
    """Handler ids come from a closed set; unknown ones fail validation."""
    path = tmp_path / "registry.json"
    path.write_text(json.dumps([{
        "handler_id": "physics",
        "display_name": "Physics",
        "tier": 3,
        "triggers": ["collision"],
        "specificity_rank": 5,
    }]), encoding="utf-8")

    with pytest.raises(ValidationError):
        load_registry(str(path))


def test_load_registry_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_registry(str(tmp_path / "missing.json"))


def test_list_handlers(specs):
    listing = list_handlers(specs)
    assert listing[0]["handler_id"] == "compression"
    assert listing[0]["condition"] == "domain_threshold"
    assert {entry["handler_id"] for entry in listing} == {h.value for h in HandlerId}
