"""
Unit tests for same-tier conflict resolution.
"""
from itertools import permutations

import pytest

from switchboard.routing.conflict import ConflictResolver
from switchboard.routing.errors import AmbiguousMatchError
from switchboard.routing.rule_table import RuleTable
from switchboard.routing.schemas import HandlerId, HandlerSpec


@pytest.fixture
def resolver():
    return ConflictResolver()


def test_single_match_wins(resolver, rule_table):
    rule = rule_table.get_rule(HandlerId.API)
    assert resolver.resolve([rule]) is rule


def test_config_beats_api(resolver, rule_table):
    """A config-library match is more specific than a generic API match."""
    rules = [rule_table.get_rule(HandlerId.API), rule_table.get_rule(HandlerId.CONFIG)]
    assert resolver.resolve(rules).handler_id == HandlerId.CONFIG


def test_analysis_beats_architecture(resolver, rule_table):
    rules = [rule_table.get_rule(HandlerId.ARCHITECTURE), rule_table.get_rule(HandlerId.ANALYSIS)]
    assert resolver.resolve(rules).handler_id == HandlerId.ANALYSIS


def test_resolution_ignores_registration_order(resolver, rule_table):
    """Every ordering of the tier-3 rules yields the same winner."""
    tier3 = rule_table.rules_for_tier(3)
    winners = {resolver.resolve(list(order)).handler_id for order in permutations(tier3)}
    assert winners == {HandlerId.CONFIG}


def test_every_pair_has_a_winner(resolver, rule_table):
    """The precedence matrix of the built-in registry is total."""
    for tier in rule_table.tiers:
        rules = rule_table.rules_for_tier(tier)
        for first in rules:
            for second in rules:
                if first is second:
                    continue
                winner = resolver.resolve([first, second])
                assert winner is max(first, second, key=lambda r: r.specificity)


def test_tie_raises_ambiguous(resolver):
    table = RuleTable([
        HandlerSpec(handler_id=HandlerId.UI, display_name="UI", tier=3,
                    triggers=["menu"], specificity_rank=10),
        HandlerSpec(handler_id=HandlerId.API, display_name="API", tier=3,
                    triggers=["menu"], specificity_rank=10),
    ])
    with pytest.raises(AmbiguousMatchError) as exc_info:
        resolver.resolve(table.rules_for_tier(3))

    assert exc_info.value.tier == 3
    assert exc_info.value.candidates == ["api", "ui"]
    assert exc_info.value.kind == "ambiguous_match"


def test_empty_match_set_rejected(resolver):
    with pytest.raises(ValueError):
        resolver.resolve([])


def test_cross_tier_resolution_rejected(resolver, rule_table):
    rules = [rule_table.get_rule(HandlerId.UI), rule_table.get_rule(HandlerId.ARCHITECTURE)]
    with pytest.raises(ValueError, match="per tier"):
        resolver.resolve(rules)
