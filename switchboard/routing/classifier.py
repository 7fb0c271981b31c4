"""
Deterministic request classifier.

Order of evaluation:
  1. explicit "route to <name>" override (bypasses every tier)
  2. tiers in ascending order; within a tier every active rule is tested
     and several matches go to the conflict resolver
  3. no match -> RoutingDecision(None, NO_MATCH)

The classifier only reads the workflow state. It is a pure function of
(request text, state), so repeated calls give the same decision.
"""
import logging
import re
from typing import List, Optional, Tuple, Union

from .conflict import ConflictResolver
from .errors import UnknownHandlerError
from .rule_table import RoutingRule, RuleTable
from .schemas import (
    DecisionReason,
    HandlerId,
    Request,
    RoutingDecision,
    WorkflowStage,
    WorkflowStateSnapshot,
)
from ..session.state import WorkflowState

logger = logging.getLogger(__name__)

OVERRIDE_PATTERN = re.compile(
    r"\broute\s+(?:this\s+|it\s+)?to\s+(?:the\s+)?(?P<name>[A-Za-z][A-Za-z0-9_-]*)",
    re.IGNORECASE,
)

DEFAULT_DOMAIN_THRESHOLD = 3

StateView = Union[WorkflowState, WorkflowStateSnapshot]


class Classifier:
    """Matches a request against the rule table."""

    def __init__(
        self,
        rule_table: RuleTable,
        resolver: Optional[ConflictResolver] = None,
        domain_threshold: int = DEFAULT_DOMAIN_THRESHOLD,
    ):
        if domain_threshold < 1:
            raise ValueError("domain_threshold must be positive")
        self.rule_table = rule_table
        self.resolver = resolver or ConflictResolver()
        self.domain_threshold = domain_threshold

    def classify(self, request: Request, state: StateView) -> RoutingDecision:
        """
        Classify one request.

        Raises:
            UnknownHandlerError: override names a handler outside the registry.
            AmbiguousMatchError: same-tier tie with no precedence.
        """
        text = request.text

        override = self._resolve_override(text)
        if override is not None:
            name, handler_id = override
            logger.info(f"Explicit override to '{handler_id.value}'")
            return RoutingDecision(
                selected_handler=handler_id,
                reason=DecisionReason.EXPLICIT_OVERRIDE,
                matched=f"route to {name}",
            )

        for tier in self.rule_table.tiers:
            matches = self._match_tier(tier, text, state)
            if not matches:
                continue

            rules = [rule for rule, _ in matches]
            winner = self.resolver.resolve(rules)
            evidence = next(found for rule, found in matches if rule is winner)
            logger.info(
                f"Tier {tier} match: '{winner.handler_id.value}' on {evidence!r}"
            )
            return RoutingDecision(
                selected_handler=winner.handler_id,
                reason=DecisionReason.RULE_MATCH,
                tier=tier,
                matched=evidence,
            )

        logger.info("No rule matched")
        return RoutingDecision(reason=DecisionReason.NO_MATCH)

    def _resolve_override(self, text: str) -> Optional[Tuple[str, HandlerId]]:
        """
        Find the first override phrase naming a registered handler.

        A phrase that opens the request is a command, so an unknown name there
        is an error. Elsewhere "route to" is ordinary prose and is skipped.
        """
        for match in OVERRIDE_PATTERN.finditer(text):
            name = match.group("name")
            handler_id = self.rule_table.resolve_name(name)
            if handler_id is not None:
                return name, handler_id
            if not text[:match.start()].strip():
                raise UnknownHandlerError(
                    name, [h.value for h in self.rule_table.handler_ids()]
                )
            logger.debug(f"Ignoring 'route to {name}' in prose")
        return None

    def _match_tier(
        self, tier: int, text: str, state: StateView
    ) -> List[Tuple[RoutingRule, str]]:
        matches = []
        for rule in self.rule_table.rules_for_tier(tier):
            if not rule.is_active(state.stage):
                continue
            found = self._condition_holds(rule, state) or rule.match(text)
            if found:
                matches.append((rule, found))
        return matches

    def _condition_holds(self, rule: RoutingRule, state: StateView) -> Optional[str]:
        """Evaluate a rule's structural predicate, returning its label if it holds."""
        if rule.condition == "domain_threshold":
            if (
                state.stage == WorkflowStage.RESEARCH
                and len(state.domains_touched) >= self.domain_threshold
            ):
                return f"domains_touched>={self.domain_threshold}"
        elif rule.condition == "brief_present":
            if state.stage == WorkflowStage.IMPLEMENTATION and state.brief:
                return "brief_present"
        return None
