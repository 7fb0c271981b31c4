"""
Rule table built once from the handler registry.

Rules are immutable. Ordering inside a tier is by specificity rank; the
declaration position is kept only so decisions can be audited against the
registry file.
"""
import logging
import re
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Pattern, Sequence, Tuple

from .schemas import HandlerId, HandlerSpec, RuleCondition, WorkflowStage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingRule:
    """A compiled routing rule targeting exactly one handler."""
    handler_id: HandlerId
    tier: int
    specificity: int
    triggers: Tuple[Pattern, ...]
    condition: Optional[RuleCondition]
    active_stages: FrozenSet[WorkflowStage]
    position: int

    def match(self, text: str) -> Optional[str]:
        """Return the first trigger text found in ``text``, or None."""
        for pattern in self.triggers:
            found = pattern.search(text)
            if found:
                return found.group(0)
        return None

    def is_active(self, stage: WorkflowStage) -> bool:
        return stage in self.active_stages

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.tier, -self.specificity)


def _normalize_name(name: str) -> str:
    return re.sub(r"[\s\-/&]+", "_", name.strip().lower()).strip("_")


class RuleTable:
    """Ordered, read-only registry of routing rules."""

    def __init__(self, specs: Sequence[HandlerSpec]):
        if not specs:
            raise ValueError("Handler registry is empty")

        self._specs: Dict[HandlerId, HandlerSpec] = {}
        self._rules: List[RoutingRule] = []
        self._names: Dict[str, HandlerId] = {}

        for position, spec in enumerate(specs):
            if spec.handler_id in self._specs:
                raise ValueError(f"Handler '{spec.handler_id.value}' is registered twice")
            self._specs[spec.handler_id] = spec
            self._rules.append(self._compile(spec, position))
            self._register_names(spec)

        gaps = self.precedence_gaps()
        for first, second in gaps:
            logger.warning(
                f"RuleTable: no precedence between '{first.value}' and '{second.value}' "
                f"(same tier, same rank); overlapping requests will be ambiguous"
            )
        logger.info(f"RuleTable built with {len(self._rules)} rules, {len(gaps)} precedence gaps")

    @staticmethod
    def _compile(spec: HandlerSpec, position: int) -> RoutingRule:
        compiled = []
        for trigger in spec.triggers:
            try:
                compiled.append(re.compile(trigger, re.IGNORECASE))
            except re.error as exc:
                raise ValueError(
                    f"Invalid trigger {trigger!r} for handler '{spec.handler_id.value}': {exc}"
                ) from exc
        return RoutingRule(
            handler_id=spec.handler_id,
            tier=spec.tier,
            specificity=spec.specificity_rank,
            triggers=tuple(compiled),
            condition=spec.condition,
            active_stages=frozenset(spec.active_stages),
            position=position,
        )

    def _register_names(self, spec: HandlerSpec) -> None:
        names = [spec.handler_id.value, spec.display_name, *spec.aliases]
        for raw in names:
            name = _normalize_name(raw)
            owner = self._names.get(name)
            if owner is not None and owner != spec.handler_id:
                raise ValueError(
                    f"Name '{raw}' is claimed by both '{owner.value}' and '{spec.handler_id.value}'"
                )
            self._names[name] = spec.handler_id

    @property
    def rules(self) -> List[RoutingRule]:
        """Rules in declaration order."""
        return list(self._rules)

    @property
    def specs(self) -> List[HandlerSpec]:
        return list(self._specs.values())

    @property
    def tiers(self) -> List[int]:
        return sorted({rule.tier for rule in self._rules})

    def rules_for_tier(self, tier: int) -> List[RoutingRule]:
        """Rules of one tier in declaration order."""
        return [rule for rule in self._rules if rule.tier == tier]

    def get_rule(self, handler_id: HandlerId) -> Optional[RoutingRule]:
        for rule in self._rules:
            if rule.handler_id == handler_id:
                return rule
        return None

    def get_spec(self, handler_id: HandlerId) -> Optional[HandlerSpec]:
        return self._specs.get(handler_id)

    def handler_ids(self) -> List[HandlerId]:
        return list(self._specs.keys())

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._specs

    def resolve_name(self, name: str) -> Optional[HandlerId]:
        """Map a handler id, display name or alias to a registered HandlerId."""
        return self._names.get(_normalize_name(name))

    def is_domain(self, handler_id: HandlerId) -> bool:
        spec = self._specs.get(handler_id)
        return bool(spec and spec.counts_as_domain)

    def precedence_gaps(self) -> List[Tuple[HandlerId, HandlerId]]:
        """Same-tier handler pairs with no defined winner."""
        gaps = []
        for tier in self.tiers:
            for first, second in combinations(self.rules_for_tier(tier), 2):
                if first.specificity == second.specificity:
                    gaps.append((first.handler_id, second.handler_id))
        return gaps
