"""
Same-tier conflict resolution.

The winner is the rule with the highest specificity rank. Registration order
never breaks a tie: an unresolved tie is a configuration defect and is
raised as AmbiguousMatchError.
"""
import logging
from typing import Sequence

from .errors import AmbiguousMatchError
from .rule_table import RoutingRule

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Picks one rule out of several that matched within the same tier."""

    def resolve(self, matches: Sequence[RoutingRule]) -> RoutingRule:
        """
        Return the most specific rule.

        Args:
            matches: Non-empty list of rules from a single tier.

        Raises:
            ValueError: if ``matches`` is empty or spans several tiers.
            AmbiguousMatchError: if the highest rank is shared.
        """
        if not matches:
            raise ValueError("Cannot resolve an empty match set")

        tiers = {rule.tier for rule in matches}
        if len(tiers) != 1:
            raise ValueError(f"Conflict resolution is per tier, got tiers {sorted(tiers)}")

        if len(matches) == 1:
            return matches[0]

        top = max(rule.specificity for rule in matches)
        leaders = [rule for rule in matches if rule.specificity == top]
        if len(leaders) > 1:
            raise AmbiguousMatchError(
                tier=leaders[0].tier,
                candidates=sorted(rule.handler_id.value for rule in leaders),
            )

        winner = leaders[0]
        losers = [rule.handler_id.value for rule in matches if rule is not winner]
        logger.debug(
            f"Conflict in tier {winner.tier}: '{winner.handler_id.value}' "
            f"(rank {winner.specificity}) beats {losers}"
        )
        return winner
