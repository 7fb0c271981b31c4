"""
Handoff directive parsing and validation.

Grammar (one full line, keywords case-sensitive):

    HANDOFF: route to <target>[ because <justification>]
    RESEARCH GAP: route to <target>[ because <justification>]

The directive is read from HandlerResult.handoff_directive, or from the last
non-empty line of the content when that field is empty. A line that does not
match exactly is not a directive and the handler output is final.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import CyclicHandoffError, InvalidHandoffTargetError
from .rule_table import RuleTable
from .schemas import HandlerId, HandlerResult, HandoffEvent, HandoffKind

logger = logging.getLogger(__name__)

DIRECTIVE_PATTERN = re.compile(
    r"^(?P<keyword>HANDOFF|RESEARCH GAP): route to (?P<target>[A-Za-z][A-Za-z0-9_-]*)"
    r"(?: because (?P<justification>\S.*))?$"
)

_KINDS = {
    "HANDOFF": HandoffKind.HANDOFF,
    "RESEARCH GAP": HandoffKind.RESEARCH_GAP,
}


@dataclass(frozen=True)
class ParsedDirective:
    """A syntactically valid directive whose target is not yet resolved."""
    kind: HandoffKind
    target: str
    justification: str


def _directive_line(result: HandlerResult) -> Optional[str]:
    if result.handoff_directive is not None:
        return result.handoff_directive.strip()
    for line in reversed(result.content.splitlines()):
        if line.strip():
            return line.strip()
    return None


def parse_handoff(result: HandlerResult) -> Optional[ParsedDirective]:
    """
    Extract a handoff directive from handler output.

    Returns:
        ParsedDirective, or None when no exact directive is present.
    """
    line = _directive_line(result)
    if not line:
        return None

    match = DIRECTIVE_PATTERN.match(line)
    if not match:
        if result.handoff_directive is not None:
            logger.debug(f"Ignoring malformed handoff directive: {line!r}")
        return None

    return ParsedDirective(
        kind=_KINDS[match.group("keyword")],
        target=match.group("target"),
        justification=(match.group("justification") or "").strip(),
    )


def strip_directive(result: HandlerResult) -> str:
    """Handler content without a trailing directive line."""
    if result.handoff_directive is not None:
        return result.content.strip()
    lines = result.content.rstrip().splitlines()
    if lines and DIRECTIVE_PATTERN.match(lines[-1].strip()):
        lines = lines[:-1]
    return "\n".join(lines).strip()


class HandoffValidator:
    """Validates directives against the rule table and the open chain."""

    def __init__(self, rule_table: RuleTable):
        self.rule_table = rule_table

    def _known(self) -> List[str]:
        return [handler.value for handler in self.rule_table.handler_ids()]

    def resolve_target(self, directive: ParsedDirective) -> HandlerId:
        """
        Raises:
            InvalidHandoffTargetError: target is not registered, or a research
                gap names a handler that is not a domain specialist.
        """
        try:
            target = HandlerId(directive.target.lower())
        except ValueError:
            raise InvalidHandoffTargetError(directive.target, self._known()) from None

        if target not in self.rule_table:
            raise InvalidHandoffTargetError(directive.target, self._known())

        if directive.kind == HandoffKind.RESEARCH_GAP and not self.rule_table.is_domain(target):
            raise InvalidHandoffTargetError(
                directive.target,
                self._known(),
                reason="research gaps must name a domain specialist",
            )
        return target

    def check_cycle(
        self, source: HandlerId, target: HandlerId, open_chain: List[HandoffEvent]
    ) -> None:
        """
        Reject ``target`` if it already acted as a source in the open chain.

        The handler handing off now counts as a source too, so A -> A is a
        cycle of length one.

        Raises:
            CyclicHandoffError
        """
        sources = [event.source for event in open_chain] + [source]
        if target in sources:
            path = [event.source.value for event in open_chain]
            path += [source.value, target.value]
            raise CyclicHandoffError(path)

    def validate(
        self,
        directive: ParsedDirective,
        source: HandlerId,
        open_chain: List[HandoffEvent],
        sequence: int,
    ) -> HandoffEvent:
        """
        Turn a parsed directive into a HandoffEvent ready to be appended.

        Raises:
            InvalidHandoffTargetError
            CyclicHandoffError
        """
        target = self.resolve_target(directive)
        self.check_cycle(source, target, open_chain)
        logger.info(
            f"Handoff accepted: {source.value} -> {target.value} ({directive.kind.value})"
        )
        return HandoffEvent(
            source=source,
            target=target,
            justification=directive.justification,
            sequence=sequence,
            kind=directive.kind,
        )
