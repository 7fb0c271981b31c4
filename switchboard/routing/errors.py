"""
Routing error taxonomy.

Every error carries a machine-readable ``kind`` and a ``details`` dict so the
router can report it with the decision trail instead of crashing. NoMatch is
not an error and has no class here.
"""
from typing import Any, Dict, List, Optional, Sequence


class RoutingError(Exception):
    """Base class for failures raised while routing a single request."""

    kind = "routing_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AmbiguousMatchError(RoutingError):
    """Two or more same-tier rules matched with no precedence between them.

    This is a configuration defect. The router turns it into a clarification
    request instead of guessing.
    """

    kind = "ambiguous_match"

    def __init__(self, tier: int, candidates: Sequence[str]):
        self.tier = tier
        self.candidates = list(candidates)
        super().__init__(
            f"Tier {tier} match is ambiguous between: {', '.join(self.candidates)}",
            {"tier": tier, "candidates": self.candidates},
        )


class UnknownHandlerError(RoutingError):
    """A request or handler named a handler that is not in the registry."""

    kind = "unknown_handler"

    def __init__(
        self,
        name: str,
        known: Sequence[str],
        source: str = "override",
        reason: Optional[str] = None,
    ):
        self.name = name
        self.known = sorted(known)
        self.reason = reason
        if reason:
            message = f"Handler '{name}' from {source} rejected: {reason}"
        else:
            message = (
                f"Unknown handler '{name}' in {source}. "
                f"Known handlers: {', '.join(self.known)}"
            )
        super().__init__(
            message,
            {"name": name, "known": self.known, "source": source, "reason": reason},
        )


class InvalidHandoffTargetError(UnknownHandlerError):
    """A handoff directive named an unknown or ineligible handler."""

    kind = "invalid_handoff_target"

    def __init__(self, name: str, known: Sequence[str], reason: Optional[str] = None):
        super().__init__(name, known, source="handoff directive", reason=reason)


class CyclicHandoffError(RoutingError):
    """A handoff would revisit a handler already in the open chain."""

    kind = "cyclic_handoff"

    def __init__(self, path: List[str]):
        self.path = list(path)
        super().__init__(
            f"Handoff cycle detected: {' -> '.join(self.path)}",
            {"path": self.path},
        )


class ChainLengthExceededError(RoutingError):
    """The hop guard tripped before the chain reached a terminal response."""

    kind = "chain_length_exceeded"

    def __init__(self, limit: int, path: List[str]):
        self.limit = limit
        self.path = list(path)
        super().__init__(
            f"Handoff chain exceeded {limit} hops: {' -> '.join(self.path)}",
            {"limit": limit, "path": self.path},
        )


class HandlerFailureError(RoutingError):
    """The selected handler raised, or no instance is registered for it."""

    kind = "handler_failure"

    def __init__(self, handler: str, reason: str):
        self.handler = handler
        self.reason = reason
        super().__init__(
            f"Handler '{handler}' failed: {reason}",
            {"handler": handler, "reason": reason},
        )
