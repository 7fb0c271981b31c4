"""
Base interface for specialist handlers.

Handlers receive a request and a frozen state snapshot and return data. They
hold no reference to the router, so they can recommend a handoff but never
perform one.
"""
from abc import ABC, abstractmethod

from ..routing.schemas import HandlerId, HandlerResult, Request, WorkflowStateSnapshot


class SpecialistHandler(ABC):
    """Abstract specialist handler."""

    def __init__(self, handler_id: HandlerId):
        self.handler_id = handler_id

    @abstractmethod
    def handle(self, request: Request, state: WorkflowStateSnapshot) -> HandlerResult:
        """
        Process a request within the handler's domain.

        Args:
            request: The user's request.
            state: Read-only view of the session's workflow state.

        Returns:
            HandlerResult with the response content and an optional
            handoff directive line.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.handler_id.value!r})"
