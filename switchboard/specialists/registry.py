"""
Specialist registry: maps every HandlerId to the instance that serves it.
"""
import logging
from typing import Dict, List, Optional, Sequence

from ..routing.schemas import HandlerId, HandlerSpec
from .base import SpecialistHandler
from .ollama_handler import OllamaSpecialistHandler

logger = logging.getLogger(__name__)


class SpecialistRegistry:
    """Holds handler instances. Only the router calls into them."""

    def __init__(self, handlers: Optional[Sequence[SpecialistHandler]] = None):
        self._handlers: Dict[HandlerId, SpecialistHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: SpecialistHandler) -> None:
        if handler.handler_id in self._handlers:
            logger.warning(f"Replacing handler for '{handler.handler_id.value}'")
        self._handlers[handler.handler_id] = handler
        logger.info(f"Registered handler: {handler!r}")

    def get(self, handler_id: HandlerId) -> Optional[SpecialistHandler]:
        return self._handlers.get(handler_id)

    def list_handlers(self) -> List[HandlerId]:
        return list(self._handlers.keys())

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def build_ollama_registry(
    specs: Sequence[HandlerSpec],
    model: str,
    prompts_dir: Optional[str] = None,
    temperature: float = 0.1,
    max_tokens: int = 1024,
) -> SpecialistRegistry:
    """Create one Ollama-backed handler per registry entry."""
    handler_ids = [spec.handler_id for spec in specs]
    registry = SpecialistRegistry()
    for spec in specs:
        registry.register(
            OllamaSpecialistHandler(
                handler_id=spec.handler_id,
                display_name=spec.display_name,
                model=model,
                handler_ids=handler_ids,
                prompts_dir=prompts_dir,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        )
    return registry
