"""
Ollama-backed specialist handler.

A single LLM invocation per request with no agents, tools or memory. The
handler sees the brief, findings and the handoff that brought the request to
it, all taken from the state snapshot.

Default model: qwen2.5:3b (configurable via SPECIALIST_MODEL)
"""
import logging
from pathlib import Path
from typing import List, Optional

from langchain_ollama import OllamaLLM

from ..routing.handoff import DIRECTIVE_PATTERN
from ..routing.schemas import HandlerId, HandlerResult, Request, WorkflowStateSnapshot
from .base import SpecialistHandler
from .prompts import default_prompt

logger = logging.getLogger(__name__)


class OllamaSpecialistHandler(SpecialistHandler):
    """Specialist answering through a local Ollama model."""

    def __init__(
        self,
        handler_id: HandlerId,
        display_name: str,
        model: str,
        handler_ids: List[HandlerId],
        prompts_dir: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ):
        super().__init__(handler_id)
        self.display_name = display_name
        self.model_name = model
        self.llm = OllamaLLM(
            model=model,
            temperature=temperature,
            num_predict=max_tokens,
        )

        prompt_file = Path(prompts_dir) / f"{handler_id.value}.txt" if prompts_dir else None
        if prompt_file is not None and prompt_file.exists():
            template = prompt_file.read_text(encoding="utf-8")
            logger.info(f"Loaded {handler_id.value} prompt from {prompt_file}")
        else:
            template = default_prompt(handler_id)

        others = [h.value for h in handler_ids if h != handler_id]
        self.system_prompt = template.format(
            display_name=display_name,
            handlers=", ".join(others),
        )

    def _render_prompt(self, request: Request, state: WorkflowStateSnapshot) -> str:
        sections = [self.system_prompt]

        if state.brief and self.handler_id == HandlerId.IMPLEMENTATION:
            sections.append(f"## Implementation Brief:\n{state.brief}")

        if state.findings:
            notes = "\n\n".join(
                f"[{finding.handler.value}]\n{finding.content}" for finding in state.findings
            )
            sections.append(f"## Research Findings:\n{notes}")

        incoming = [e for e in state.handoff_chain if e.target == self.handler_id]
        if incoming and incoming[-1].justification:
            last = incoming[-1]
            sections.append(
                f"## Handed Off From {last.source.value}:\n{last.justification}"
            )

        sections.append(f"## Request:\n{request.text.strip()}\n\nYour response:")
        return "\n\n".join(sections)

    @staticmethod
    def _split_directive(output: str) -> HandlerResult:
        lines = output.rstrip().splitlines()
        while lines and not lines[-1].strip():
            lines.pop()
        if lines and DIRECTIVE_PATTERN.match(lines[-1].strip()):
            directive = lines[-1].strip()
            content = "\n".join(lines[:-1]).strip()
            return HandlerResult(content=content, handoff_directive=directive)
        return HandlerResult(content="\n".join(lines).strip())

    def handle(self, request: Request, state: WorkflowStateSnapshot) -> HandlerResult:
        prompt = self._render_prompt(request, state)
        raw_output = self.llm.invoke(prompt)
        if not isinstance(raw_output, str):
            raw_output = str(raw_output)
        logger.debug(f"{self.handler_id.value} produced {len(raw_output)} chars")
        return self._split_directive(raw_output)
