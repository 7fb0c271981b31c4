"""
Handler registry for the Switchboard router.

Static, ordered descriptions of every specialist: tier, trigger set and
specificity rank. The rule table is built from this list once at startup.
A JSON file with the same shape can replace the built-in list.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from .schemas import HandlerId, HandlerSpec, WorkflowStage

logger = logging.getLogger(__name__)

_APOS = "['’]"

DEFAULT_HANDLER_SPECS: List[HandlerSpec] = [
    # Tier 1: workflow transition into compression
    HandlerSpec(
        handler_id=HandlerId.COMPRESSION,
        display_name="Research Compressor",
        tier=1,
        triggers=[
            rf"\bnow,?\s+(?:let{_APOS}?s\s+|we\s+(?:can\s+)?)?implement\b",
            r"\b(?:ready|time)\s+to\s+implement\b",
            r"\bsummari[sz]e\s+(?:this|that|it|everything|the\s+research|our\s+findings|what\s+we\s+(?:have|found))\b",
            r"\bcompress\s+(?:this|it|the\s+research|our\s+findings)\b",
            r"\bwrite\s+(?:up\s+)?(?:the|an)\s+(?:implementation\s+)?brief\b",
            r"\bwrap\s+up\s+(?:the\s+)?research\b",
        ],
        specificity_rank=0,
        aliases=["compressor", "summarizer", "brief"],
        condition="domain_threshold",
        active_stages=[WorkflowStage.RESEARCH, WorkflowStage.COMPRESSION],
    ),
    # Tier 2: direct execution
    HandlerSpec(
        handler_id=HandlerId.IMPLEMENTATION,
        display_name="Implementer",
        tier=2,
        triggers=[
            r"\bwrite\s+(?:the\s+|some\s+|me\s+)?code\b",
            r"\bgenerate\s+(?:the\s+)?code\b",
            r"\b(?:implement|execute)\s+(?:the|this)\s+brief\b",
            r"\bfix\s+(?:this|the|my)\s+(?:code|bug|script|error)\b",
            r"\bcode\s+(?:it|this)\s+up\b",
        ],
        specificity_rank=0,
        aliases=["implementer", "coder", "code"],
        condition="brief_present",
    ),
    # Tier 3: domain specialists, most specific first
    HandlerSpec(
        handler_id=HandlerId.CONFIG,
        display_name="Config & Persistence",
        tier=3,
        triggers=[
            r"\bsave\s+(?:\w+\s+)?(?:settings|preferences|progress|data|game)\b",
            r"\bload\s+(?:\w+\s+)?(?:settings|preferences|progress|save|game)\b",
            r"\b(?:user|player|game)\s+(?:settings|preferences)\b",
            r"\bconfig(?:uration)?\s+files?\b",
            r"\bconfigfile\b",
            r"\bpersist(?:ence|ent|ing)?\b",
            r"\bsave\s+files?\b",
        ],
        specificity_rank=40,
        aliases=["settings", "persistence", "configuration"],
        counts_as_domain=True,
    ),
    HandlerSpec(
        handler_id=HandlerId.UI,
        display_name="UI Layout",
        tier=3,
        triggers=[
            r"\bui\b",
            r"\buser\s+interface\b",
            r"\bmenus?\b",
            r"\bbuttons?\b",
            r"\blayouts?\b",
            r"\bhud\b",
            r"\bthemes?\b",
            r"\banchors?\b",
            r"\bcontainers?\b",
            r"\bdialog(?:ue)?\s+box(?:es)?\b",
        ],
        specificity_rank=30,
        aliases=["interface", "layout"],
        counts_as_domain=True,
    ),
    HandlerSpec(
        handler_id=HandlerId.NETWORKING,
        display_name="Client/Server Networking",
        tier=3,
        triggers=[
            r"\bmultiplayer\b",
            r"\bnetwork(?:ing|ed)?\b",
            r"\bclient[\s/-]+server\b",
            r"\brpcs?\b",
            r"\bpeers?\b",
            r"\blatency\b",
            r"\bdedicated\s+server\b",
            r"\bsync(?:hroni[sz]e)?\s+(?:the\s+)?(?:state|players?)\b",
        ],
        specificity_rank=20,
        aliases=["network", "multiplayer", "client_server"],
        counts_as_domain=True,
    ),
    HandlerSpec(
        handler_id=HandlerId.API,
        display_name="API Reference",
        tier=3,
        triggers=[
            r"\bapi\b",
            r"\bsignatures?\b",
            r"\bmethods?\b",
            r"\bfunctions?\b",
            r"\bsignals?\b",
            r"\bclass\s+reference\b",
            r"\bparameters?\b",
            r"\breturn\s+type\b",
            r"\bdeprecated\b",
        ],
        specificity_rank=10,
        aliases=["reference", "docs"],
        counts_as_domain=True,
    ),
    # Tier 4: design and analysis
    HandlerSpec(
        handler_id=HandlerId.ANALYSIS,
        display_name="Code Analysis",
        tier=4,
        triggers=[
            r"\breview\b",
            r"\banaly[sz]e\b",
            r"\banalysis\b",
            r"\bcompare\b",
            r"\btrade-?offs?\b",
            r"\bpros\s+and\s+cons\b",
            r"\bevaluate\b",
        ],
        specificity_rank=20,
        aliases=["review", "reviewer"],
        counts_as_domain=True,
    ),
    HandlerSpec(
        handler_id=HandlerId.ARCHITECTURE,
        display_name="Architecture",
        tier=4,
        triggers=[
            r"\barchitecture\b",
            r"\bdesign\b",
            r"\bstructure\b",
            r"\borgani[sz]e\s+(?:my|the|our)\b",
            r"\bpatterns?\b",
            r"\bdecouple\b",
            r"\bscal(?:e|able|ability)\b",
        ],
        specificity_rank=10,
        aliases=["design", "architect"],
        counts_as_domain=True,
    ),
]


def load_registry(path: Optional[str] = None) -> List[HandlerSpec]:
    """
    Load the handler registry.

    Args:
        path: Optional JSON file containing a list of handler specs. When
              omitted the built-in registry is used.

    Raises:
        FileNotFoundError: if ``path`` is given but does not exist.
        pydantic.ValidationError: if the file does not match the schema,
            including handler ids outside the closed HandlerId set.
    """
    if not path:
        return [spec.model_copy(deep=True) for spec in DEFAULT_HANDLER_SPECS]

    registry_file = Path(path)
    if not registry_file.exists():
        raise FileNotFoundError(f"Handler registry file not found: {registry_file}")

    adapter = TypeAdapter(List[HandlerSpec])
    specs = adapter.validate_json(registry_file.read_text(encoding="utf-8"))
    logger.info(f"Loaded {len(specs)} handler specs from {registry_file}")
    return specs


def list_handlers(specs: List[HandlerSpec]) -> List[Dict[str, object]]:
    """Return registry entries with brief descriptions for display."""
    return [
        {
            "handler_id": spec.handler_id.value,
            "display_name": spec.display_name,
            "tier": spec.tier,
            "specificity_rank": spec.specificity_rank,
            "aliases": list(spec.aliases),
            "condition": spec.condition,
        }
        for spec in specs
    ]


def dump_registry(specs: List[HandlerSpec]) -> str:
    """Serialize specs to the JSON shape accepted by load_registry."""
    return json.dumps([spec.model_dump(mode="json") for spec in specs], indent=2)
