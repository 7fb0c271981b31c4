"""
Specialist handlers invoked by the router.
"""
from .base import SpecialistHandler
from .registry import SpecialistRegistry, build_ollama_registry

__all__ = ["SpecialistHandler", "SpecialistRegistry", "build_ollama_registry"]
