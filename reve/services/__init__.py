"""Service layer exports."""

from . import normalizer, orchestrator, poller, projects, prompt_enhancer, validation
from .reve import ReveAI

__all__ = ["ReveAI", "normalizer", "orchestrator", "poller", "projects", "prompt_enhancer", "validation"]
