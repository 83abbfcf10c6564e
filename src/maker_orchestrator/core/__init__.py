"""Core package initialization."""

from maker_orchestrator.core.config import MakerConfig
from maker_orchestrator.core.orchestrator import Orchestrator, TaskResult

__all__ = [
    "MakerConfig",
    "Orchestrator",
    "TaskResult",
]
