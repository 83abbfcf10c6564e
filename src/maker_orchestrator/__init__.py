"""Maker Orchestrator.

Runs very long sequential tasks on top of an unreliable oracle by:
- decomposing the task into atomic steps over a bounded state
- issuing k independent attempts per step and voting to a strict majority
- red-flagging malformed output instead of repairing it
- retrying and escalating through an explicit per-step state machine
- checkpointing after every applied step
"""

__version__ = "0.1.0"

from maker_orchestrator.core.config import MakerConfig
from maker_orchestrator.core.errors import FatalTaskError
from maker_orchestrator.core.orchestrator import Orchestrator, TaskResult

__all__ = ["__version__", "FatalTaskError", "MakerConfig", "Orchestrator", "TaskResult"]
