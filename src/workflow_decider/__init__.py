"""Workflow Decider.

A stateless decider for step-chain workflows: it replays the history of a
workflow execution and returns the next decision for it.
"""

__version__ = "0.1.0"

from workflow_decider.decider.config import DeciderSettings

__all__ = ["__version__", "DeciderSettings"]
