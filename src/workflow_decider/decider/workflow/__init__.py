"""Event-replay decision engine.

This package provides first-class types for:
- History events and the pager that walks them
- The decision context folded from history
- Step chains (activities, timers, child workflows) and step resolution
- Decisions and the dispatcher that selects them

The engine holds no state between decision tasks; everything it needs is
rebuilt from the replayed history on each call.
"""

from .context import DecisionContext, build_context
from .decisions import Decision, DecisionResponse
from .events import DecisionTask, EventType, HistoryEvent, HistoryPage
from .pager import EventPager, HistoryFetchError, HistoryPageSource
from .processor import DISPATCH_TABLE, UnhandledEventTypeError, decide, dispatch
from .registry import UnknownWorkflowError, WorkflowRegistry
from .resolver import find_next_step, find_step
from .steps import (
    ActivityStep,
    ChildPolicy,
    ChildWorkflowStep,
    StepChain,
    TimerCancelAction,
    TimerStep,
    WorkflowStep,
)
from .workflow import ActivityState, Workflow

__all__: list[str] = [
    "DISPATCH_TABLE",
    "ActivityState",
    "ActivityStep",
    "ChildPolicy",
    "ChildWorkflowStep",
    "Decision",
    "DecisionContext",
    "DecisionResponse",
    "DecisionTask",
    "EventPager",
    "EventType",
    "HistoryEvent",
    "HistoryFetchError",
    "HistoryPage",
    "HistoryPageSource",
    "StepChain",
    "TimerCancelAction",
    "TimerStep",
    "UnhandledEventTypeError",
    "UnknownWorkflowError",
    "Workflow",
    "WorkflowRegistry",
    "WorkflowStep",
    "build_context",
    "decide",
    "dispatch",
    "find_next_step",
    "find_step",
]
