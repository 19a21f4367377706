"""Step declarations that make up a workflow's chain.

A chain is declared once by a workflow definition and never changes at
runtime. Each entry is exactly one of three step types. Steps in one chain
must have distinct identities; duplicates are not rejected, but only the
first match is ever resolved.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import overload

MAX_TIMER_SECONDS = 99_999_999
MAX_CONTROL_LENGTH = 32_768


class TimerCancelAction(str, Enum):
    """What the workflow does when one of its timers is canceled."""

    PROCEED_TO_NEXT = "proceed_to_next"
    CANCEL_WORKFLOW = "cancel_workflow"
    COMPLETE_WORKFLOW = "complete_workflow"


class ChildPolicy(str, Enum):
    TERMINATE = "TERMINATE"
    REQUEST_CANCEL = "REQUEST_CANCEL"
    ABANDON = "ABANDON"


@dataclass(frozen=True, slots=True)
class ActivityStep:
    """An activity task to schedule.

    An empty `input` means "use the input handed over by the previous step".
    Timeouts are duration strings in seconds, or "NONE".
    """

    activity_name: str
    activity_version: str
    activity_id: str
    task_list: str
    control: str = ""
    input: str = ""
    heartbeat_timeout: str = "NONE"
    schedule_to_close_timeout: str = "NONE"
    schedule_to_start_timeout: str = "NONE"
    start_to_close_timeout: str = "NONE"

    @property
    def identity(self) -> tuple[str, ...]:
        return (self.activity_name, self.activity_version)


@dataclass(frozen=True, slots=True)
class TimerStep:
    """A timer that must fire before the chain moves on."""

    timer_id: str
    start_to_fire_timeout: int
    control: str = ""
    cancel_action: TimerCancelAction = TimerCancelAction.PROCEED_TO_NEXT

    def __post_init__(self) -> None:
        if not 0 <= self.start_to_fire_timeout <= MAX_TIMER_SECONDS:
            raise ValueError(
                f"Timer {self.timer_id!r}: start_to_fire_timeout must be between "
                f"0 and {MAX_TIMER_SECONDS} seconds, got {self.start_to_fire_timeout}"
            )
        if len(self.control) > MAX_CONTROL_LENGTH:
            raise ValueError(
                f"Timer {self.timer_id!r}: control must be at most {MAX_CONTROL_LENGTH} characters"
            )

    @property
    def identity(self) -> tuple[str, ...]:
        return (self.timer_id,)


@dataclass(frozen=True, slots=True)
class ChildWorkflowStep:
    """A child workflow execution to start.

    An empty `input` means "use the input handed over by the previous step".
    """

    workflow_name: str
    workflow_version: str
    workflow_id: str
    task_list: str
    control: str = ""
    input: str = ""
    execution_start_to_close_timeout: str = "NONE"
    task_start_to_close_timeout: str = "NONE"
    tag_list: tuple[str, ...] = field(default_factory=tuple)
    child_policy: ChildPolicy = ChildPolicy.TERMINATE

    @property
    def identity(self) -> tuple[str, ...]:
        return (self.workflow_name, self.workflow_version)


WorkflowStep = ActivityStep | TimerStep | ChildWorkflowStep

STEP_TYPES: tuple[type, ...] = (ActivityStep, TimerStep, ChildWorkflowStep)


class StepChain(Sequence[WorkflowStep]):
    """An immutable, ordered sequence of workflow steps."""

    __slots__ = ("_steps",)

    def __init__(self, steps: Iterable[WorkflowStep] = ()) -> None:
        items = tuple(steps)
        for position, step in enumerate(items):
            if not isinstance(step, STEP_TYPES):
                raise TypeError(
                    f"Step {position} is {type(step).__name__}; "
                    "expected ActivityStep, TimerStep or ChildWorkflowStep"
                )
        self._steps: tuple[WorkflowStep, ...] = items

    @overload
    def __getitem__(self, index: int) -> WorkflowStep: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[WorkflowStep, ...]: ...

    def __getitem__(self, index: int | slice) -> WorkflowStep | tuple[WorkflowStep, ...]:
        return self._steps[index]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[WorkflowStep]:
        return iter(self._steps)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StepChain):
            return self._steps == other._steps
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._steps)

    def __repr__(self) -> str:
        return f"StepChain({list(self._steps)!r})"
