"""Base class for step-chain workflows.

A concrete workflow only declares its chain; the handlers here turn every
decision-relevant history event into the decisions that move the chain
forward. Subclasses may override individual handlers for special cases.

Retry state lives only in history: every retry records a marker, and the
next decision task reads the marker back from the replayed events.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .context import DecisionContext
from .decisions import (
    Decision,
    cancel_workflow_execution,
    complete_workflow_execution,
    fail_workflow_execution,
    record_marker,
    schedule_activity_task,
    start_child_workflow_execution,
    start_timer,
)
from .resolver import find_next_step, find_step
from .steps import (
    ActivityStep,
    ChildWorkflowStep,
    StepChain,
    TimerCancelAction,
    TimerStep,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

ACTIVITY_TIMEOUT_MARKER = "ActivityTimeoutMarker"
CHILD_WORKFLOW_TIMEOUT_MARKER = "ChildWorkflowTimeoutMarker"
MAX_TIMEOUT_RETRIES = 3
RETRIES_EXHAUSTED_DETAILS = "Failing workflow after 3 retry attempts."

# Timeout type reported by the service -> ActivityStep field it refers to.
ACTIVITY_TIMEOUT_FIELDS: dict[str, str] = {
    "START_TO_CLOSE": "start_to_close_timeout",
    "SCHEDULE_TO_START": "schedule_to_start_timeout",
    "SCHEDULE_TO_CLOSE": "schedule_to_close_timeout",
    "HEARTBEAT": "heartbeat_timeout",
}
CHILD_WORKFLOW_TIMEOUT_FIELDS: dict[str, str] = {
    "START_TO_CLOSE": "execution_start_to_close_timeout",
}
# Child workflow retries keep the declared timeout.
CHILD_WORKFLOW_TIMEOUT_MULTIPLIER = 1


class ActivityState(BaseModel):
    """Input handed to a step: the workflow's starting input plus the last result."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    starting_input: str | None = Field(default=None, alias="StartingInput")
    previous_result: str | None = Field(default=None, alias="PreviousResult")

    @classmethod
    def from_context(cls, context: DecisionContext) -> ActivityState:
        return cls(starting_input=context.starting_input, previous_result=context.result)

    def to_input(self) -> str:
        return self.model_dump_json(by_alias=True)


def scale_timeout(value: str, factor: int) -> str:
    """Multiply a duration string by `factor`. Non-numeric values ("NONE") are kept."""

    try:
        seconds = int(value)
    except ValueError:
        return value
    return str(seconds * factor)


def _child_of(step: ChildWorkflowStep, context: DecisionContext) -> ChildWorkflowStep:
    """Scope the child's workflow id to the parent execution.

    Concurrent parents then never start children under the same id, and a
    replay of one parent always yields the same child id.
    """

    if not context.workflow_id:
        return step
    return dataclasses.replace(step, workflow_id=f"{context.workflow_id}-{step.workflow_id}")


def _marker_count(context: DecisionContext, marker_name: str) -> int:
    raw = context.markers.get(marker_name)
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Ignoring non-numeric retry marker", extra={"marker": marker_name, "value": raw}
        )
        return 0


class Workflow:
    """Drives a linear chain of activities, timers and child workflows."""

    steps: ClassVar[StepChain] = StepChain()

    # Workflow start / restart

    def on_workflow_execution_started(self, context: DecisionContext) -> list[Decision]:
        if not self.steps:
            return [complete_workflow_execution("")]

        activity_state = ActivityState.from_context(context).to_input()
        first = self.steps[0]
        if isinstance(first, TimerStep):
            return [start_timer(first)]
        if not first.input:
            first = dataclasses.replace(first, input=activity_state)
        return [self._start_step(first, context)]

    def on_workflow_execution_continued_as_new(self, context: DecisionContext) -> list[Decision]:
        return self.on_workflow_execution_started(context)

    def on_workflow_execution_cancel_requested(self, context: DecisionContext) -> list[Decision]:
        return [cancel_workflow_execution(context.details)]

    # Activities

    def on_activity_task_completed(self, context: DecisionContext) -> list[Decision]:
        next_step = find_next_step(
            self.steps, ActivityStep, context.activity_name, context.activity_version
        )
        return self._advance(next_step, context, ActivityState.from_context(context).to_input())

    def on_activity_task_failed(self, context: DecisionContext) -> list[Decision]:
        return [fail_workflow_execution(context.details, context.reason)]

    def on_activity_task_timed_out(self, context: DecisionContext) -> list[Decision]:
        """Reschedule the timed-out activity with a longer timeout, up to three retries."""

        count = _marker_count(context, ACTIVITY_TIMEOUT_MARKER)
        if count > MAX_TIMEOUT_RETRIES:
            return [fail_workflow_execution(RETRIES_EXHAUSTED_DETAILS, "OnActivityTaskTimedOut")]
        count += 1

        step = find_step(self.steps, ActivityStep, context.activity_name, context.activity_version)
        if not isinstance(step, ActivityStep):
            return [
                fail_workflow_execution(
                    f"Activity {context.activity_name} ({context.activity_version}) "
                    "is not part of this workflow",
                    "OnActivityTaskTimedOut",
                )
            ]

        step = self._scale_step_timeout(
            step, ACTIVITY_TIMEOUT_FIELDS, context.timeout_type, count
        )
        if not step.input:
            step = dataclasses.replace(
                step, input=ActivityState.from_context(context).to_input()
            )

        logger.info(
            "Retrying timed-out activity",
            extra={"activity": step.activity_name, "attempt": count},
        )
        return [
            schedule_activity_task(step),
            record_marker(str(count), ACTIVITY_TIMEOUT_MARKER),
        ]

    def on_schedule_activity_task_failed(self, context: DecisionContext) -> list[Decision]:
        return [fail_workflow_execution(context.cause, "OnScheduleActivityTaskFailed")]

    # Child workflows

    def on_child_workflow_execution_started(self, context: DecisionContext) -> list[Decision]:
        # Nothing to do while the child runs; parallel steps would hook in here.
        return []

    def on_child_workflow_execution_completed(self, context: DecisionContext) -> list[Decision]:
        next_step = find_next_step(
            self.steps,
            ChildWorkflowStep,
            context.child_workflow_name,
            context.child_workflow_version,
        )
        return self._advance(next_step, context, context.result)

    def on_child_workflow_execution_failed(self, context: DecisionContext) -> list[Decision]:
        return [fail_workflow_execution(context.cause, "OnChildWorkflowExecutionFailed")]

    def on_child_workflow_execution_terminated(self, context: DecisionContext) -> list[Decision]:
        return [fail_workflow_execution(context.cause, "OnChildWorkflowExecutionTerminated")]

    def on_child_workflow_execution_timed_out(self, context: DecisionContext) -> list[Decision]:
        """Restart the timed-out child workflow, up to three retries."""

        count = _marker_count(context, CHILD_WORKFLOW_TIMEOUT_MARKER)
        if count > MAX_TIMEOUT_RETRIES:
            return [
                fail_workflow_execution(
                    RETRIES_EXHAUSTED_DETAILS, "OnChildWorkflowExecutionTimedOut"
                )
            ]
        count += 1

        step = find_step(
            self.steps,
            ChildWorkflowStep,
            context.child_workflow_name,
            context.child_workflow_version,
        )
        if not isinstance(step, ChildWorkflowStep):
            return [
                fail_workflow_execution(
                    f"Child workflow {context.child_workflow_name} "
                    f"({context.child_workflow_version}) is not part of this workflow",
                    "OnChildWorkflowExecutionTimedOut",
                )
            ]

        step = self._scale_step_timeout(
            step,
            CHILD_WORKFLOW_TIMEOUT_FIELDS,
            context.timeout_type,
            CHILD_WORKFLOW_TIMEOUT_MULTIPLIER,
        )

        logger.info(
            "Retrying timed-out child workflow",
            extra={"workflow": step.workflow_name, "attempt": count},
        )
        return [
            start_child_workflow_execution(_child_of(step, context)),
            record_marker(str(count), CHILD_WORKFLOW_TIMEOUT_MARKER),
        ]

    def on_start_child_workflow_execution_failed(
        self, context: DecisionContext
    ) -> list[Decision]:
        return [fail_workflow_execution(context.cause, "OnStartChildWorkflowExecutionFailed")]

    # Timers

    def on_timer_started(self, context: DecisionContext) -> list[Decision]:
        return []

    def on_timer_fired(self, context: DecisionContext) -> list[Decision]:
        next_step = find_next_step(self.steps, TimerStep, context.timer_id)
        return self._advance(next_step, context, ActivityState.from_context(context).to_input())

    def on_timer_canceled(self, context: DecisionContext) -> list[Decision]:
        timer = find_step(self.steps, TimerStep, context.timer_id)
        action = (
            timer.cancel_action
            if isinstance(timer, TimerStep)
            else TimerCancelAction.PROCEED_TO_NEXT
        )

        if action is TimerCancelAction.COMPLETE_WORKFLOW:
            return [complete_workflow_execution(context.result)]
        if action is TimerCancelAction.CANCEL_WORKFLOW:
            return [cancel_workflow_execution(context.details)]
        return self.on_timer_fired(context)

    # Helpers

    def _advance(
        self, next_step: WorkflowStep | None, context: DecisionContext, next_input: str | None
    ) -> list[Decision]:
        """Start `next_step` with `next_input`, or complete the workflow when the chain is done."""

        if next_step is None:
            return [complete_workflow_execution(context.result)]
        if isinstance(next_step, TimerStep):
            return [start_timer(next_step)]
        step = dataclasses.replace(next_step, input=next_input or "")
        return [self._start_step(step, context)]

    @staticmethod
    def _start_step(step: ActivityStep | ChildWorkflowStep, context: DecisionContext) -> Decision:
        if isinstance(step, ActivityStep):
            return schedule_activity_task(step)
        return start_child_workflow_execution(_child_of(step, context))

    @staticmethod
    def _scale_step_timeout(
        step: ActivityStep | ChildWorkflowStep,
        fields: dict[str, str],
        timeout_type: str | None,
        factor: int,
    ) -> ActivityStep | ChildWorkflowStep:
        field_name = fields.get(timeout_type or "")
        if field_name is None:
            logger.warning(
                "Unknown timeout type; retrying unchanged", extra={"timeout_type": timeout_type}
            )
            return step
        current = getattr(step, field_name)
        return dataclasses.replace(step, **{field_name: scale_timeout(current, factor)})
