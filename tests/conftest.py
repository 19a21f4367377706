"""Test configuration and fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from workflow_decider.decider.workflow.events import DecisionTask, HistoryEvent
from workflow_decider.decider.workflow.registry import WorkflowRegistry
from workflow_decider.decider.workflow.steps import (
    ActivityStep,
    ChildWorkflowStep,
    StepChain,
    TimerCancelAction,
    TimerStep,
)
from workflow_decider.decider.workflow.workflow import Workflow


class History:
    """Builds a workflow history the way the service would record it."""

    def __init__(self) -> None:
        self.events: list[HistoryEvent] = []

    def add(self, event_type: str, **attributes: Any) -> History:
        self.events.append(
            HistoryEvent(
                event_id=len(self.events) + 1,
                event_type=event_type,
                attributes=attributes,
            )
        )
        return self

    def started(self, input: str | None = "order-input") -> History:
        return self.add("WorkflowExecutionStarted", input=input)

    def decision_round(self, execution_context: str | None = None) -> History:
        self.add("DecisionTaskScheduled")
        self.add("DecisionTaskStarted")
        attrs: dict[str, Any] = {}
        if execution_context is not None:
            attrs["executionContext"] = execution_context
        return self.add("DecisionTaskCompleted", **attrs)

    def activity_scheduled(self, name: str, version: str = "1.0", input: str = "") -> History:
        return self.add(
            "ActivityTaskScheduled",
            activityType={"name": name, "version": version},
            activityId=f"{name}-{version}",
            input=input,
        )

    def activity_completed(self, result: str) -> History:
        return self.add("ActivityTaskCompleted", result=result)

    def activity_timed_out(self, timeout_type: str = "START_TO_CLOSE") -> History:
        return self.add("ActivityTaskTimedOut", timeoutType=timeout_type)

    def marker(self, name: str, details: str) -> History:
        return self.add("MarkerRecorded", markerName=name, details=details)

    def child(self, event_type: str, name: str, version: str = "1.0", **attrs: Any) -> History:
        return self.add(event_type, workflowType={"name": name, "version": version}, **attrs)

    def timer(self, event_type: str, timer_id: str, **attrs: Any) -> History:
        return self.add(event_type, timerId=timer_id, **attrs)

    def task(
        self,
        workflow_name: str = "TestWorkflow",
        *,
        upto: int | None = None,
    ) -> DecisionTask:
        events = list(self.events if upto is None else self.events[:upto])
        # Every decision task ends with the bookkeeping pair the service appends.
        next_id = len(events) + 1
        events.append(HistoryEvent(event_id=next_id, event_type="DecisionTaskScheduled"))
        events.append(HistoryEvent(event_id=next_id + 1, event_type="DecisionTaskStarted"))
        return DecisionTask(
            task_token="token-1",
            workflow_name=workflow_name,
            workflow_version="1.0",
            workflow_id="wf-1",
            run_id="run-1",
            events=events,
        )

    def to_json(self, workflow_name: str = "TestWorkflow") -> dict[str, Any]:
        return {
            "taskToken": "token-1",
            "workflowType": {"name": workflow_name, "version": "1.0"},
            "workflowExecution": {"workflowId": "wf-1", "runId": "run-1"},
            "events": [e.to_json() for e in self.events],
        }


ACTIVITY_A = ActivityStep(
    activity_name="A",
    activity_version="1.0",
    activity_id="a-1",
    task_list="activities",
    start_to_close_timeout="60",
    schedule_to_start_timeout="30",
    schedule_to_close_timeout="90",
    heartbeat_timeout="NONE",
)
CHILD_B = ChildWorkflowStep(
    workflow_name="B",
    workflow_version="1.0",
    workflow_id="b-1",
    task_list="deciders",
    execution_start_to_close_timeout="600",
    task_start_to_close_timeout="60",
    tag_list=("orders",),
)
ACTIVITY_C = ActivityStep(
    activity_name="C",
    activity_version="1.0",
    activity_id="c-1",
    task_list="activities",
    start_to_close_timeout="60",
)


class ThreeStepWorkflow(Workflow):
    steps = StepChain([ACTIVITY_A, CHILD_B, ACTIVITY_C])


class EmptyWorkflow(Workflow):
    pass


def _timer_workflow(action: TimerCancelAction) -> type[Workflow]:
    class _TimerWorkflow(Workflow):
        steps = StepChain(
            [
                TimerStep(
                    timer_id="wait",
                    start_to_fire_timeout=30,
                    control="ctl",
                    cancel_action=action,
                ),
                ACTIVITY_A,
            ]
        )

    return _TimerWorkflow


@pytest.fixture
def history() -> History:
    """Provide an empty history builder."""
    return History()


@pytest.fixture
def registry() -> WorkflowRegistry:
    """Registry with a three-step chain, an empty chain and timer-first chains.

    The chain registered as "TestWorkflow" is: activity A, child workflow B,
    activity C.
    """
    return WorkflowRegistry(
        {
            "TestWorkflow": ThreeStepWorkflow,
            "EmptyWorkflow": EmptyWorkflow,
            "TimerWorkflow": _timer_workflow(TimerCancelAction.PROCEED_TO_NEXT),
            "TimerCompletes": _timer_workflow(TimerCancelAction.COMPLETE_WORKFLOW),
            "TimerCancels": _timer_workflow(TimerCancelAction.CANCEL_WORKFLOW),
        }
    )
