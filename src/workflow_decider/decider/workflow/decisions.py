from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Protocol

from .steps import ActivityStep, ChildWorkflowStep, TimerStep

logger = logging.getLogger(__name__)


def _compact(attrs: dict[str, object]) -> dict[str, object]:
    return {k: v for k, v in attrs.items() if v is not None}


class Decision(Protocol):
    """A single command returned to the service."""

    decision_type: ClassVar[str]

    def attributes(self) -> dict[str, object]: ...

    def to_json(self) -> dict[str, object]:
        key = self.decision_type[:1].lower() + self.decision_type[1:] + "DecisionAttributes"
        return {"decisionType": self.decision_type, key: _compact(self.attributes())}


@dataclass(frozen=True, slots=True)
class ScheduleActivityTask(Decision):
    decision_type: ClassVar[str] = "ScheduleActivityTask"

    activity_id: str
    activity_name: str
    activity_version: str
    task_list: str
    control: str | None = None
    input: str | None = None
    heartbeat_timeout: str | None = None
    schedule_to_close_timeout: str | None = None
    schedule_to_start_timeout: str | None = None
    start_to_close_timeout: str | None = None

    def attributes(self) -> dict[str, object]:
        return {
            "activityId": self.activity_id,
            "activityType": {"name": self.activity_name, "version": self.activity_version},
            "control": self.control,
            "heartbeatTimeout": self.heartbeat_timeout,
            "input": self.input,
            "scheduleToCloseTimeout": self.schedule_to_close_timeout,
            "scheduleToStartTimeout": self.schedule_to_start_timeout,
            "startToCloseTimeout": self.start_to_close_timeout,
            "taskList": {"name": self.task_list},
        }


@dataclass(frozen=True, slots=True)
class StartChildWorkflowExecution(Decision):
    decision_type: ClassVar[str] = "StartChildWorkflowExecution"

    workflow_id: str
    workflow_name: str
    workflow_version: str
    task_list: str
    child_policy: str | None = None
    control: str | None = None
    execution_start_to_close_timeout: str | None = None
    input: str | None = None
    tag_list: tuple[str, ...] = field(default_factory=tuple)
    task_start_to_close_timeout: str | None = None

    def attributes(self) -> dict[str, object]:
        return {
            "workflowId": self.workflow_id,
            "workflowType": {"name": self.workflow_name, "version": self.workflow_version},
            "childPolicy": self.child_policy,
            "control": self.control,
            "executionStartToCloseTimeout": self.execution_start_to_close_timeout,
            "input": self.input,
            "tagList": list(self.tag_list),
            "taskList": {"name": self.task_list},
            "taskStartToCloseTimeout": self.task_start_to_close_timeout,
        }


@dataclass(frozen=True, slots=True)
class StartTimer(Decision):
    decision_type: ClassVar[str] = "StartTimer"

    timer_id: str
    start_to_fire_timeout: str
    control: str | None = None

    def attributes(self) -> dict[str, object]:
        return {
            "timerId": self.timer_id,
            "startToFireTimeout": self.start_to_fire_timeout,
            "control": self.control,
        }


@dataclass(frozen=True, slots=True)
class CompleteWorkflowExecution(Decision):
    decision_type: ClassVar[str] = "CompleteWorkflowExecution"

    result: str | None = None

    def attributes(self) -> dict[str, object]:
        return {"result": self.result}


@dataclass(frozen=True, slots=True)
class CancelWorkflowExecution(Decision):
    decision_type: ClassVar[str] = "CancelWorkflowExecution"

    details: str | None = None

    def attributes(self) -> dict[str, object]:
        return {"details": self.details}


@dataclass(frozen=True, slots=True)
class FailWorkflowExecution(Decision):
    decision_type: ClassVar[str] = "FailWorkflowExecution"

    details: str | None = None
    reason: str | None = None

    def attributes(self) -> dict[str, object]:
        return {"details": self.details, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class RecordMarker(Decision):
    decision_type: ClassVar[str] = "RecordMarker"

    marker_name: str
    details: str | None = None

    def attributes(self) -> dict[str, object]:
        return {"details": self.details, "markerName": self.marker_name}


@dataclass(frozen=True, slots=True)
class DecisionResponse:
    """Everything sent back to the service for one decision task."""

    task_token: str
    decisions: tuple[Decision, ...] = ()
    execution_context: str = ""

    def to_json(self) -> dict[str, object]:
        return {
            "taskToken": self.task_token,
            "decisions": [d.to_json() for d in self.decisions],
            "executionContext": self.execution_context,
        }


def schedule_activity_task(step: ActivityStep) -> ScheduleActivityTask:
    decision = ScheduleActivityTask(
        activity_id=step.activity_id,
        activity_name=step.activity_name,
        activity_version=step.activity_version,
        task_list=step.task_list,
        control=step.control,
        input=step.input,
        heartbeat_timeout=step.heartbeat_timeout,
        schedule_to_close_timeout=step.schedule_to_close_timeout,
        schedule_to_start_timeout=step.schedule_to_start_timeout,
        start_to_close_timeout=step.start_to_close_timeout,
    )
    logger.debug(
        "Decision: ScheduleActivityTask",
        extra={"activity": step.activity_name, "version": step.activity_version},
    )
    return decision


def start_child_workflow_execution(step: ChildWorkflowStep) -> StartChildWorkflowExecution:
    decision = StartChildWorkflowExecution(
        workflow_id=step.workflow_id,
        workflow_name=step.workflow_name,
        workflow_version=step.workflow_version,
        task_list=step.task_list,
        child_policy=step.child_policy.value,
        control=step.control,
        execution_start_to_close_timeout=step.execution_start_to_close_timeout,
        input=step.input,
        tag_list=step.tag_list,
        task_start_to_close_timeout=step.task_start_to_close_timeout,
    )
    logger.debug(
        "Decision: StartChildWorkflowExecution",
        extra={"workflow": step.workflow_name, "version": step.workflow_version},
    )
    return decision


def start_timer(step: TimerStep) -> StartTimer:
    logger.debug(
        "Decision: StartTimer",
        extra={"timer_id": step.timer_id, "seconds": step.start_to_fire_timeout},
    )
    return StartTimer(
        timer_id=step.timer_id,
        start_to_fire_timeout=str(step.start_to_fire_timeout),
        control=step.control,
    )


def complete_workflow_execution(result: str | None) -> CompleteWorkflowExecution:
    logger.debug("Decision: CompleteWorkflowExecution")
    return CompleteWorkflowExecution(result=result)


def cancel_workflow_execution(details: str | None) -> CancelWorkflowExecution:
    logger.debug("Decision: CancelWorkflowExecution")
    return CancelWorkflowExecution(details=details)


def fail_workflow_execution(details: str | None, reason: str | None) -> FailWorkflowExecution:
    logger.debug("Decision: FailWorkflowExecution", extra={"reason": reason})
    return FailWorkflowExecution(details=details, reason=reason)


def record_marker(details: str, marker_name: str) -> RecordMarker:
    logger.debug("Decision: RecordMarker", extra={"marker": marker_name, "value": details})
    return RecordMarker(marker_name=marker_name, details=details)
