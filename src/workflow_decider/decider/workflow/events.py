from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """History event types the decider understands.

    Anything else the service sends is carried through as a raw string and
    ignored when the history is folded.
    """

    WORKFLOW_EXECUTION_STARTED = "WorkflowExecutionStarted"
    WORKFLOW_EXECUTION_CONTINUED_AS_NEW = "WorkflowExecutionContinuedAsNew"
    WORKFLOW_EXECUTION_CANCEL_REQUESTED = "WorkflowExecutionCancelRequested"
    DECISION_TASK_COMPLETED = "DecisionTaskCompleted"
    ACTIVITY_TASK_SCHEDULED = "ActivityTaskScheduled"
    ACTIVITY_TASK_COMPLETED = "ActivityTaskCompleted"
    ACTIVITY_TASK_FAILED = "ActivityTaskFailed"
    ACTIVITY_TASK_TIMED_OUT = "ActivityTaskTimedOut"
    SCHEDULE_ACTIVITY_TASK_FAILED = "ScheduleActivityTaskFailed"
    CHILD_WORKFLOW_EXECUTION_STARTED = "ChildWorkflowExecutionStarted"
    CHILD_WORKFLOW_EXECUTION_COMPLETED = "ChildWorkflowExecutionCompleted"
    CHILD_WORKFLOW_EXECUTION_FAILED = "ChildWorkflowExecutionFailed"
    CHILD_WORKFLOW_EXECUTION_TERMINATED = "ChildWorkflowExecutionTerminated"
    CHILD_WORKFLOW_EXECUTION_TIMED_OUT = "ChildWorkflowExecutionTimedOut"
    MARKER_RECORDED = "MarkerRecorded"
    START_CHILD_WORKFLOW_EXECUTION_FAILED = "StartChildWorkflowExecutionFailed"
    TIMER_STARTED = "TimerStarted"
    TIMER_FIRED = "TimerFired"
    TIMER_CANCELED = "TimerCanceled"

    @classmethod
    def parse(cls, raw: str) -> EventType | None:
        try:
            return cls(raw)
        except ValueError:
            return None


def attributes_key(event_type: str) -> str:
    """Return the JSON key holding the attributes of an event type.

    `ActivityTaskCompleted` -> `activityTaskCompletedEventAttributes`.
    """

    return event_type[:1].lower() + event_type[1:] + "EventAttributes"


@dataclass(frozen=True, slots=True)
class HistoryEvent:
    """A single entry of the append-only workflow history.

    `event_type` keeps the raw service string so that unknown types survive
    parsing; use `kind` for the typed view.
    """

    event_id: int
    event_type: str
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> EventType | None:
        return EventType.parse(self.event_type)

    @staticmethod
    def from_json(obj: dict[str, Any]) -> HistoryEvent:
        event_type = obj.get("eventType")
        if not isinstance(event_type, str) or not event_type:
            raise ValueError("History event is missing eventType")
        event_id = obj.get("eventId")
        if isinstance(event_id, bool) or not isinstance(event_id, int):
            raise ValueError(f"History event {event_type} has an invalid eventId: {event_id!r}")
        attrs = obj.get(attributes_key(event_type))
        return HistoryEvent(
            event_id=event_id,
            event_type=event_type,
            attributes=attrs if isinstance(attrs, dict) else {},
        )

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"eventId": self.event_id, "eventType": self.event_type}
        if self.attributes:
            out[attributes_key(self.event_type)] = dict(self.attributes)
        return out


@dataclass(frozen=True, slots=True)
class HistoryPage:
    """One page of history as returned by the service."""

    events: list[HistoryEvent]
    next_page_token: str | None = None


@dataclass(frozen=True, slots=True)
class DecisionTask:
    """One decision invocation: the first page of history plus identifiers."""

    task_token: str
    workflow_name: str
    workflow_version: str
    workflow_id: str
    run_id: str = ""
    events: list[HistoryEvent] = field(default_factory=list)
    next_page_token: str | None = None
    previous_started_event_id: int = 0
    started_event_id: int = 0

    @staticmethod
    def from_json(obj: dict[str, Any]) -> DecisionTask:
        def _str(v: object) -> str:
            return v if isinstance(v, str) else ""

        def _int(v: object) -> int:
            if isinstance(v, int) and not isinstance(v, bool):
                return v
            if isinstance(v, str):
                try:
                    return int(v)
                except ValueError:
                    return 0
            return 0

        wf_type = obj.get("workflowType")
        wf_type = wf_type if isinstance(wf_type, dict) else {}
        execution = obj.get("workflowExecution")
        execution = execution if isinstance(execution, dict) else {}
        raw_events = obj.get("events")
        events = (
            [HistoryEvent.from_json(e) for e in raw_events if isinstance(e, dict)]
            if isinstance(raw_events, list)
            else []
        )
        token = obj.get("nextPageToken")

        return DecisionTask(
            task_token=_str(obj.get("taskToken")),
            workflow_name=_str(wf_type.get("name")),
            workflow_version=_str(wf_type.get("version")),
            workflow_id=_str(execution.get("workflowId")),
            run_id=_str(execution.get("runId")),
            events=events,
            next_page_token=token if isinstance(token, str) and token else None,
            previous_started_event_id=_int(obj.get("previousStartedEventId")),
            started_event_id=_int(obj.get("startedEventId")),
        )

    @property
    def is_empty(self) -> bool:
        """True for the empty response a long poll returns when no task arrived."""

        return not self.task_token
