"""Fold a workflow history into the context a decision is made on.

The fold is a pure function of the task identifiers and the ordered events.
Later events overwrite fields set by earlier ones, so after a full replay the
context describes the most recent decision-relevant event (`decision_type`)
together with the latest values of everything a handler may need.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .events import DecisionTask, EventType, HistoryEvent

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DecisionContext:
    """Mutable accumulator built fresh for every decision task."""

    workflow_name: str = ""
    workflow_version: str = ""
    workflow_id: str = ""

    decision_type: EventType | None = None
    starting_input: str | None = None
    execution_context: str | None = None

    activity_name: str | None = None
    activity_version: str | None = None
    child_workflow_name: str | None = None
    child_workflow_version: str | None = None
    timer_id: str | None = None

    input: str | None = None
    result: str | None = None
    cause: str | None = None
    details: str | None = None
    reason: str | None = None
    control: str | None = None
    timeout_type: str | None = None

    markers: dict[str, str] = field(default_factory=dict)
    timers: dict[str, dict[str, Any]] = field(default_factory=dict)
    fired_timers: dict[str, dict[str, Any]] = field(default_factory=dict)
    canceled_timers: dict[str, dict[str, Any]] = field(default_factory=dict)


def _opt_str(attrs: dict[str, Any], key: str) -> str | None:
    value = attrs.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _type_ref(attrs: dict[str, Any], key: str) -> tuple[str | None, str | None]:
    ref = attrs.get(key)
    if not isinstance(ref, dict):
        return None, None
    return _opt_str(ref, "name"), _opt_str(ref, "version")


def _on_workflow_started(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.input = _opt_str(attrs, "input")
    ctx.starting_input = ctx.input


def _on_continued_as_new(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.input = _opt_str(attrs, "input")


def _on_cancel_requested(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.cause = _opt_str(attrs, "cause")


def _on_decision_completed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    # The execution context is only visible on this bookkeeping event.
    ctx.execution_context = _opt_str(attrs, "executionContext")


def _on_activity_scheduled(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    # Completion/failure events don't repeat the activity type; remember it here.
    ctx.activity_name, ctx.activity_version = _type_ref(attrs, "activityType")
    ctx.control = _opt_str(attrs, "control")
    ctx.input = _opt_str(attrs, "input")


def _on_activity_completed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.result = _opt_str(attrs, "result")


def _on_activity_failed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.details = _opt_str(attrs, "details")
    ctx.reason = _opt_str(attrs, "reason")


def _on_activity_timed_out(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.details = _opt_str(attrs, "details")
    ctx.timeout_type = _opt_str(attrs, "timeoutType")


def _on_schedule_activity_failed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.activity_name, ctx.activity_version = _type_ref(attrs, "activityType")
    ctx.cause = _opt_str(attrs, "cause")


def _set_child_type(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.child_workflow_name, ctx.child_workflow_version = _type_ref(attrs, "workflowType")


def _on_child_completed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    _set_child_type(ctx, attrs)
    ctx.result = _opt_str(attrs, "result")


def _on_child_failed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    _set_child_type(ctx, attrs)
    ctx.details = _opt_str(attrs, "details")
    ctx.reason = _opt_str(attrs, "reason")


def _on_child_timed_out(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    _set_child_type(ctx, attrs)
    ctx.timeout_type = _opt_str(attrs, "timeoutType")


def _on_start_child_failed(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    _set_child_type(ctx, attrs)
    ctx.cause = _opt_str(attrs, "cause")


def _on_marker_recorded(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    # Last writer wins: a later marker with the same name replaces the value.
    name = _opt_str(attrs, "markerName")
    if name is None:
        return
    ctx.markers[name] = _opt_str(attrs, "details") or ""
    logger.debug("Marker recorded", extra={"marker": name, "value": ctx.markers[name]})


def _on_timer_started(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.timer_id = _opt_str(attrs, "timerId")
    if ctx.timer_id is not None:
        ctx.timers[ctx.timer_id] = dict(attrs)


def _on_timer_fired(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.timer_id = _opt_str(attrs, "timerId")
    if ctx.timer_id is not None and ctx.timer_id in ctx.timers:
        ctx.fired_timers[ctx.timer_id] = dict(attrs)
        del ctx.timers[ctx.timer_id]


def _on_timer_canceled(ctx: DecisionContext, attrs: dict[str, Any]) -> None:
    ctx.timer_id = _opt_str(attrs, "timerId")
    if ctx.timer_id is not None and ctx.timer_id in ctx.timers:
        ctx.canceled_timers[ctx.timer_id] = dict(attrs)
        del ctx.timers[ctx.timer_id]


_Folder = Callable[[DecisionContext, dict[str, Any]], None]

FOLDERS: dict[EventType, _Folder] = {
    EventType.WORKFLOW_EXECUTION_STARTED: _on_workflow_started,
    EventType.WORKFLOW_EXECUTION_CONTINUED_AS_NEW: _on_continued_as_new,
    EventType.WORKFLOW_EXECUTION_CANCEL_REQUESTED: _on_cancel_requested,
    EventType.DECISION_TASK_COMPLETED: _on_decision_completed,
    EventType.ACTIVITY_TASK_SCHEDULED: _on_activity_scheduled,
    EventType.ACTIVITY_TASK_COMPLETED: _on_activity_completed,
    EventType.ACTIVITY_TASK_FAILED: _on_activity_failed,
    EventType.ACTIVITY_TASK_TIMED_OUT: _on_activity_timed_out,
    EventType.SCHEDULE_ACTIVITY_TASK_FAILED: _on_schedule_activity_failed,
    EventType.CHILD_WORKFLOW_EXECUTION_STARTED: _set_child_type,
    EventType.CHILD_WORKFLOW_EXECUTION_COMPLETED: _on_child_completed,
    EventType.CHILD_WORKFLOW_EXECUTION_FAILED: _on_child_failed,
    EventType.CHILD_WORKFLOW_EXECUTION_TERMINATED: _set_child_type,
    EventType.CHILD_WORKFLOW_EXECUTION_TIMED_OUT: _on_child_timed_out,
    EventType.MARKER_RECORDED: _on_marker_recorded,
    EventType.START_CHILD_WORKFLOW_EXECUTION_FAILED: _on_start_child_failed,
    EventType.TIMER_STARTED: _on_timer_started,
    EventType.TIMER_FIRED: _on_timer_fired,
    EventType.TIMER_CANCELED: _on_timer_canceled,
}

# Event types that are only recorded, never decided on.
PASSIVE_EVENT_TYPES: frozenset[EventType] = frozenset(
    {
        EventType.DECISION_TASK_COMPLETED,
        EventType.ACTIVITY_TASK_SCHEDULED,
        EventType.MARKER_RECORDED,
    }
)


def apply_event(ctx: DecisionContext, event: HistoryEvent) -> None:
    """Fold a single event into the context. Unknown event types are ignored."""

    kind = event.kind
    if kind is None:
        return
    FOLDERS[kind](ctx, event.attributes)
    if kind not in PASSIVE_EVENT_TYPES:
        ctx.decision_type = kind


def build_context(task: DecisionTask, events: Iterable[HistoryEvent]) -> DecisionContext:
    """Replay `events` in order and return the resulting decision context."""

    ctx = DecisionContext(
        workflow_name=task.workflow_name,
        workflow_version=task.workflow_version,
        workflow_id=task.workflow_id,
    )
    logger.debug("Folding history", extra={"workflow": ctx.workflow_name})
    for event in events:
        logger.debug(
            "History event", extra={"event_id": event.event_id, "event_type": event.event_type}
        )
        apply_event(ctx, event)
    return ctx
