"""Unit tests for the replay-and-decide loop.

Each test builds a history, replays it through `decide`, and checks the
decisions returned for the final event.
"""

from __future__ import annotations

import dataclasses
import json

import pytest

from workflow_decider.decider.workflow.context import DecisionContext
from workflow_decider.decider.workflow.decisions import (
    CancelWorkflowExecution,
    CompleteWorkflowExecution,
    FailWorkflowExecution,
    RecordMarker,
    ScheduleActivityTask,
    StartChildWorkflowExecution,
    StartTimer,
)
from workflow_decider.decider.workflow.events import (
    DecisionTask,
    EventType,
    HistoryPage,
)
from workflow_decider.decider.workflow.pager import HistoryFetchError
from workflow_decider.decider.workflow.processor import (
    DISPATCH_TABLE,
    UnhandledEventTypeError,
    decide,
    dispatch,
)
from workflow_decider.decider.workflow.registry import UnknownWorkflowError, WorkflowRegistry
from workflow_decider.decider.workflow.workflow import Workflow


def _types(response) -> list[str]:
    return [d.decision_type for d in response.decisions]


def _timed_out_activity(history, markers: list[str], timeout_type: str = "START_TO_CLOSE"):
    """A history where activity A timed out once per marker value, then once more."""

    history.started().decision_round().activity_scheduled("A")
    for value in markers:
        history.activity_timed_out(timeout_type).decision_round()
        history.marker("ActivityTimeoutMarker", value).activity_scheduled("A")
    return history.activity_timed_out(timeout_type)


def _timed_out_child(history, markers: list[str]):
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    history.decision_round().child("ChildWorkflowExecutionStarted", "B")
    for value in markers:
        history.child("ChildWorkflowExecutionTimedOut", "B", timeoutType="START_TO_CLOSE")
        history.decision_round().marker("ChildWorkflowTimeoutMarker", value)
        history.child("ChildWorkflowExecutionStarted", "B")
    return history.child("ChildWorkflowExecutionTimedOut", "B", timeoutType="START_TO_CLOSE")


# Chain progression


def test_started_schedules_first_step_with_activity_state(history, registry) -> None:
    response = decide(history.started(input="order-input").task(), registry)

    assert response.task_token == "token-1"
    assert _types(response) == ["ScheduleActivityTask"]
    decision = response.decisions[0]
    assert isinstance(decision, ScheduleActivityTask)
    assert decision.activity_id == "a-1"
    assert json.loads(decision.input or "") == {
        "StartingInput": "order-input",
        "PreviousResult": None,
    }


def test_continued_as_new_restarts_chain(history, registry) -> None:
    history.add("WorkflowExecutionContinuedAsNew", input="again")

    response = decide(history.task(), registry)

    assert _types(response) == ["ScheduleActivityTask"]
    assert response.decisions[0].activity_name == "A"


def test_activity_completed_starts_child_with_previous_result(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")

    response = decide(history.task(), registry)

    decision = response.decisions[0]
    assert isinstance(decision, StartChildWorkflowExecution)
    assert decision.workflow_name == "B"
    assert decision.tag_list == ("orders",)
    assert decision.child_policy == "TERMINATE"
    assert json.loads(decision.input or "") == {
        "StartingInput": "order-input",
        "PreviousResult": "ra",
    }


def test_child_workflow_id_is_scoped_to_parent_execution(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    task = history.task()
    other = dataclasses.replace(task, workflow_id="wf-2")

    first = decide(task, registry).decisions[0]
    second = decide(other, registry).decisions[0]

    assert first.workflow_id == "wf-1-b-1"
    assert second.workflow_id == "wf-2-b-1"
    assert decide(task, registry).decisions[0] == first


def test_child_completed_passes_raw_result_to_next_step(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    history.decision_round().child("ChildWorkflowExecutionStarted", "B")
    history.child("ChildWorkflowExecutionCompleted", "B", result="rb")

    response = decide(history.task(), registry)

    decision = response.decisions[0]
    assert isinstance(decision, ScheduleActivityTask)
    assert decision.activity_name == "C"
    assert decision.input == "rb"


def test_last_step_completed_completes_workflow(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    history.decision_round().child("ChildWorkflowExecutionStarted", "B")
    history.child("ChildWorkflowExecutionCompleted", "B", result="rb")
    history.decision_round().activity_scheduled("C", input="rb").activity_completed("rc")

    response = decide(history.task(), registry)

    assert response.decisions == (CompleteWorkflowExecution(result="rc"),)


def test_empty_chain_completes_immediately(history, registry) -> None:
    response = decide(history.started().task("EmptyWorkflow"), registry)

    assert response.decisions == (CompleteWorkflowExecution(result=""),)


def test_in_flight_events_yield_no_decisions(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    history.decision_round().child("ChildWorkflowExecutionStarted", "B")
    assert decide(history.task(), registry).decisions == ()

    timer_history = type(history)()
    timer_history.started().decision_round().timer("TimerStarted", "wait")
    assert decide(timer_history.task("TimerWorkflow"), registry).decisions == ()


def test_execution_context_is_carried_into_response(history, registry) -> None:
    history.started().decision_round(execution_context="ctx-1")
    history.activity_scheduled("A").activity_completed("ra")

    assert decide(history.task(), registry).execution_context == "ctx-1"
    assert decide(type(history)().started().task(), registry).execution_context == ""


# Activity timeouts


@pytest.mark.parametrize(
    ("markers", "expected_count", "expected_timeout"),
    [
        ([], "1", "60"),
        (["1"], "2", "120"),
        (["1", "2"], "3", "180"),
        (["1", "2", "3"], "4", "240"),
    ],
)
def test_activity_timeout_retries_with_scaled_timeout(
    history, registry, markers: list[str], expected_count: str, expected_timeout: str
) -> None:
    response = decide(_timed_out_activity(history, markers).task(), registry)

    schedule, marker = response.decisions
    assert isinstance(schedule, ScheduleActivityTask)
    assert schedule.activity_name == "A"
    assert schedule.start_to_close_timeout == expected_timeout
    assert schedule.schedule_to_start_timeout == "30"
    assert json.loads(schedule.input or "")["StartingInput"] == "order-input"
    assert marker == RecordMarker(marker_name="ActivityTimeoutMarker", details=expected_count)


def test_activity_timeout_fails_after_retries_exhausted(history, registry) -> None:
    response = decide(_timed_out_activity(history, ["1", "2", "3", "4"]).task(), registry)

    assert response.decisions == (
        FailWorkflowExecution(
            details="Failing workflow after 3 retry attempts.",
            reason="OnActivityTaskTimedOut",
        ),
    )


def test_activity_timeout_scales_only_the_timeout_that_fired(history, registry) -> None:
    response = decide(_timed_out_activity(history, ["1"], "SCHEDULE_TO_START").task(), registry)

    schedule = response.decisions[0]
    assert schedule.schedule_to_start_timeout == "60"
    assert schedule.start_to_close_timeout == "60"
    assert schedule.schedule_to_close_timeout == "90"


def test_activity_timeout_keeps_none_and_unknown_types_unscaled(history, registry) -> None:
    heartbeat = decide(_timed_out_activity(history, ["2"], "HEARTBEAT").task(), registry)
    assert heartbeat.decisions[0].heartbeat_timeout == "NONE"

    unknown = decide(_timed_out_activity(type(history)(), ["2"], "MYSTERY").task(), registry)
    schedule, marker = unknown.decisions
    assert schedule.start_to_close_timeout == "60"
    assert marker.details == "3"


def test_non_numeric_marker_counts_as_zero(history, registry) -> None:
    response = decide(_timed_out_activity(history, ["lots"]).task(), registry)

    assert response.decisions[1].details == "1"


def test_timeout_of_activity_outside_chain_fails(history, registry) -> None:
    history.started().decision_round().activity_scheduled("Z").activity_timed_out()

    (decision,) = decide(history.task(), registry).decisions

    assert isinstance(decision, FailWorkflowExecution)
    assert decision.reason == "OnActivityTaskTimedOut"


# Child workflow timeouts


def test_child_timeout_restarts_child_with_same_timeout(history, registry) -> None:
    response = decide(_timed_out_child(history, ["1", "2"]).task(), registry)

    start, marker = response.decisions
    assert isinstance(start, StartChildWorkflowExecution)
    assert start.workflow_name == "B"
    assert start.execution_start_to_close_timeout == "600"
    assert start.workflow_id == "wf-1-b-1"
    assert marker == RecordMarker(marker_name="ChildWorkflowTimeoutMarker", details="3")


def test_child_timeout_fails_after_retries_exhausted(history, registry) -> None:
    response = decide(_timed_out_child(history, ["1", "2", "3", "4"]).task(), registry)

    assert response.decisions == (
        FailWorkflowExecution(
            details="Failing workflow after 3 retry attempts.",
            reason="OnChildWorkflowExecutionTimedOut",
        ),
    )


# Timers


def test_timer_first_chain_starts_timer(history, registry) -> None:
    response = decide(history.started().task("TimerWorkflow"), registry)

    assert response.decisions == (
        StartTimer(timer_id="wait", start_to_fire_timeout="30", control="ctl"),
    )


def test_timer_fired_starts_next_step(history, registry) -> None:
    history.started().decision_round().timer("TimerStarted", "wait")
    history.timer("TimerFired", "wait")

    (decision,) = decide(history.task("TimerWorkflow"), registry).decisions

    assert isinstance(decision, ScheduleActivityTask)
    assert decision.activity_name == "A"
    assert json.loads(decision.input or "")["StartingInput"] == "order-input"


@pytest.mark.parametrize(
    ("workflow_name", "expected"),
    [
        ("TimerWorkflow", ScheduleActivityTask),
        ("TimerCompletes", CompleteWorkflowExecution),
        ("TimerCancels", CancelWorkflowExecution),
    ],
)
def test_timer_canceled_follows_cancel_action(
    history, registry, workflow_name: str, expected: type
) -> None:
    history.started().decision_round().timer("TimerStarted", "wait")
    history.timer("TimerCanceled", "wait")

    (decision,) = decide(history.task(workflow_name), registry).decisions

    assert isinstance(decision, expected)


def test_canceled_timer_outside_chain_proceeds(history, registry) -> None:
    history.started().decision_round().timer("TimerCanceled", "unknown")

    (decision,) = decide(history.task("TimerWorkflow"), registry).decisions

    # No matching timer: treated like a fired timer with no next step.
    assert isinstance(decision, CompleteWorkflowExecution)


# Failures and cancellation


def test_cancel_requested_cancels_workflow(history, registry) -> None:
    history.started().decision_round().add("WorkflowExecutionCancelRequested", cause="user")

    assert decide(history.task(), registry).decisions == (CancelWorkflowExecution(details=None),)


def test_activity_failed_fails_workflow(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A")
    history.add("ActivityTaskFailed", details="stack", reason="boom")

    assert decide(history.task(), registry).decisions == (
        FailWorkflowExecution(details="stack", reason="boom"),
    )


@pytest.mark.parametrize(
    ("event_type", "reason"),
    [
        ("ScheduleActivityTaskFailed", "OnScheduleActivityTaskFailed"),
        ("StartChildWorkflowExecutionFailed", "OnStartChildWorkflowExecutionFailed"),
        ("ChildWorkflowExecutionFailed", "OnChildWorkflowExecutionFailed"),
        ("ChildWorkflowExecutionTerminated", "OnChildWorkflowExecutionTerminated"),
    ],
)
def test_failure_events_fail_workflow(history, registry, event_type: str, reason: str) -> None:
    history.started().decision_round()
    history.add(event_type, workflowType={"name": "B", "version": "1.0"}, cause="WHY")

    (decision,) = decide(history.task(), registry).decisions

    assert isinstance(decision, FailWorkflowExecution)
    assert decision.reason == reason


def test_schedule_failure_reports_cause(history, registry) -> None:
    history.started().decision_round()
    history.add(
        "ScheduleActivityTaskFailed",
        activityType={"name": "A", "version": "1.0"},
        cause="ACTIVITY_TYPE_DOES_NOT_EXIST",
    )

    assert decide(history.task(), registry).decisions == (
        FailWorkflowExecution(
            details="ACTIVITY_TYPE_DOES_NOT_EXIST", reason="OnScheduleActivityTaskFailed"
        ),
    )


# Dispatch errors


def test_history_without_decision_event_is_unhandled(history, registry) -> None:
    history.decision_round()

    with pytest.raises(UnhandledEventTypeError) as exc_info:
        decide(history.task(), registry)

    assert exc_info.value.decision_type is None
    assert "<none>" in str(exc_info.value)


def test_dispatch_rejects_event_types_without_handler() -> None:
    ctx = DecisionContext(decision_type=EventType.MARKER_RECORDED)

    with pytest.raises(UnhandledEventTypeError, match="MarkerRecorded"):
        dispatch(Workflow(), ctx)


def test_every_dispatched_type_has_a_handler() -> None:
    for handler_name in DISPATCH_TABLE.values():
        assert callable(getattr(Workflow, handler_name))


def test_unknown_workflow_type_is_rejected(history, registry) -> None:
    with pytest.raises(UnknownWorkflowError):
        decide(history.started().task("Nope"), registry)


# Replay properties


def test_decide_is_deterministic(history, registry) -> None:
    task = _timed_out_activity(history, ["1", "2"]).task()

    assert decide(task, registry).to_json() == decide(task, registry).to_json()


def test_later_history_windows_decide_on_their_own_last_event(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    history.decision_round().child("ChildWorkflowExecutionStarted", "B")

    assert _types(decide(history.task(upto=1), registry)) == ["ScheduleActivityTask"]
    assert _types(decide(history.task(upto=8), registry)) == ["StartChildWorkflowExecution"]
    assert _types(decide(history.task(), registry)) == []


def test_decides_across_history_pages(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    events = history.task().events

    class Pages:
        def fetch_page(self, next_page_token: str) -> HistoryPage:
            assert next_page_token == "p2"
            return HistoryPage(events=events[3:])

    task = DecisionTask(
        task_token="token-1",
        workflow_name="TestWorkflow",
        workflow_version="1.0",
        workflow_id="wf-1",
        events=events[:3],
        next_page_token="p2",
    )

    assert _types(decide(task, registry, source=Pages())) == ["StartChildWorkflowExecution"]


def test_unreachable_pages_decide_on_partial_history(history, registry) -> None:
    history.started().decision_round().activity_scheduled("A").activity_completed("ra")
    events = history.task().events

    class Broken:
        def fetch_page(self, next_page_token: str) -> HistoryPage:
            raise HistoryFetchError("down")

    task = DecisionTask(
        task_token="token-1",
        workflow_name="TestWorkflow",
        workflow_version="1.0",
        workflow_id="wf-1",
        events=[events[0]],
        next_page_token="p2",
    )

    # The later completion is never seen, so the first step is scheduled again.
    response = decide(task, registry, source=Broken(), max_fetch_attempts=2)
    assert _types(response) == ["ScheduleActivityTask"]
    assert response.decisions[0].activity_name == "A"


def test_workflow_handlers_can_be_overridden(history) -> None:
    class Quiet(Workflow):
        def on_workflow_execution_started(self, context: DecisionContext) -> list:
            return []

    response = decide(history.started().task("Quiet"), WorkflowRegistry({"Quiet": Quiet}))

    assert response.decisions == ()
