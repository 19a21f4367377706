"""Turn one decision task into the response the service expects.

Steps:
1. Page through the task's history and fold it into a `DecisionContext`.
2. Look up the workflow registered for the task's workflow type.
3. Dispatch on the context's decision type to the matching workflow handler.

Nothing is kept between calls. Given the same history, `decide` always
returns the same response.
"""

from __future__ import annotations

import logging

from .context import DecisionContext, build_context
from .decisions import Decision, DecisionResponse
from .events import DecisionTask, EventType
from .pager import DEFAULT_MAX_FETCH_ATTEMPTS, EventPager, HistoryPageSource
from .registry import WorkflowRegistry
from .workflow import Workflow

logger = logging.getLogger(__name__)


DISPATCH_TABLE: dict[EventType, str] = {
    EventType.WORKFLOW_EXECUTION_STARTED: "on_workflow_execution_started",
    EventType.WORKFLOW_EXECUTION_CONTINUED_AS_NEW: "on_workflow_execution_continued_as_new",
    EventType.WORKFLOW_EXECUTION_CANCEL_REQUESTED: "on_workflow_execution_cancel_requested",
    EventType.ACTIVITY_TASK_COMPLETED: "on_activity_task_completed",
    EventType.ACTIVITY_TASK_FAILED: "on_activity_task_failed",
    EventType.ACTIVITY_TASK_TIMED_OUT: "on_activity_task_timed_out",
    EventType.SCHEDULE_ACTIVITY_TASK_FAILED: "on_schedule_activity_task_failed",
    EventType.CHILD_WORKFLOW_EXECUTION_STARTED: "on_child_workflow_execution_started",
    EventType.CHILD_WORKFLOW_EXECUTION_COMPLETED: "on_child_workflow_execution_completed",
    EventType.CHILD_WORKFLOW_EXECUTION_FAILED: "on_child_workflow_execution_failed",
    EventType.CHILD_WORKFLOW_EXECUTION_TERMINATED: "on_child_workflow_execution_terminated",
    EventType.CHILD_WORKFLOW_EXECUTION_TIMED_OUT: "on_child_workflow_execution_timed_out",
    EventType.START_CHILD_WORKFLOW_EXECUTION_FAILED: "on_start_child_workflow_execution_failed",
    EventType.TIMER_STARTED: "on_timer_started",
    EventType.TIMER_FIRED: "on_timer_fired",
    EventType.TIMER_CANCELED: "on_timer_canceled",
}


class UnhandledEventTypeError(RuntimeError):
    """The history ended on an event type no handler exists for.

    Nothing must be sent back to the service when this is raised.
    """

    def __init__(self, decision_type: EventType | None) -> None:
        self.decision_type = decision_type
        label = decision_type.value if decision_type is not None else "<none>"
        super().__init__(f"Unhandled event type: {label}")


def dispatch(workflow: Workflow, context: DecisionContext) -> list[Decision]:
    """Call the workflow handler for the context's decision type."""

    kind = context.decision_type
    handler_name = DISPATCH_TABLE.get(kind) if kind is not None else None
    if handler_name is None:
        raise UnhandledEventTypeError(kind)
    decisions: list[Decision] = getattr(workflow, handler_name)(context)
    return decisions


def decide(
    task: DecisionTask,
    registry: WorkflowRegistry,
    *,
    source: HistoryPageSource | None = None,
    max_fetch_attempts: int = DEFAULT_MAX_FETCH_ATTEMPTS,
) -> DecisionResponse:
    """Replay the task's history and return the next decisions for its workflow.

    Raises:
        UnknownWorkflowError: no workflow registered for the task's type.
        UnhandledEventTypeError: the history ends on an event nobody handles.
    """

    workflow = registry.create(task.workflow_name)
    pager = EventPager(
        task.events,
        task.next_page_token,
        source,
        max_fetch_attempts=max_fetch_attempts,
    )
    context = build_context(task, pager)
    if pager.truncated:
        logger.warning(
            "Deciding on a truncated history",
            extra={"workflow_id": task.workflow_id, "loaded_events": pager.loaded_count},
        )

    decisions = dispatch(workflow, context)
    logger.info(
        "Decision made",
        extra={
            "workflow": task.workflow_name,
            "workflow_id": task.workflow_id,
            "decision_type": context.decision_type.value if context.decision_type else None,
            "decisions": [d.decision_type for d in decisions],
        },
    )
    return DecisionResponse(
        task_token=task.task_token,
        decisions=tuple(decisions),
        execution_context=context.execution_context or "",
    )
