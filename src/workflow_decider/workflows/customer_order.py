"""Sample workflows built on `Workflow`.

Each one only declares its chain; all event handling comes from the base
class. Step ids are fixed so that replaying the same history yields the same
decisions.
"""

from __future__ import annotations

from workflow_decider.decider.workflow.registry import WorkflowRegistry
from workflow_decider.decider.workflow.steps import (
    ActivityStep,
    ChildPolicy,
    ChildWorkflowStep,
    StepChain,
)
from workflow_decider.decider.workflow.workflow import Workflow

ACTIVITY_TASK_LIST = "ActivityTaskList-Default"
DECIDER_TASK_LIST = "DeciderTaskList-Default"


def _activity(name: str) -> ActivityStep:
    return ActivityStep(
        activity_name=name,
        activity_version="1.0",
        activity_id=f"{name}-1.0",
        task_list=ACTIVITY_TASK_LIST,
        schedule_to_close_timeout="60",
        schedule_to_start_timeout="60",
        start_to_close_timeout="60",
        heartbeat_timeout="NONE",
    )


class CustomerOrderWorkflow(Workflow):
    """Verify the order, verify the customer in a child workflow, then ship."""

    steps = StepChain(
        [
            _activity("VerifyOrder"),
            ChildWorkflowStep(
                workflow_name="VerifyCustomerWorkflow",
                workflow_version="1.0",
                workflow_id="VerifyCustomerWorkflow-1.0",
                task_list=DECIDER_TASK_LIST,
                execution_start_to_close_timeout="600",
                task_start_to_close_timeout="60",
                child_policy=ChildPolicy.TERMINATE,
            ),
            _activity("ShipOrder"),
        ]
    )


class VerifyCustomerWorkflow(Workflow):
    steps = StepChain(
        [
            _activity("VerifyCustomerAddress"),
            _activity("CheckFraudDB"),
            _activity("ChargeCreditCard"),
        ]
    )


def default_registry() -> WorkflowRegistry:
    """Registry with the sample workflows, keyed by workflow type name."""

    return WorkflowRegistry(
        {
            "CustomerOrderWorkflow": CustomerOrderWorkflow,
            "VerifyCustomerWorkflow": VerifyCustomerWorkflow,
        }
    )
