"""Sample workflow definitions."""

from workflow_decider.workflows.customer_order import (
    CustomerOrderWorkflow,
    VerifyCustomerWorkflow,
    default_registry,
)

__all__ = [
    "CustomerOrderWorkflow",
    "VerifyCustomerWorkflow",
    "default_registry",
]
