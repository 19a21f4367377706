#!/usr/bin/env python3
"""Programmatic decision example.

This demonstrates using the decider components directly:

* build a decision task from a short, hand-written history
* fold it and dispatch it to the sample CustomerOrderWorkflow
* print the decisions that would be sent back to the service

No service is contacted.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from workflow_decider.decider.logging import configure_logging
from workflow_decider.decider.workflow.events import DecisionTask
from workflow_decider.decider.workflow.processor import decide
from workflow_decider.workflows import default_registry


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Decide on a sample history.")
    parser.add_argument("--input", default='{"SampleOrderNumber": "12345"}', help="Workflow input")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)

    task = DecisionTask.from_json(
        {
            "taskToken": "example-token",
            "workflowType": {"name": "CustomerOrderWorkflow", "version": "1.0"},
            "workflowExecution": {"workflowId": "order-12345", "runId": "run-1"},
            "events": [
                {
                    "eventId": 1,
                    "eventType": "WorkflowExecutionStarted",
                    "workflowExecutionStartedEventAttributes": {"input": args.input},
                },
                {"eventId": 2, "eventType": "DecisionTaskScheduled"},
                {"eventId": 3, "eventType": "DecisionTaskStarted"},
            ],
        }
    )

    response = decide(task, default_registry())
    print(json.dumps(response.to_json(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
