"""CLI entrypoint for the decider.

Commands:
- decide: decide offline on a decision task read from a JSON file
- poll:   poll the orchestration service, decide, and respond
- start:  start a workflow execution
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from workflow_decider import __version__
from workflow_decider.decider.config import DeciderSettings
from workflow_decider.decider.logging import configure_logging
from workflow_decider.decider.service.client import (
    DecisionServiceClient,
    DecisionServiceError,
    PollerPageSource,
)
from workflow_decider.decider.workflow.events import DecisionTask
from workflow_decider.decider.workflow.processor import UnhandledEventTypeError, decide
from workflow_decider.decider.workflow.registry import UnknownWorkflowError, WorkflowRegistry
from workflow_decider.workflows import default_registry

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="decider",
        description="Stateless decider for step-chain workflows",
    )
    parser.add_argument("--version", action="version", version=f"workflow-decider {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    decide_cmd = subparsers.add_parser(
        "decide",
        help="Decide on a decision task read from a JSON file and print the response",
    )
    decide_cmd.add_argument(
        "--task",
        required=True,
        help="Path to a decision task JSON document ('-' reads stdin)",
    )

    poll = subparsers.add_parser(
        "poll",
        help="Poll the service for decision tasks, decide, and respond",
    )
    poll.add_argument(
        "--once",
        action="store_true",
        help="Handle at most one poll and exit",
    )
    poll.add_argument(
        "--task-list",
        default=None,
        help="Decision task list to poll (defaults to DECIDER_TASK_LIST)",
    )

    start = subparsers.add_parser("start", help="Start a workflow execution")
    start.add_argument("--workflow", required=True, help="Workflow type name")
    start.add_argument(
        "--version",
        dest="workflow_version",
        default="1.0",
        help="Workflow type version",
    )
    start.add_argument("--input", default=None, help="Workflow input (usually a JSON string)")
    start.add_argument(
        "--workflow-id",
        default=None,
        help="Workflow id (defaults to a random UUID)",
    )

    return parser


def _read_task(path: str) -> DecisionTask:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Decision task JSON must be an object")
    return DecisionTask.from_json(data)


def _client(settings: DeciderSettings) -> DecisionServiceClient:
    return DecisionServiceClient(
        base_url=settings.service_url,
        domain=settings.domain,
        token=settings.service_token,
        timeout_seconds=settings.request_timeout_seconds,
    )


def _poll(
    settings: DeciderSettings,
    registry: WorkflowRegistry,
    *,
    task_list: str,
    once: bool,
) -> int:
    identity = settings.identity or str(uuid.uuid4())
    client = _client(settings)
    source = PollerPageSource(client, task_list=task_list, identity=identity)
    try:
        while True:
            try:
                task = client.poll_for_decision_task(task_list=task_list, identity=identity)
            except (DecisionServiceError, ValueError) as e:
                logger.error("Poll failed", extra={"task_list": task_list, "error": str(e)})
                if once:
                    return 1
                continue

            if task.is_empty:
                logger.debug("Poll returned no task")
                if once:
                    return 0
                continue

            try:
                response = decide(
                    task,
                    registry,
                    source=source,
                    max_fetch_attempts=settings.page_fetch_attempts,
                )
            except (UnhandledEventTypeError, UnknownWorkflowError) as e:
                # Respond with nothing; the service will time the task out and retry.
                logger.error(
                    str(e),
                    extra={"workflow": task.workflow_name, "workflow_id": task.workflow_id},
                )
                if once:
                    return 3
                continue
            except ValueError as e:
                # A later history page held a malformed event.
                logger.error(
                    "Malformed history",
                    extra={"workflow_id": task.workflow_id, "error": str(e)},
                )
                if once:
                    return 1
                continue

            try:
                client.respond_decision_task_completed(response)
            except DecisionServiceError as e:
                logger.error(
                    "Responding to decision task failed",
                    extra={"workflow_id": task.workflow_id, "error": str(e)},
                )
                if once:
                    return 1
                continue
            if once:
                return 0
    except KeyboardInterrupt:
        logger.info("Polling stopped")
        return 0
    finally:
        client.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = DeciderSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    registry = default_registry()

    try:
        if args.command == "decide":
            try:
                task = _read_task(args.task)
            except (OSError, ValueError) as e:
                print(f"Invalid decision task: {e}", file=sys.stderr)
                return 2

            response = decide(task, registry, max_fetch_attempts=settings.page_fetch_attempts)
            print(json.dumps(response.to_json(), indent=2, ensure_ascii=False))
            return 0

        if args.command == "poll":
            return _poll(
                settings,
                registry,
                task_list=args.task_list or settings.task_list,
                once=args.once,
            )

        if args.command == "start":
            client = _client(settings)
            try:
                run_id = client.start_workflow_execution(
                    workflow_name=args.workflow,
                    workflow_version=args.workflow_version,
                    input=args.input,
                    workflow_id=args.workflow_id,
                )
            finally:
                client.close()
            print(f"Started {args.workflow} ({args.workflow_version}) run_id={run_id}")
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (UnhandledEventTypeError, UnknownWorkflowError) as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
