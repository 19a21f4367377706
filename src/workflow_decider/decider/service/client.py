"""HTTP client for an SWF-compatible orchestration service.

Requests use the JSON 1.0 protocol: every call is a POST to the service root
with the operation named in the `X-Amz-Target` header. Request signing is left
to whatever sits in front of the endpoint (a gateway or local emulator); this
client only sends an optional bearer token.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import requests

from workflow_decider.decider.workflow.decisions import DecisionResponse
from workflow_decider.decider.workflow.events import DecisionTask, HistoryPage
from workflow_decider.decider.workflow.pager import HistoryFetchError

logger = logging.getLogger(__name__)

_TARGET_PREFIX = "SimpleWorkflowService."
_CONTENT_TYPE = "application/x-amz-json-1.0"


class DecisionServiceError(RuntimeError):
    """Raised when the orchestration service cannot be reached or rejects a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecisionServiceClient:
    """Small wrapper around the service operations a decider needs."""

    def __init__(
        self,
        *,
        base_url: str,
        domain: str,
        token: str = "",
        timeout_seconds: float = 70.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Service base URL is required")
        if not domain:
            raise ValueError("Workflow domain is required")

        self._base_url = base_url.rstrip("/") + "/"
        self._domain = domain
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Content-Type": _CONTENT_TYPE,
                "User-Agent": "workflow-decider",
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    @property
    def domain(self) -> str:
        return self._domain

    def close(self) -> None:
        self._session.close()

    def _call(self, operation: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = self._session.post(
                self._base_url,
                json=payload,
                headers={"X-Amz-Target": _TARGET_PREFIX + operation},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise DecisionServiceError(f"{operation} failed: {e}") from e

        if resp.status_code >= 400:
            raise DecisionServiceError(
                f"{operation} failed with HTTP {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise DecisionServiceError(f"{operation} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise DecisionServiceError(f"{operation} returned unexpected payload")
        return data

    def poll_for_decision_task(
        self,
        *,
        task_list: str,
        identity: str,
        next_page_token: str | None = None,
    ) -> DecisionTask:
        """Long-poll for a decision task, or for a further page of its history.

        An empty task (no task token) means the poll timed out without work.
        """

        payload: dict[str, Any] = {
            "domain": self._domain,
            "taskList": {"name": task_list},
            "identity": identity,
        }
        if next_page_token:
            payload["nextPageToken"] = next_page_token
        data = self._call("PollForDecisionTask", payload)
        return DecisionTask.from_json(data)

    def respond_decision_task_completed(self, response: DecisionResponse) -> None:
        self._call("RespondDecisionTaskCompleted", response.to_json())
        logger.info(
            "Submitted decisions",
            extra={"decisions": [d.decision_type for d in response.decisions]},
        )

    def start_workflow_execution(
        self,
        *,
        workflow_name: str,
        workflow_version: str,
        input: str | None = None,
        workflow_id: str | None = None,
        task_list: str | None = None,
    ) -> str:
        """Start a workflow execution and return its run id."""

        payload: dict[str, Any] = {
            "domain": self._domain,
            "workflowId": workflow_id or str(uuid.uuid4()),
            "workflowType": {"name": workflow_name, "version": workflow_version},
        }
        if input is not None:
            payload["input"] = input
        if task_list:
            payload["taskList"] = {"name": task_list}
        data = self._call("StartWorkflowExecution", payload)
        run_id = data.get("runId")
        return run_id if isinstance(run_id, str) else ""


class PollerPageSource:
    """Fetches further history pages by re-polling with the page token."""

    def __init__(self, client: DecisionServiceClient, *, task_list: str, identity: str) -> None:
        self._client = client
        self._task_list = task_list
        self._identity = identity

    def fetch_page(self, next_page_token: str) -> HistoryPage:
        try:
            task = self._client.poll_for_decision_task(
                task_list=self._task_list,
                identity=self._identity,
                next_page_token=next_page_token,
            )
        except DecisionServiceError as e:
            raise HistoryFetchError(str(e)) from e
        return HistoryPage(events=task.events, next_page_token=task.next_page_token)
