from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from .workflow import Workflow

logger = logging.getLogger(__name__)

WorkflowFactory = Callable[[], Workflow]


class UnknownWorkflowError(ValueError):
    pass


class WorkflowRegistry:
    """Maps workflow type names to the factories that build their deciders.

    Populated once at startup; lookups never inspect types at runtime.
    """

    def __init__(self, workflows: dict[str, WorkflowFactory] | None = None) -> None:
        self._factories: dict[str, WorkflowFactory] = {}
        for name, factory in (workflows or {}).items():
            self.register(name, factory)

    def register(self, name: str, factory: WorkflowFactory) -> None:
        if not name.strip():
            raise ValueError("Workflow name is required")
        if name in self._factories:
            raise ValueError(f"Workflow already registered: {name}")
        self._factories[name] = factory
        logger.debug("Registered workflow", extra={"workflow": name})

    def create(self, name: str) -> Workflow:
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownWorkflowError(f"Unknown workflow: {name!r}")
        return factory()

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._factories))

    def __len__(self) -> int:
        return len(self._factories)
