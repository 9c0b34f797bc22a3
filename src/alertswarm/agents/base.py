"""Base class for specialist agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import structlog
from pydantic import BaseModel, ValidationError

from alertswarm.models import AgentResult, AgentTask, TaskType

logger = structlog.get_logger()

TaskHandler = Callable[[Any], Awaitable[AgentResult]]


class SpecialistAgent(ABC):
    """A specialist that turns every task it receives into an AgentResult.

    Subclasses declare their task kinds in ``handlers()``: each kind maps to
    the pydantic model its params must satisfy and the coroutine that
    handles it. ``process`` never raises for unknown kinds, bad params or
    handler errors; those become ``status=failed`` results.
    """

    name: str = "Agent"

    def __init__(self) -> None:
        self._handlers = self.handlers()

    @abstractmethod
    def handlers(self) -> dict[TaskType, tuple[type[BaseModel], TaskHandler]]:
        """Map each supported task kind to (params model, handler)."""

    @property
    def task_types(self) -> frozenset[TaskType]:
        return frozenset(self._handlers)

    async def process(self, task: AgentTask) -> AgentResult:
        """Run one task."""
        logger.info("agent_task_received", agent=self.name, task_type=task.type)

        try:
            kind = TaskType(task.type)
        except ValueError:
            kind = None
        if kind is None or kind not in self._handlers:
            return AgentResult.failure(self.name, f"Unknown task type: {task.type}")

        params_model, handler = self._handlers[kind]
        try:
            params = params_model.model_validate(task.params)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in e.errors()
            )
            return AgentResult.failure(self.name, f"Invalid parameters for {kind.value}: {errors}")

        try:
            return await handler(params)
        except Exception as e:
            logger.warning(
                "agent_task_failed",
                agent=self.name,
                task_type=kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return AgentResult.failure(self.name, str(e) or type(e).__name__)
