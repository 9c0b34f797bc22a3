"""Agent task and result models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from alertswarm.models.enums import AgentStatus, Priority


class AgentTask(BaseModel):
    """A unit of work for a specialist agent.

    Created by the planner or the deterministic fallback and consumed
    exactly once.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Task kind, e.g. 'check_ip'")
    params: dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Field(default=Priority.MEDIUM)


class AgentResult(BaseModel):
    """Result produced by a specialist agent for every task it receives."""

    agent: str = Field(..., description="Name of the agent that produced the result")
    status: AgentStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    summary: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == AgentStatus.SUCCESS

    @classmethod
    def failure(cls, agent: str, error: str, summary: str | None = None) -> "AgentResult":
        """Build a failed result."""
        return cls(
            agent=agent,
            status=AgentStatus.FAILED,
            error=error,
            summary=summary or f"{agent} analysis failed: {error}",
        )


# Typed parameters for each task kind


class CheckIpParams(BaseModel):
    ip: str = Field(..., min_length=1)


class QueryLogsParams(BaseModel):
    ip: str = Field(..., min_length=1)
    hours: int = Field(default=24, ge=1, le=24 * 30)


class CheckHashParams(BaseModel):
    hash: str = Field(..., min_length=1)


class CheckUserParams(BaseModel):
    username: str = Field(..., min_length=1)
