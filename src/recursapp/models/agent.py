"""Agent data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .document import SubmissionUrlProposal


class AgentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({AgentStatus.DONE, AgentStatus.ERROR, AgentStatus.SKIPPED})

_ALLOWED_TRANSITIONS: dict[AgentStatus, frozenset[AgentStatus]] = {
    AgentStatus.PENDING: frozenset({AgentStatus.RUNNING, AgentStatus.SKIPPED}),
    AgentStatus.RUNNING: frozenset({AgentStatus.DONE, AgentStatus.ERROR}),
    AgentStatus.DONE: frozenset(),
    AgentStatus.ERROR: frozenset(),
    AgentStatus.SKIPPED: frozenset(),
}


class AgentIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    provider: str
    model: str
    role: str = ""
    color: str = "white"
    enabled: bool = True
    base_url: Optional[str] = None
    system_as_user: bool = False
    vision: bool = False
    fallback_models: list[str] = []
    api_key: Optional[str] = None


class AgentResult(BaseModel):
    agent_id: str
    label: str = ""
    color: str = "white"
    phase: str = "draft"
    status: AgentStatus = AgentStatus.PENDING
    content: str = ""
    error: Optional[str] = None
    model: Optional[str] = None
    duration_seconds: float = 0
    submission_url: Optional[SubmissionUrlProposal] = None

    @classmethod
    def for_agent(cls, agent: AgentIdentity, phase: str) -> "AgentResult":
        return cls(agent_id=agent.id, label=agent.label, color=agent.color, phase=phase, model=agent.model)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: AgentStatus) -> None:
        """Move to ``status``; statuses only move forward."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Agent {self.agent_id}: illegal status change {self.status.value} -> {status.value}"
            )
        self.status = status


class AgentOverride(BaseModel):
    """User settings for one agent; only the fields that are set apply."""

    id: str
    label: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    role: Optional[str] = None
    color: Optional[str] = None
    enabled: Optional[bool] = None
    base_url: Optional[str] = None
    system_as_user: Optional[bool] = None
    vision: Optional[bool] = None
    fallback_models: Optional[list[str]] = None
    api_key: Optional[str] = None
