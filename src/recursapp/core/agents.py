"""Agent registry: the panel of configured agents and their credentials."""

from __future__ import annotations

import os
from typing import Iterable, Optional

from ..models.agent import AgentIdentity, AgentOverride
from .credentials import CredentialStore

PlannedAgent = tuple[AgentIdentity, Optional[str]]


class AgentRegistry:
    """Immutable snapshot of the agent panel for one request.

    Ids are unique. Credentials resolve per agent: the agent's own key, then
    the credential store entry for its provider, then the provider's
    environment variable.
    """

    def __init__(
        self,
        agents: Iterable[AgentIdentity],
        providers: Optional[dict] = None,
        store: Optional[CredentialStore] = None,
        environ: Optional[dict] = None,
    ):
        self._agents: list[AgentIdentity] = list(agents)
        ids = [a.id for a in self._agents]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate agent ids: {', '.join(duplicates)}")
        self._by_id = {a.id: a for a in self._agents}
        self._providers = providers or {}
        self._store = store
        self._environ = environ if environ is not None else os.environ

    @classmethod
    def from_config(
        cls,
        config: dict,
        overrides: Optional[Iterable[AgentOverride]] = None,
        store: Optional[CredentialStore] = None,
        environ: Optional[dict] = None,
    ) -> "AgentRegistry":
        """Build the default panel from config, then apply per-id overrides.

        An override whose id is not in the default panel is appended.
        """
        agents = [AgentIdentity(**entry) for entry in config.get("agents", [])]
        if overrides:
            by_id = {a.id: i for i, a in enumerate(agents)}
            for override in overrides:
                changes = override.model_dump(exclude_none=True)
                if override.id in by_id:
                    base = agents[by_id[override.id]]
                    agents[by_id[override.id]] = AgentIdentity(**{**base.model_dump(), **changes})
                else:
                    by_id[override.id] = len(agents)
                    agents.append(AgentIdentity(**changes))
        return cls(agents, providers=config.get("providers", {}), store=store, environ=environ)

    def list_agents(self) -> list[AgentIdentity]:
        return list(self._agents)

    def resolve(self, agent_id: str) -> AgentIdentity:
        try:
            return self._by_id[agent_id]
        except KeyError:
            raise KeyError(f"Unknown agent: {agent_id}") from None

    def credential_for(self, agent: AgentIdentity) -> Optional[str]:
        if agent.api_key and agent.api_key.strip():
            return agent.api_key.strip()
        if self._store is not None:
            stored = self._store.get(agent.provider)
            if stored:
                return stored
        env_var = self._providers.get(agent.provider, {}).get("api_key_env")
        if env_var:
            value = self._environ.get(env_var, "").strip()
            if value:
                return value
        return None

    def plan(self, agent_ids: Optional[Iterable[str]] = None) -> list[PlannedAgent]:
        """Agents (optionally restricted to ``agent_ids``) with their credentials.

        Disabled agents stay in the plan and agents without a credential keep
        ``None``; callers record both as skipped instead of calling them.
        """
        if agent_ids is None:
            selected = self._agents
        else:
            selected = [self.resolve(i) for i in agent_ids]
        return [(a, self.credential_for(a) if a.enabled else None) for a in selected]
