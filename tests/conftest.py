"""Shared fixtures for RecursApp tests."""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from recursapp.core.config import DEFAULT_CONFIG
from recursapp.models.agent import AgentIdentity
from recursapp.models.provider import CanonicalRequest, CompletionResult

Outcome = Union[CompletionResult, BaseException, Callable[..., CompletionResult]]


class FakeCaller:
    """AgentCaller that answers from a per-agent script instead of HTTP."""

    def __init__(
        self,
        responses: Optional[dict[str, Outcome]] = None,
        default: Optional[Outcome] = None,
        delays: Optional[dict[str, float]] = None,
    ):
        self.responses = responses or {}
        self.default = default or CompletionResult(success=False, error="No scripted response")
        self.delays = delays or {}
        self.calls: list[tuple[str, CanonicalRequest]] = []

    async def call(
        self,
        agent: AgentIdentity,
        credential: Optional[str],
        request: CanonicalRequest,
        max_tokens: int = 0,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResult:
        self.calls.append((agent.id, request))
        if agent.id in self.delays:
            await asyncio.sleep(self.delays[agent.id])
        outcome = self.responses.get(agent.id, self.default)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(agent, request)
        return outcome

    def called_ids(self) -> list[str]:
        return [agent_id for agent_id, _ in self.calls]


def ok(content: str, model: str = "test-model") -> CompletionResult:
    return CompletionResult(success=True, content=content, model=model)


def failed(error: str = "HTTP 500", status_code: Optional[int] = 500) -> CompletionResult:
    return CompletionResult(success=False, error=error, status_code=status_code)


@pytest.fixture
def config() -> dict:
    """A private copy of the built-in configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture
def make_agent() -> Callable[..., AgentIdentity]:
    def _make(agent_id: str = "agent-1", **kwargs) -> AgentIdentity:
        fields = {
            "id": agent_id,
            "label": f"Agent {agent_id}",
            "provider": "groq",
            "model": "test-model",
            "role": "Experto en derecho administrativo",
        }
        fields.update(kwargs)
        return AgentIdentity(**fields)

    return _make


@pytest.fixture
def make_caller() -> Callable[..., FakeCaller]:
    return FakeCaller


@pytest.fixture
def ok_result() -> Callable[..., CompletionResult]:
    return ok


@pytest.fixture
def failed_result() -> Callable[..., CompletionResult]:
    return failed


@pytest.fixture
def long_draft() -> Callable[[str, int], str]:
    """Build a multi-paragraph appeal draft with distinct wording per seed."""

    def _make(seed: str, paragraphs: int = 4) -> str:
        body = [
            f"AL AYUNTAMIENTO DE MADRID\n\nDon {seed}, con DNI 00000000T, formula recurso de reposición."
        ]
        for i in range(paragraphs):
            body.append(
                f"{seed} argumento {i}: la notificación {seed.lower()} número {i} no identifica "
                f"correctamente el vehículo ni acredita la homologación del cinemómetro utilizado, "
                f"lo que vulnera el derecho de defensa del interesado en el expediente {i}."
            )
        body.append("SUPLICA: que se tenga por presentado este recurso y se anule la sanción.")
        return "\n\n".join(body)

    return _make


@pytest.fixture
def fine_text() -> str:
    return (
        "AYUNTAMIENTO DE MADRID\n"
        "Área de Gobierno de Movilidad\n"
        "Expediente: 2025/000123\n"
        "Fecha de notificación: 10/01/2025\n"
        "Hecho denunciado: estacionar en zona de carga y descarga.\n"
        "Precepto infringido: Art. 94.2 RGC. Importe: 200 euros.\n"
        "Contra esta resolución podrá interponer recurso potestativo de reposición "
        "en el plazo de un mes.\n"
    )


@pytest.fixture
def credentials_path(tmp_path: Path) -> Path:
    return tmp_path / "credentials.yaml"
