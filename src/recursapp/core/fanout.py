"""Concurrent fan-out of one phase's request to every planned agent."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from ..models.agent import AgentIdentity, AgentResult, AgentStatus
from ..models.provider import CanonicalRequest, CompletionResult
from ..providers.fallback import AgentCaller
from ..utils.sanitize import sanitize_error
from .agents import PlannedAgent

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = "Sin API key configurada"
DISABLED_MESSAGE = "Agente desactivado"


async def _call_agent(
    caller: AgentCaller,
    agent: AgentIdentity,
    credential: str,
    request: CanonicalRequest,
    max_tokens: int,
    temperature: float,
    timeout: float,
) -> tuple[CompletionResult, float]:
    start = time.monotonic()
    try:
        result = await asyncio.wait_for(
            caller.call(agent, credential, request, max_tokens, temperature, timeout),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        result = CompletionResult(success=False, error=f"Timed out after {round(timeout, 1)}s")
    return result, time.monotonic() - start


async def run_phase(
    planned: list[PlannedAgent],
    request_for: Callable[[AgentIdentity], CanonicalRequest],
    caller: AgentCaller,
    phase: str,
    max_tokens: int,
    temperature: float,
    timeout: float,
    postprocess: Optional[Callable[[AgentResult, str], str]] = None,
) -> list[AgentResult]:
    """Call every credentialed agent concurrently and wait for all of them.

    Returns one terminal AgentResult per planned agent, in plan order. One
    agent raising, failing or timing out never affects the others.

    ``postprocess`` rewrites a reply before its status is decided; a reply
    left empty by it ends as an error, never as done.
    """
    results = [AgentResult.for_agent(agent, phase) for agent, _ in planned]
    launched: list[tuple[AgentResult, asyncio.Future]] = []

    for (agent, credential), result in zip(planned, results):
        if not agent.enabled:
            result.transition(AgentStatus.SKIPPED)
            result.error = DISABLED_MESSAGE
            logger.info("[%s] %s skipped: disabled", phase, agent.id)
            continue
        if not credential:
            result.transition(AgentStatus.SKIPPED)
            result.error = MISSING_CREDENTIAL_MESSAGE
            logger.info("[%s] %s skipped: no credential", phase, agent.id)
            continue
        try:
            request = request_for(agent)
        except ValueError as e:
            result.transition(AgentStatus.RUNNING)
            result.transition(AgentStatus.ERROR)
            result.error = str(e)
            continue
        result.transition(AgentStatus.RUNNING)
        launched.append((
            result,
            asyncio.ensure_future(
                _call_agent(caller, agent, credential, request, max_tokens, temperature, timeout)
            ),
        ))

    if not launched:
        return results

    outcomes = await asyncio.gather(*(task for _, task in launched), return_exceptions=True)

    for (result, _), outcome in zip(launched, outcomes):
        _settle(result, outcome, phase, postprocess)

    return results


def _settle(
    result: AgentResult,
    outcome: object,
    phase: str,
    postprocess: Optional[Callable[[AgentResult, str], str]] = None,
) -> None:
    if isinstance(outcome, BaseException):
        result.transition(AgentStatus.ERROR)
        result.error = sanitize_error(f"{type(outcome).__name__}: {outcome}") or "Error desconocido"
        logger.warning("[%s] %s raised: %s", phase, result.agent_id, result.error)
        return

    completion, duration = outcome
    result.duration_seconds = round(duration, 2)
    if completion.model:
        result.model = completion.model

    content = completion.content or ""
    if completion.success and postprocess is not None:
        content = postprocess(result, content)

    if completion.success and content.strip():
        result.transition(AgentStatus.DONE)
        result.content = content
        logger.info("[%s] %s done in %.1fs", phase, result.agent_id, duration)
    else:
        result.transition(AgentStatus.ERROR)
        result.error = completion.error or "Empty response content"
        logger.warning("[%s] %s failed: %s", phase, result.agent_id, result.error)


def successful(results: list[AgentResult]) -> list[AgentResult]:
    return [r for r in results if r.status == AgentStatus.DONE]


def phase_summary(results: list[AgentResult]) -> Optional[str]:
    """Short "2 done, 1 error, 1 skipped" text, or None for an empty phase."""
    if not results:
        return None
    counts: dict[str, int] = {}
    for r in results:
        counts[r.status.value] = counts.get(r.status.value, 0) + 1
    return ", ".join(f"{n} {status}" for status, n in counts.items())
