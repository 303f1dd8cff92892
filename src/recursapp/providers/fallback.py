"""Ordered fallback chains and the default agent caller.

``complete_in_order`` is the one place that walks a list of alternatives
(model A then model B, primary master then secondary master). Adapters never
retry on their own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Awaitable, Callable, Optional, Protocol, Sequence

import httpx

from ..models.agent import AgentIdentity
from ..models.provider import CanonicalRequest, CompletionResult, ErrorKind
from .base import BaseProvider, get_ai_provider

logger = logging.getLogger(__name__)

Attempt = Callable[[], Awaitable[CompletionResult]]

RETRYABLE_STATUS_CODES = frozenset({404, 408, 429, 500, 502, 503, 504})
RETRYABLE_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.IN_BODY_ERROR})


def is_retryable(result: CompletionResult) -> bool:
    """Whether a failed result justifies trying the next alternative.

    404 (model retired), 429 (rate limit), 5xx, timeouts and silent in-body
    errors move on; auth and request errors (400, 401, 403) stop the chain.
    """
    if result.success:
        return False
    if result.error_kind in RETRYABLE_KINDS:
        return True
    return result.error_kind == ErrorKind.HTTP and result.status_code in RETRYABLE_STATUS_CODES


async def complete_in_order(
    attempts: Sequence[Attempt],
    should_fallback: Callable[[CompletionResult], bool] = is_retryable,
) -> CompletionResult:
    """Run ``attempts`` in order until one succeeds.

    A failure only moves on to the next attempt when ``should_fallback``
    accepts it; otherwise that failure is returned as is.
    """
    last: Optional[CompletionResult] = None
    for index, attempt in enumerate(attempts):
        result = await attempt()
        if result.success:
            return result
        last = result
        if index + 1 < len(attempts):
            if not should_fallback(result):
                break
            logger.info("Attempt %d failed (%s), trying next alternative", index + 1, result.error)
    return last or CompletionResult(success=False, error="No attempts configured")


class AgentCaller(Protocol):
    """Anything that can run one canonical request for one agent."""

    async def call(
        self,
        agent: AgentIdentity,
        credential: Optional[str],
        request: CanonicalRequest,
        max_tokens: int = 0,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResult: ...


class ProviderCaller:
    """Default AgentCaller: provider adapter plus the agent's fallback models."""

    def __init__(self, config: dict, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._providers: dict[str, BaseProvider] = {}

    def provider_for(self, agent: AgentIdentity) -> BaseProvider:
        if agent.provider not in self._providers:
            self._providers[agent.provider] = get_ai_provider(self.config, agent.provider, self._transport)
        return self._providers[agent.provider]

    async def call(
        self,
        agent: AgentIdentity,
        credential: Optional[str],
        request: CanonicalRequest,
        max_tokens: int = 0,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResult:
        """Try the agent's model, then its fallback models, within ``timeout``.

        ``timeout`` bounds the whole chain: each model gets an even share of
        the time still left, so a slow model leaves room for the next one.
        """
        provider = self.provider_for(agent)
        models = [agent.model, *[m for m in agent.fallback_models if m and m != agent.model]]
        total = timeout or self.config.get("ai", {}).get("timeout_seconds", 50)
        deadline = time.monotonic() + total

        async def attempt(index: int, target: AgentIdentity) -> CompletionResult:
            share = max(0.0, deadline - time.monotonic()) / (len(models) - index)
            try:
                return await asyncio.wait_for(
                    provider.complete(target, credential, request, max_tokens, temperature, share),
                    timeout=share,
                )
            except asyncio.TimeoutError:
                return CompletionResult(
                    success=False,
                    error=f"Timed out after {round(share, 1)}s",
                    error_kind=ErrorKind.TIMEOUT,
                    model=target.model,
                )

        attempts = [
            partial(attempt, index, agent if model == agent.model else agent.model_copy(update={"model": model}))
            for index, model in enumerate(models)
        ]
        return await complete_in_order(attempts)


async def probe_agent(
    caller: AgentCaller,
    agent: AgentIdentity,
    credential: Optional[str],
    timeout: float = 20,
) -> dict:
    """Connectivity check: ask for a two-letter reply and time it."""
    start = time.monotonic()
    result = await caller.call(
        agent.model_copy(update={"system_as_user": True, "fallback_models": []}),
        credential,
        CanonicalRequest(system_prompt="", user_prompt="Reply with: OK"),
        max_tokens=5,
        temperature=0,
        timeout=timeout,
    )
    latency_ms = int((time.monotonic() - start) * 1000)
    if result.success:
        return {"ok": True, "message": f"Connected · {latency_ms}ms", "latency_ms": latency_ms}
    return {"ok": False, "message": result.error or "Unknown error", "latency_ms": latency_ms}
