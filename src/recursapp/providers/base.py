"""AI provider abstraction.

Each provider family translates a CanonicalRequest into its vendor's wire
format and folds every vendor failure shape into a CompletionResult. Nothing
outside this package sees vendor field paths.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from ..models.agent import AgentIdentity
from ..models.provider import CanonicalRequest, CompletionResult, ErrorKind
from ..utils.sanitize import sanitize_error

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = (
    "### INSTRUCCIONES DEL SISTEMA ###\n"
    "{system}\n"
    "### FIN DE LAS INSTRUCCIONES ###\n\n"
    "{user}"
)


@runtime_checkable
class AIProvider(Protocol):
    """Protocol that all AI providers must implement."""

    name: str

    async def complete(
        self,
        agent: AgentIdentity,
        credential: Optional[str],
        request: CanonicalRequest,
        max_tokens: int = 0,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResult: ...


def merge_system_into_user(system_prompt: str, user_prompt: str) -> str:
    """Prepend the system prompt as a delimited preamble of the user text."""
    if not system_prompt:
        return user_prompt
    return SYSTEM_PREAMBLE.format(system=system_prompt, user=user_prompt)


def _message_from_payload(payload: object) -> Optional[str]:
    # Gemini wraps some errors in a one-element list
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, str):
        return payload.strip() or None
    if not isinstance(payload, dict):
        return None

    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if isinstance(error, str) and error.strip():
        return error.strip()

    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def extract_error_message(body_text: str, status_code: int) -> str:
    """Human-readable message from an error body, else ``HTTP <status>``."""
    try:
        payload = json.loads(body_text)
    except (TypeError, ValueError):
        return f"HTTP {status_code}"
    return _message_from_payload(payload) or f"HTTP {status_code}"


class BaseProvider:
    """Shared HTTP call and response normalization for all provider families."""

    name: str = "base"
    family: str = "base"

    def __init__(
        self,
        provider_config: dict,
        common_config: dict,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = provider_config
        self.common = common_config
        self._transport = transport

    def _build_http_request(
        self,
        agent: AgentIdentity,
        credential: str,
        request: CanonicalRequest,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict, dict]:
        """Return (url, headers, json body)."""
        raise NotImplementedError

    def _parse_content(self, data: dict) -> Optional[str]:
        raise NotImplementedError

    def _parse_usage(self, data: dict) -> Optional[dict]:
        return None

    def _base_url(self, agent: AgentIdentity, default: str) -> str:
        return (agent.base_url or self.config.get("base_url") or default).rstrip("/")

    def _failure(
        self,
        agent: AgentIdentity,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ) -> CompletionResult:
        error = sanitize_error(message)
        logger.debug("%s (%s) failed [%s]: %s", agent.id, agent.model, kind.value, error)
        return CompletionResult(
            success=False,
            error=error,
            error_kind=kind,
            status_code=status_code,
            model=agent.model,
        )

    async def complete(
        self,
        agent: AgentIdentity,
        credential: Optional[str],
        request: CanonicalRequest,
        max_tokens: int = 0,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResult:
        if not credential:
            env_var = self.config.get("api_key_env", "")
            return self._failure(
                agent,
                ErrorKind.CREDENTIAL_MISSING,
                f"No API key configured (set {env_var} or a per-agent key)" if env_var else "No API key configured",
            )

        if request.has_image and not agent.vision:
            if not request.user_prompt.strip():
                return self._failure(
                    agent,
                    ErrorKind.UNSUPPORTED_MODALITY,
                    f"Model {agent.model} does not accept images and there is no text to send",
                )
            logger.debug("%s: model %s has no vision, sending text only", agent.id, agent.model)
            request = request.text_only()

        max_tok = max_tokens or self.common.get("max_tokens", 3000)
        temp = temperature if temperature is not None else self.common.get("temperature", 0.3)
        call_timeout = timeout or self.common.get("timeout_seconds", 50)

        url, headers, body = self._build_http_request(agent, credential, request, max_tok, temp)

        try:
            async with httpx.AsyncClient(timeout=call_timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException:
            return self._failure(agent, ErrorKind.TIMEOUT, f"Request timed out after {call_timeout}s")
        except httpx.HTTPError as e:
            return self._failure(agent, ErrorKind.NETWORK, f"{type(e).__name__}: {e}")

        if not response.is_success:
            return self._failure(
                agent,
                ErrorKind.HTTP,
                extract_error_message(response.text, response.status_code),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return self._failure(
                agent, ErrorKind.MALFORMED_RESPONSE, "Response body is not JSON", response.status_code
            )

        if not isinstance(data, dict):
            return self._failure(
                agent, ErrorKind.MALFORMED_RESPONSE, "Response body is not a JSON object", response.status_code
            )

        # Some vendors report rate limits as 200 with an error payload
        if data.get("error"):
            return self._failure(
                agent,
                ErrorKind.IN_BODY_ERROR,
                _message_from_payload(data) or "Error reported in response body",
                status_code=response.status_code,
            )

        try:
            content = self._parse_content(data)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            return self._failure(
                agent, ErrorKind.MALFORMED_RESPONSE, f"Unexpected response shape: {e}", response.status_code
            )

        if not content or not content.strip():
            return self._failure(agent, ErrorKind.EMPTY_RESPONSE, "Empty response content", response.status_code)

        return CompletionResult(
            success=True,
            content=content,
            tokens_used=self._parse_usage(data),
            status_code=response.status_code,
            model=agent.model,
        )


def get_ai_provider(
    config: dict,
    provider_name: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseProvider:
    """Factory function to create the provider adapter for ``provider_name``."""
    providers = config.get("providers", {})
    if provider_name not in providers:
        raise ValueError(f"Unknown AI provider: {provider_name}")

    provider_config = dict(providers[provider_name])
    common_config = {
        k: v for k, v in config.get("ai", {}).items() if not isinstance(v, dict)
    }
    family = provider_config.get("family", "openai")

    if family == "openai":
        from .openai_compat import OpenAICompatibleProvider
        provider: BaseProvider = OpenAICompatibleProvider(provider_config, common_config, transport)
    elif family == "gemini":
        from .gemini import GeminiProvider
        provider = GeminiProvider(provider_config, common_config, transport)
    else:
        raise ValueError(f"Unknown provider family for {provider_name}: {family}")

    provider.name = provider_name
    return provider
