"""OpenAI-compatible chat-completions provider.

Covers OpenAI, Groq, OpenRouter, Mistral and local OpenAI-compatible servers.
"""

from __future__ import annotations

import base64
from typing import Optional

from ..models.agent import AgentIdentity
from ..models.provider import CanonicalRequest
from .base import BaseProvider, merge_system_into_user


class OpenAICompatibleProvider(BaseProvider):
    name = "openai"
    family = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def _user_content(self, text: str, request: CanonicalRequest) -> str | list[dict]:
        if not request.has_image:
            return text
        encoded = base64.b64encode(request.image_bytes).decode("ascii")
        return [
            {
                "type": "image_url",
                "image_url": {"url": f"data:{request.image_mime};base64,{encoded}"},
            },
            {"type": "text", "text": text},
        ]

    def _build_http_request(
        self,
        agent: AgentIdentity,
        credential: str,
        request: CanonicalRequest,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict, dict]:
        if agent.system_as_user:
            messages = [
                {
                    "role": "user",
                    "content": self._user_content(
                        merge_system_into_user(request.system_prompt, request.user_prompt), request
                    ),
                },
            ]
        else:
            messages = [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": self._user_content(request.user_prompt, request)},
            ]

        body = {
            "model": agent.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
            **self.config.get("headers", {}),
        }
        url = f"{self._base_url(agent, self.DEFAULT_BASE_URL)}/chat/completions"
        return url, headers, body

    def _parse_content(self, data: dict) -> Optional[str]:
        choices = data.get("choices") or []
        if not choices:
            return None
        content = choices[0]["message"].get("content")
        # Some servers return content as a list of text parts
        if isinstance(content, list):
            content = "".join(p.get("text", "") for p in content if isinstance(p, dict))
        return content

    def _parse_usage(self, data: dict) -> Optional[dict]:
        usage = data.get("usage") or {}
        if not usage:
            return None
        return {
            "input": usage.get("prompt_tokens", 0),
            "output": usage.get("completion_tokens", 0),
        }
