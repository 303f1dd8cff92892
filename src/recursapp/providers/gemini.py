"""Google generative-content provider."""

from __future__ import annotations

import base64
from typing import Optional

from ..models.agent import AgentIdentity
from ..models.provider import CanonicalRequest
from .base import BaseProvider, merge_system_into_user


class GeminiProvider(BaseProvider):
    name = "gemini"
    family = "gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def _build_http_request(
        self,
        agent: AgentIdentity,
        credential: str,
        request: CanonicalRequest,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict, dict]:
        parts: list[dict] = []
        if request.has_image:
            parts.append({
                "inlineData": {
                    "mimeType": request.image_mime,
                    "data": base64.b64encode(request.image_bytes).decode("ascii"),
                }
            })

        if agent.system_as_user:
            parts.append({"text": merge_system_into_user(request.system_prompt, request.user_prompt)})
        else:
            parts.append({"text": request.user_prompt})

        body: dict = {
            "contents": [{"parts": parts}],
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
        }
        if not agent.system_as_user and request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        url = (
            f"{self._base_url(agent, self.DEFAULT_BASE_URL)}"
            f"/models/{agent.model}:generateContent?key={credential}"
        )
        return url, {"Content-Type": "application/json"}, body

    def _parse_content(self, data: dict) -> Optional[str]:
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    def _parse_usage(self, data: dict) -> Optional[dict]:
        usage = data.get("usageMetadata") or {}
        if not usage:
            return None
        return {
            "input": usage.get("promptTokenCount", 0),
            "output": usage.get("candidatesTokenCount", 0),
        }
