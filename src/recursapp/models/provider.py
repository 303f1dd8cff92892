"""AI provider data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class ErrorKind(str, Enum):
    CREDENTIAL_MISSING = "credential_missing"
    HTTP = "http"
    TIMEOUT = "timeout"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    IN_BODY_ERROR = "in_body_error"
    EMPTY_RESPONSE = "empty_response"
    UNSUPPORTED_MODALITY = "unsupported_modality"


class CanonicalRequest(BaseModel):
    """Provider-agnostic request every adapter consumes."""

    system_prompt: str
    user_prompt: str
    image_bytes: Optional[bytes] = None
    image_mime: Optional[str] = None

    @model_validator(mode="after")
    def _image_needs_mime(self) -> "CanonicalRequest":
        if self.image_bytes and not self.image_mime:
            raise ValueError("image_mime is required when image_bytes is set")
        return self

    @property
    def has_image(self) -> bool:
        return bool(self.image_bytes)

    def text_only(self) -> "CanonicalRequest":
        return CanonicalRequest(system_prompt=self.system_prompt, user_prompt=self.user_prompt)


class CompletionResult(BaseModel):
    success: bool
    content: Optional[str] = None
    tokens_used: Optional[dict] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    status_code: Optional[int] = None
    model: Optional[str] = None
