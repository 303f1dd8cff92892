"""Inbound request and outbound response of one appeal run."""

from __future__ import annotations

import base64
from typing import Optional

from pydantic import BaseModel

from .agent import AgentOverride, AgentResult
from .document import MergedDocument, SubmissionUrlProposal
from .fine import DeadlineInfo, FineMetadata


class FineFile(BaseModel):
    name: str
    mime_type: str
    base64: str

    def decode(self) -> bytes:
        return base64.b64decode(self.base64, validate=True)


class SupportFile(BaseModel):
    name: str
    context: str = ""
    mime_type: Optional[str] = None
    base64: Optional[str] = None


class AppealRequest(BaseModel):
    fine_file: FineFile
    support_files: list[SupportFile] = []
    additional_context: str = ""
    agent_configs: Optional[list[AgentOverride]] = None


class AppealResponse(BaseModel):
    agent_results: list[AgentResult] = []
    metadata_agent_results: list[AgentResult] = []
    merged_document: MergedDocument
    instructions: str = ""
    metadata: FineMetadata = FineMetadata()
    deadline_info: Optional[DeadlineInfo] = None
    submission_url: Optional[SubmissionUrlProposal] = None
    parsed_text: str = ""
    error: Optional[str] = None
