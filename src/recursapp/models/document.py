"""Merged appeal document models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class MergeStrategy(str, Enum):
    NONE = "none"
    SINGLE = "single"
    HEURISTIC = "heuristic"
    MASTER = "master"


class SubmissionUrlProposal(BaseModel):
    """Electronic-office URL an agent proposes for filing the appeal."""

    url: str
    name: str = Field(default="", validation_alias=AliasChoices("name", "nombre"))
    confidence: str = Field(default="", validation_alias=AliasChoices("confidence", "confianza"))


class MergedDocument(BaseModel):
    content: str
    strategy: MergeStrategy
    sources: list[str] = []
    master_agent: Optional[str] = None
    instructions: str = ""
    submission_url: Optional[SubmissionUrlProposal] = None
