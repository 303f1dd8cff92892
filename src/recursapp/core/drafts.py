"""Draft generation: every agent writes its own appeal for the same fine."""

from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import ValidationError

from ..models.agent import AgentResult
from ..models.document import SubmissionUrlProposal
from ..models.fine import FineMetadata
from ..models.provider import CanonicalRequest
from ..providers.fallback import AgentCaller
from ..utils.jsonparse import try_parse_json_object
from .agents import PlannedAgent
from .fanout import run_phase
from .prompts import build_draft_system_prompt

logger = logging.getLogger(__name__)

PHASE = "draft"

# Closing delimiter optional so a truncated sidecar is still removed
_SIDECAR_RE = re.compile(r"\|\|\|\s*URL_SEDE\s*:(.*?)(?:\|\|\||\Z)", re.DOTALL)

_CONFIDENCE_RANK = {"alta": 3, "high": 3, "media": 2, "medium": 2, "baja": 1, "low": 1}


def split_url_sidecar(content: str) -> tuple[str, Optional[SubmissionUrlProposal]]:
    """Remove the ``|||URL_SEDE:{...}|||`` sidecar and parse it.

    Returns the visible text with trailing whitespace trimmed, plus the
    proposal when the sidecar holds a JSON object with a non-empty url.
    """
    if not content:
        return "", None

    proposal: Optional[SubmissionUrlProposal] = None
    for match in _SIDECAR_RE.finditer(content):
        if proposal is not None:
            break
        data = try_parse_json_object(match.group(1))
        if not data or not str(data.get("url") or "").strip():
            continue
        try:
            proposal = SubmissionUrlProposal(
                url=str(data["url"]).strip(),
                name=str(data.get("nombre", data.get("name", "")) or "").strip(),
                confidence=str(data.get("confianza", data.get("confidence", "")) or "").strip().lower(),
            )
        except ValidationError:
            proposal = None

    visible = _SIDECAR_RE.sub("", content).rstrip()
    return visible, proposal


def best_submission_url(results: list[AgentResult]) -> Optional[SubmissionUrlProposal]:
    """Highest-confidence proposal across drafts; ties keep agent order."""
    best: Optional[SubmissionUrlProposal] = None
    best_rank = -1
    for result in results:
        proposal = result.submission_url
        if proposal is None:
            continue
        rank = _CONFIDENCE_RANK.get(proposal.confidence.lower(), 0)
        if rank > best_rank:
            best, best_rank = proposal, rank
    return best


async def generate_drafts(
    planned: list[PlannedAgent],
    user_prompt: str,
    caller: AgentCaller,
    prompt_template: str,
    metadata: Optional[FineMetadata] = None,
    image_bytes: Optional[bytes] = None,
    image_mime: Optional[str] = None,
    max_tokens: int = 3000,
    temperature: float = 0.3,
    timeout: float = 50,
) -> list[AgentResult]:
    """One appeal draft per planned agent, all agents concurrently.

    The system prompt carries the agent's role and the consensus metadata,
    so every draft addresses the same organism and statutes.
    """

    def request_for(agent) -> CanonicalRequest:
        return CanonicalRequest(
            system_prompt=build_draft_system_prompt(prompt_template, agent.role, metadata),
            user_prompt=user_prompt,
            image_bytes=image_bytes,
            image_mime=image_mime if image_bytes else None,
        )

    def strip_sidecar(result: AgentResult, content: str) -> str:
        visible, proposal = split_url_sidecar(content)
        result.submission_url = proposal if visible.strip() else None
        if proposal:
            logger.debug("%s proposed submission URL %s", result.agent_id, proposal.url)
        return visible

    return await run_phase(
        planned, request_for, caller, PHASE, max_tokens, temperature, timeout, postprocess=strip_sidecar
    )
