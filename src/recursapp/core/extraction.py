"""Metadata extraction: N agents read the fine, a vote merges their answers.

Running several cheap extractions and voting is sturdier against a single
model hallucinating than trusting one model, and costs no latency since all
calls run in parallel.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models.agent import AgentResult
from ..models.fine import FineMetadata
from ..models.provider import CanonicalRequest
from ..providers.fallback import AgentCaller
from ..utils.jsonparse import try_parse_json_object
from .agents import PlannedAgent
from .fanout import run_phase, successful

logger = logging.getLogger(__name__)

PHASE = "metadata"

# Model replies use camelCase keys; accept snake_case too
_CANDIDATE_KEYS = {
    "legislation": "legislation",
    "organism": "organism",
    "organismAddress": "organism_address",
    "organism_address": "organism_address",
    "fineType": "fine_type",
    "fine_type": "fine_type",
    "fineAmount": "fine_amount",
    "fine_amount": "fine_amount",
    "deadline": "deadline",
    "noticeDate": "notice_date",
    "notice_date": "notice_date",
    "rawSummary": "raw_summary",
    "raw_summary": "raw_summary",
}

_LONGEST_FIELDS = (
    "organism_address",
    "fine_type",
    "fine_amount",
    "deadline",
    "raw_summary",
    "notice_date",
)


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def parse_metadata_candidate(raw: str) -> Optional[FineMetadata]:
    """Turn one agent's reply into a candidate, or None if it is unusable."""
    data = try_parse_json_object(raw)
    if data is None:
        return None

    fields: dict = {}
    for key, value in data.items():
        target = _CANDIDATE_KEYS.get(key)
        if target is None:
            continue
        if target == "legislation":
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list):
                continue
            fields["legislation"] = [_as_text(v) for v in value if _as_text(v)]
        else:
            fields[target] = _as_text(value)

    if not fields:
        return None
    return FineMetadata(**fields)


def _merge_legislation(candidates: list[FineMetadata]) -> list[str]:
    counts: dict[str, int] = {}
    original: dict[str, str] = {}
    for candidate in candidates:
        # One vote per agent, however often it repeats an entry
        seen_here: set[str] = set()
        for entry in candidate.legislation:
            text = entry.strip()
            key = text.lower()
            if not key or key in seen_here:
                continue
            seen_here.add(key)
            counts[key] = counts.get(key, 0) + 1
            original.setdefault(key, text)
    # sorted() is stable, so ties keep first-seen order
    ordered = sorted(counts, key=lambda k: counts[k], reverse=True)
    return [original[k] for k in ordered]


def _majority(values: list[str]) -> str:
    counts: dict[str, int] = {}
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1
    if not counts:
        return ""
    best = max(counts.values())
    return next(v for v in counts if counts[v] == best)


def _longest(values: list[str]) -> str:
    best = ""
    for value in values:
        if len(value) > len(best):
            best = value
    return best


def merge_metadata(candidates: list[FineMetadata]) -> FineMetadata:
    """Field-wise consensus over candidates; empty input gives empty metadata."""
    if not candidates:
        return FineMetadata()

    merged = {
        "legislation": _merge_legislation(candidates),
        "organism": _majority([c.organism.strip() for c in candidates]),
    }
    for field in _LONGEST_FIELDS:
        merged[field] = _longest([getattr(c, field).strip() for c in candidates])
    return FineMetadata(**merged)


async def extract_metadata(
    planned: list[PlannedAgent],
    fine_text: str,
    caller: AgentCaller,
    system_prompt: str,
    image_bytes: Optional[bytes] = None,
    image_mime: Optional[str] = None,
    max_tokens: int = 1000,
    temperature: float = 0.1,
    timeout: float = 50,
) -> tuple[FineMetadata, list[AgentResult]]:
    """Run the extraction prompt on every agent and merge the answers.

    Never raises for agent failures: with no usable candidate the result is
    an all-empty FineMetadata.
    """
    request = CanonicalRequest(
        system_prompt=system_prompt,
        user_prompt=fine_text,
        image_bytes=image_bytes,
        image_mime=image_mime if image_bytes else None,
    )

    results = await run_phase(
        planned,
        lambda agent: request,
        caller,
        PHASE,
        max_tokens,
        temperature,
        timeout,
    )

    candidates: list[FineMetadata] = []
    for result in successful(results):
        candidate = parse_metadata_candidate(result.content)
        if candidate is None:
            logger.debug("No metadata candidate from %s", result.agent_id)
            continue
        candidates.append(candidate)

    logger.info("Metadata consensus from %d/%d agents", len(candidates), len(results))
    return merge_metadata(candidates), results
