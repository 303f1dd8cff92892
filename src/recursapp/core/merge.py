"""Consensus merge of several appeal drafts into one document.

Two strategies:
- heuristic: longest draft as base, unique paragraphs of the others spliced
  in before the petition (no extra model call, deterministic)
- master: a designated agent fuses all drafts; falls back to a secondary
  agent, then to the heuristic merge
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from functools import partial
from typing import Optional

from ..models.agent import AgentIdentity
from ..models.document import MergedDocument, MergeStrategy
from ..models.provider import CanonicalRequest, CompletionResult, ErrorKind
from ..providers.fallback import AgentCaller, complete_in_order
from .prompts import build_merge_user_prompt

logger = logging.getLogger(__name__)

MIN_DRAFT_CHARS = 100
PREFIX_WORDS = 10
DUPLICATE_MIN_OVERLAP = 6

NO_DRAFTS_MESSAGE = "No se pudo generar el recurso. Verifica la configuración de los agentes."

_PARAGRAPH_SPLIT_RE = re.compile(r"\n{2,}")
_PETITION_RE = re.compile(r"S[UÚ]PLICA|SOLICITA", re.IGNORECASE)


@dataclass
class Draft:
    label: str
    content: str


def paragraphs_likely_duplicate(
    a: str,
    b: str,
    prefix_words: int = PREFIX_WORDS,
    min_overlap: int = DUPLICATE_MIN_OVERLAP,
) -> bool:
    """Whether paragraph ``a`` probably restates paragraph ``b``.

    Compares the first ``prefix_words`` lower-cased words of each; more than
    ``min_overlap`` words of ``a``'s prefix found in ``b``'s prefix counts as
    a duplicate.
    """
    a_words = a.lower().split()[:prefix_words]
    b_words = set(b.lower().split()[:prefix_words])
    hits = sum(1 for word in a_words if word in b_words)
    return hits > min_overlap


def _paragraphs(text: str) -> list[str]:
    return _PARAGRAPH_SPLIT_RE.split(text)


def qualifying_drafts(drafts: list[Draft], min_chars: int = MIN_DRAFT_CHARS) -> list[Draft]:
    return [d for d in drafts if d.content and len(d.content) > min_chars]


def heuristic_merge(drafts: list[Draft], min_chars: int = MIN_DRAFT_CHARS) -> MergedDocument:
    """Merge drafts without a model call. Never raises."""
    valid = qualifying_drafts(drafts, min_chars)
    if not valid:
        return MergedDocument(content=NO_DRAFTS_MESSAGE, strategy=MergeStrategy.NONE)
    if len(valid) == 1:
        return MergedDocument(content=valid[0].content, strategy=MergeStrategy.SINGLE, sources=[valid[0].label])

    ordered = sorted(valid, key=lambda d: len(d.content), reverse=True)
    base = ordered[0].content
    base_paragraphs = _paragraphs(base)
    additions: list[str] = []

    for draft in ordered[1:]:
        for paragraph in _paragraphs(draft.content):
            if len(paragraph.strip()) <= min_chars:
                continue
            if any(paragraphs_likely_duplicate(paragraph, bp) for bp in base_paragraphs):
                continue
            additions.append(paragraph.strip())

    sources = [d.label for d in ordered]
    if not additions:
        return MergedDocument(content=base, strategy=MergeStrategy.HEURISTIC, sources=sources)

    inserted = "\n\n".join(additions)
    petition = _PETITION_RE.search(base)
    if petition and petition.start() > 0:
        at = petition.start()
        content = f"{base[:at]}\n\n{inserted}\n\n{base[at:]}"
    else:
        content = f"{base}\n\n---\n\n{inserted}"
    return MergedDocument(content=content, strategy=MergeStrategy.HEURISTIC, sources=sources)


def _fusion_accepted(result: CompletionResult, min_chars: int) -> CompletionResult:
    if result.success and len((result.content or "").strip()) <= min_chars:
        return CompletionResult(
            success=False,
            error=f"Fused document too short ({len((result.content or '').strip())} chars)",
            error_kind=ErrorKind.EMPTY_RESPONSE,
            model=result.model,
        )
    return result


async def _call_master(
    caller: AgentCaller,
    agent: AgentIdentity,
    credential: Optional[str],
    request: CanonicalRequest,
    max_tokens: int,
    temperature: float,
    timeout: float,
    min_chars: int,
) -> CompletionResult:
    if not credential:
        return CompletionResult(
            success=False, error=f"No API key for {agent.id}", error_kind=ErrorKind.CREDENTIAL_MISSING
        )
    try:
        result = await asyncio.wait_for(
            caller.call(agent, credential, request, max_tokens, temperature, timeout),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        result = CompletionResult(
            success=False, error=f"Timed out after {round(timeout, 1)}s", error_kind=ErrorKind.TIMEOUT
        )
    except Exception as e:
        result = CompletionResult(success=False, error=f"{type(e).__name__}: {e}")
    return _fusion_accepted(result, min_chars)


async def master_merge(
    drafts: list[Draft],
    caller: AgentCaller,
    masters: list[tuple[AgentIdentity, Optional[str]]],
    system_prompt: str,
    max_tokens: int = 4000,
    temperature: float = 0.2,
    timeout: float = 50,
    min_chars: int = MIN_DRAFT_CHARS,
) -> MergedDocument:
    """Fuse drafts through the first master agent that delivers.

    ``masters`` is the ordered chain (primary, secondary). ``timeout`` bounds
    the whole chain; each master gets an even share of the time still left.
    When every master fails the heuristic merge of the same drafts is
    returned.
    """
    valid = qualifying_drafts(drafts, min_chars)
    if len(valid) <= 1:
        return heuristic_merge(valid, min_chars)

    request = CanonicalRequest(
        system_prompt=system_prompt,
        user_prompt=build_merge_user_prompt([(d.label, d.content) for d in valid]),
    )
    served_by: list[str] = []
    deadline = time.monotonic() + timeout

    async def attempt(index: int, agent: AgentIdentity, credential: Optional[str]) -> CompletionResult:
        share = max(0.0, deadline - time.monotonic()) / (len(masters) - index)
        result = await _call_master(
            caller, agent, credential, request, max_tokens, temperature, share, min_chars
        )
        if result.success:
            served_by.append(agent.id)
        return result

    attempts = [partial(attempt, index, agent, credential) for index, (agent, credential) in enumerate(masters)]
    if attempts:
        result = await complete_in_order(attempts, should_fallback=lambda r: True)
        if result.success:
            logger.info("Drafts fused by master agent %s", served_by[-1])
            return MergedDocument(
                content=result.content.strip(),
                strategy=MergeStrategy.MASTER,
                sources=[d.label for d in valid],
                master_agent=served_by[-1],
            )
        logger.warning("Master merge unavailable (%s), using heuristic merge", result.error)

    return heuristic_merge(valid, min_chars)
