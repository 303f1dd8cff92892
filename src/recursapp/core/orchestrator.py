"""Appeal pipeline orchestrator.

Fine file -> text -> metadata consensus -> drafts -> merge -> deadline and
filing instructions, all inside one request time budget.
"""

from __future__ import annotations

import base64
import binascii
import time
from datetime import date
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from ..models.agent import AgentIdentity, AgentResult, AgentStatus
from ..models.appeal import AppealRequest, AppealResponse, SupportFile
from ..models.document import MergedDocument, MergeStrategy
from ..providers.fallback import AgentCaller, ProviderCaller
from .agents import AgentRegistry, PlannedAgent
from .credentials import CredentialStore
from .deadline import DeadlineRules, compute_deadline
from .drafts import best_submission_url, generate_drafts
from .extraction import extract_metadata
from .fanout import phase_summary, successful
from .instructions import generate_instructions
from .merge import MIN_DRAFT_CHARS, Draft, heuristic_merge, master_merge
from .prompts import build_enriched_prompt, load_prompt
from .text_extraction import extract_text

console = Console()

IMAGE_PLACEHOLDER_TEXT = (
    "[Documento escaneado sin capa de texto. Analiza la imagen adjunta de la multa.]"
)
NO_VALID_DRAFTS_ERROR = "Ningún agente generó un borrador válido"

# Floor for per-call timeouts once the budget runs low
MIN_CALL_TIMEOUT = 1.0


class PipelineError(Exception):
    """An appeal run that cannot produce a response."""


class NoAgentsConfiguredError(PipelineError):
    pass


class TextExtractionError(PipelineError):
    pass


class Budget:
    """Wall-clock budget for one request, shared by all phases."""

    def __init__(
        self,
        total_seconds: float,
        per_call_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total_seconds = total_seconds
        self.per_call_seconds = per_call_seconds
        self._clock = clock
        self._start = clock()

    def elapsed(self) -> float:
        return self._clock() - self._start

    def remaining(self) -> float:
        return max(0.0, self.total_seconds - self.elapsed())

    def call_timeout(self) -> float:
        return max(MIN_CALL_TIMEOUT, min(self.per_call_seconds, self.remaining()))

    def phase_timeout(self) -> float:
        """Whole remaining budget, for a chain of calls run one after another."""
        return max(MIN_CALL_TIMEOUT, self.remaining())


def _status_line(result: AgentResult) -> str:
    if result.status == AgentStatus.DONE:
        return f"  [green]OK[/green] {escape(result.label)} ({result.duration_seconds:.1f}s)"
    if result.status == AgentStatus.SKIPPED:
        return f"  [yellow]SKIPPED[/yellow] {escape(result.label)}: {escape(result.error or '')}"
    return f"  [red]FAILED[/red] {escape(result.label)}: {escape(result.error or '')}"


def _report(results: list[AgentResult]) -> None:
    for result in results:
        console.print(_status_line(result))
    summary = phase_summary(results)
    if summary:
        console.print(f"  [dim]{summary}[/dim]")


def _support_texts(support_files: list[SupportFile], max_chars: int) -> dict[str, str]:
    texts: dict[str, str] = {}
    for sf in support_files:
        if not sf.base64 or not sf.mime_type:
            continue
        try:
            data = base64.b64decode(sf.base64, validate=True)
        except (binascii.Error, ValueError):
            console.print(f"  [yellow]WARN[/yellow] Could not decode support file {escape(sf.name)}")
            continue
        extracted = extract_text(data, sf.mime_type)
        if extracted.text:
            texts[sf.name] = extracted.text[:max_chars]
    return texts


def master_chain(config: dict, registry: AgentRegistry) -> list[PlannedAgent]:
    """Primary then secondary merge agent, each with its resolved credential."""
    merge_cfg = config.get("merge", {})
    chain: list[PlannedAgent] = []
    for key in ("master", "secondary"):
        entry = merge_cfg.get(key)
        if not entry:
            continue
        agent = AgentIdentity(**entry)
        chain.append((agent, registry.credential_for(agent)))
    return chain


async def run_appeal(
    request: AppealRequest,
    config: dict,
    registry: Optional[AgentRegistry] = None,
    caller: Optional[AgentCaller] = None,
    today: Optional[date] = None,
    agent_ids: Optional[list[str]] = None,
) -> AppealResponse:
    """Run the full appeal pipeline for one uploaded fine.

    Raises:
        NoAgentsConfiguredError: no enabled agent is selected.
        TextExtractionError: the file yields no text and no vision-capable
            agent with a credential can read it directly.
    """
    ai_cfg = config.get("ai", {})
    pipeline_cfg = config.get("pipeline", {})
    merge_cfg = config.get("merge", {})
    prompts_dir = config.get("prompts", {}).get("dir") or None

    budget = Budget(
        total_seconds=pipeline_cfg.get("request_budget_seconds", 120),
        per_call_seconds=ai_cfg.get("timeout_seconds", 50),
    )

    if registry is None:
        registry = AgentRegistry.from_config(config, request.agent_configs, store=CredentialStore())
    caller = caller or ProviderCaller(config)

    planned = registry.plan(agent_ids)
    if not any(agent.enabled for agent, _ in planned):
        raise NoAgentsConfiguredError("No enabled agents configured")

    # Text extraction
    fine = request.fine_file
    try:
        data = fine.decode()
    except (binascii.Error, ValueError) as e:
        raise TextExtractionError(f"Could not decode {fine.name}: {e}") from e

    extracted = extract_text(data, fine.mime_type)
    image_bytes: Optional[bytes] = data if extracted.is_image else None
    image_mime: Optional[str] = fine.mime_type if extracted.is_image else None
    fine_text = extracted.text

    if not fine_text.strip():
        has_vision = any(agent.vision and credential for agent, credential in planned)
        if not (extracted.is_image and has_vision):
            raise TextExtractionError(
                extracted.error or f"No text could be extracted from {fine.name}"
            )
        fine_text = IMAGE_PLACEHOLDER_TEXT

    console.print(f"  [green]OK[/green] Fine read: {escape(fine.name)} ({len(fine_text)} chars)")

    # Metadata consensus
    console.print("\n  [cyan]Extracting fine metadata...[/cyan]")
    extraction_cfg = ai_cfg.get("extraction", {})
    metadata, metadata_results = await extract_metadata(
        planned,
        fine_text,
        caller,
        load_prompt("extraction", prompts_dir),
        image_bytes=image_bytes,
        image_mime=image_mime,
        max_tokens=extraction_cfg.get("max_tokens", 1000),
        temperature=extraction_cfg.get("temperature", 0.1),
        timeout=budget.call_timeout(),
    )
    _report(metadata_results)

    # Drafts
    console.print("\n  [cyan]Drafting appeals...[/cyan]")
    support_texts = _support_texts(request.support_files, pipeline_cfg.get("support_text_max_chars", 4000))
    user_prompt = build_enriched_prompt(
        fine_text, metadata, request.support_files, request.additional_context, support_texts
    )
    draft_cfg = ai_cfg.get("draft", {})
    draft_results = await generate_drafts(
        planned,
        user_prompt,
        caller,
        load_prompt("draft", prompts_dir),
        metadata=metadata,
        image_bytes=image_bytes,
        image_mime=image_mime,
        max_tokens=draft_cfg.get("max_tokens", 3000),
        temperature=draft_cfg.get("temperature", 0.3),
        timeout=budget.call_timeout(),
    )
    _report(draft_results)

    # Merge
    min_chars = merge_cfg.get("min_draft_chars", MIN_DRAFT_CHARS)
    drafts = [Draft(label=r.label, content=r.content) for r in successful(draft_results)]
    if merge_cfg.get("strategy") == MergeStrategy.MASTER.value:
        console.print("\n  [cyan]Fusing drafts with master agent...[/cyan]")
        fuse_cfg = ai_cfg.get("merge", {})
        merged: MergedDocument = await master_merge(
            drafts,
            caller,
            master_chain(config, registry),
            load_prompt("merge", prompts_dir),
            max_tokens=fuse_cfg.get("max_tokens", 4000),
            temperature=fuse_cfg.get("temperature", 0.2),
            timeout=budget.phase_timeout(),
            min_chars=min_chars,
        )
    else:
        merged = heuristic_merge(drafts, min_chars)

    # Deadline and instructions
    rules = DeadlineRules.from_config(config)
    deadline_info = compute_deadline(metadata, today, rules) or compute_deadline(fine_text, today, rules)
    submission_url = best_submission_url(draft_results)
    instructions = generate_instructions(metadata, deadline_info, submission_url)
    merged.instructions = instructions
    merged.submission_url = submission_url

    error: Optional[str] = None
    if merged.strategy == MergeStrategy.NONE:
        error = NO_VALID_DRAFTS_ERROR
        console.print(f"\n  [red]FAILED[/red] {error}")
    else:
        console.print(
            f"\n  [green]OK[/green] Appeal ready ({merged.strategy.value} merge, "
            f"{len(merged.sources)} draft(s), {budget.elapsed():.1f}s)"
        )

    return AppealResponse(
        agent_results=draft_results,
        metadata_agent_results=metadata_results,
        merged_document=merged,
        instructions=instructions,
        metadata=metadata,
        deadline_info=deadline_info,
        submission_url=submission_url,
        parsed_text=fine_text,
        error=error,
    )
