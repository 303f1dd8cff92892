"""RecursApp command line: draft an appeal against a traffic fine."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

console = Console()

EXIT_OK = 0
EXIT_NO_DRAFTS = 1
EXIT_PROBE_FAILED = 1
EXIT_NO_AGENTS = 11
EXIT_TEXT_EXTRACTION = 12

_URGENCY_COLORS = {"ok": "green", "warning": "yellow", "urgent": "red", "expired": "red"}


def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _guess_mime(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


def _encode(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


def parse_support_option(value: str) -> tuple[Path, str]:
    """Split ``PATH[:CONTEXT]``; a colon only separates when PATH exists."""
    path, sep, context = value.partition(":")
    if sep and Path(path).exists():
        return Path(path), context.strip()
    return Path(value), ""


def _split_ids(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _load_config(config_path: Optional[str], cli_overrides: Optional[dict] = None) -> dict:
    from ..core.config import get_effective_config

    return get_effective_config(Path(config_path) if config_path else None, cli_overrides)


def _build_registry(config: dict):
    from ..core.agents import AgentRegistry
    from ..core.credentials import CredentialStore

    return AgentRegistry.from_config(config, store=CredentialStore())


@click.group()
@click.version_option(package_name="recursapp")
def recursapp_cli() -> None:
    """RecursApp - multi-agent appeals against traffic fines."""


@recursapp_cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--context", "-c", "additional_context", default="", help="Extra facts for the appeal")
@click.option("--support", "-s", multiple=True, help="Supporting document as PATH[:CONTEXT]")
@click.option("--agents", "-a", type=str, help="Comma-separated agent ids to run")
@click.option("--merge-strategy", type=click.Choice(["heuristic", "master"]), help="How drafts are merged")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
@click.option("--timeout", type=int, help="Per-call timeout in seconds")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="DOCX output path")
@click.option("--json", "json_path", type=click.Path(dir_okay=False), help="Also write the full response as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def appeal(
    file: str,
    additional_context: str,
    support: tuple[str, ...],
    agents: Optional[str],
    merge_strategy: Optional[str],
    config_path: Optional[str],
    timeout: Optional[int],
    output: Optional[str],
    json_path: Optional[str],
    verbose: bool,
) -> None:
    """Draft an appeal for the fine in FILE (PDF or image)."""
    from ..core.orchestrator import NoAgentsConfiguredError, PipelineError, run_appeal
    from ..formatters.docx_export import export_document
    from ..models.appeal import AppealRequest, FineFile, SupportFile

    _setup_logging(verbose)

    cli_overrides: dict = {}
    if merge_strategy:
        cli_overrides["merge"] = {"strategy": merge_strategy}
    if timeout:
        cli_overrides["ai"] = {"timeout_seconds": timeout}
    config = _load_config(config_path, cli_overrides or None)

    fine_path = Path(file)
    support_files = []
    for value in support:
        path, context = parse_support_option(value)
        if path.exists():
            support_files.append(SupportFile(
                name=path.name, context=context, mime_type=_guess_mime(path), base64=_encode(path)
            ))
        else:
            # No file: the text itself is context
            support_files.append(SupportFile(name=value, context=value))

    request = AppealRequest(
        fine_file=FineFile(name=fine_path.name, mime_type=_guess_mime(fine_path), base64=_encode(fine_path)),
        support_files=support_files,
        additional_context=additional_context,
    )

    console.print()
    console.print("  [bold cyan]RECURSAPP[/bold cyan]")
    console.print(f"  Fine:   [white]{escape(fine_path.name)}[/white]")
    console.print(f"  Merge:  [white]{config.get('merge', {}).get('strategy', 'heuristic')}[/white]")
    console.print()

    registry = _build_registry(config)
    agent_ids = _split_ids(agents)
    for agent_id in agent_ids or []:
        try:
            registry.resolve(agent_id)
        except KeyError as e:
            console.print(f"  [red]ERROR[/red] {escape(str(e.args[0]))}")
            sys.exit(EXIT_NO_AGENTS)

    try:
        response = asyncio.run(run_appeal(request, config, registry=registry, agent_ids=agent_ids))
    except NoAgentsConfiguredError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        sys.exit(EXIT_NO_AGENTS)
    except PipelineError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        sys.exit(EXIT_TEXT_EXTRACTION)

    if json_path:
        Path(json_path).write_text(
            json.dumps(response.model_dump(mode="json"), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        console.print(f"  Response JSON: {json_path}")

    if response.error:
        console.print(f"  [red]ERROR[/red] {escape(response.error)}")
        sys.exit(EXIT_NO_DRAFTS)

    output_path = Path(output) if output else fine_path.with_name(f"{fine_path.stem}_recurso.docx")
    export_document(response.merged_document.content, response.instructions, output_path)
    console.print(f"  [green]OK[/green] Appeal written to {output_path}")

    info = response.deadline_info
    if info is not None:
        color = _URGENCY_COLORS.get(info.urgency.value, "white")
        console.print(
            f"  [{color}]Deadline: {info.due_date} ({info.days_remaining} days, {info.urgency.value})[/{color}]"
        )
    if response.submission_url is not None:
        console.print(f"  Submit at: {response.submission_url.url}")
    console.print()


@recursapp_cli.command("agents")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
def list_agents(config_path: Optional[str]) -> None:
    """Show the agent panel and whether each agent has a credential."""
    config = _load_config(config_path)
    registry = _build_registry(config)

    table = Table(title="Agents")
    table.add_column("ID")
    table.add_column("Label")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Enabled")
    table.add_column("Key")
    for agent in registry.list_agents():
        has_key = registry.credential_for(agent) is not None
        table.add_row(
            agent.id,
            agent.label,
            agent.provider,
            agent.model,
            "yes" if agent.enabled else "no",
            "[green]set[/green]" if has_key else "[red]missing[/red]",
        )
    console.print(table)


@recursapp_cli.command("test-agent")
@click.argument("agent_id")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Config YAML")
@click.option("--timeout", type=int, default=20)
def test_agent(agent_id: str, config_path: Optional[str], timeout: int) -> None:
    """Check that AGENT_ID answers with its configured key."""
    from ..providers.fallback import ProviderCaller, probe_agent

    config = _load_config(config_path)
    registry = _build_registry(config)
    try:
        agent = registry.resolve(agent_id)
    except KeyError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e.args[0]))}")
        sys.exit(EXIT_NO_AGENTS)

    outcome = asyncio.run(probe_agent(ProviderCaller(config), agent, registry.credential_for(agent), timeout))
    if outcome["ok"]:
        console.print(f"  [green]OK[/green] {agent.label}: {escape(outcome['message'])}")
    else:
        console.print(f"  [red]FAILED[/red] {agent.label}: {escape(outcome['message'])}")
        sys.exit(EXIT_PROBE_FAILED)


@recursapp_cli.group()
def keys() -> None:
    """Manage stored provider API keys."""


@keys.command("set")
@click.argument("provider")
@click.option("--value", prompt=True, hide_input=True, help="API key")
def keys_set(provider: str, value: str) -> None:
    """Store the API key for PROVIDER."""
    from ..core.credentials import CredentialStore

    try:
        CredentialStore().set(provider, value)
    except ValueError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        sys.exit(1)
    console.print(f"  [green]OK[/green] Key saved for {provider}")


@keys.command("clear")
@click.argument("provider", required=False)
def keys_clear(provider: Optional[str]) -> None:
    """Remove the key for PROVIDER, or every stored key."""
    from ..core.credentials import CredentialStore

    CredentialStore().clear(provider)
    console.print(f"  [green]OK[/green] Cleared {provider or 'all keys'}")


@keys.command("show")
def keys_show() -> None:
    """List providers that have a stored key."""
    from ..core.credentials import CredentialStore

    store = CredentialStore()
    providers = store.providers()
    if not providers:
        console.print("  No stored keys")
        return
    for name in providers:
        secret = store.get(name) or ""
        console.print(f"  {name}: {secret[:4]}…{secret[-2:]}" if len(secret) > 8 else f"  {name}: ****")


def main() -> None:
    recursapp_cli()


if __name__ == "__main__":
    main()
