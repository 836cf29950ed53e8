"""Click CLI: wires config, member adapters and collaborators into the pipeline."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from council_gate.adapters.anthropic import AnthropicAdapter
from council_gate.adapters.base import MemberAdapter, SourceProvider
from council_gate.adapters.gemini import GeminiAdapter
from council_gate.adapters.llm import LLMMemberAdapter
from council_gate.adapters.openai_provider import OpenAIAdapter
from council_gate.adapters.xai import XAIAdapter
from council_gate.adapters.yaml_sources import YamlSourceProvider
from council_gate.healthcheck import run_health_checks
from council_gate.models import CouncilMember
from council_gate.output import (
    print_deliberation,
    print_result,
    print_route,
    print_trace,
    save_to_file,
    save_trace_json,
)
from council_gate.pipeline import PipelineResult, build_pipeline

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

ADAPTER_CLASSES: dict[str, type[LLMMemberAdapter]] = {
    "anthropic": AnthropicAdapter,
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
    "xai": XAIAdapter,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_adapters(config: AppConfig) -> dict[CouncilMember, MemberAdapter]:
    """Build an adapter for every member with a key set. Keyed by member."""
    adapters: dict[CouncilMember, MemberAdapter] = {}
    for name in sorted(config.available_members):
        try:
            member = CouncilMember(name)
        except ValueError:
            logger.warning("Unknown council member '%s' in settings, skipping", name)
            continue
        model_cfg = config.models[name]
        adapter_cls = ADAPTER_CLASSES.get(model_cfg.sdk)
        if adapter_cls is None:
            logger.warning("SDK '%s' for member '%s' unknown, skipping", model_cfg.sdk, name)
            continue
        try:
            adapters[member] = adapter_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate adapter for '%s': %s", name, exc)
    return adapters


def _build_sources(config: AppConfig, sources_path: str | None) -> SourceProvider | None:
    path = Path(sources_path) if sources_path else config.defaults.sources_file
    if path is None:
        return None
    try:
        return YamlSourceProvider(path)
    except FileNotFoundError as exc:
        logger.warning("%s, running without a source catalogue", exc)
        return None


def _check_and_filter_adapters(
    adapters: dict[CouncilMember, MemberAdapter],
) -> dict[CouncilMember, MemberAdapter]:
    """Run health checks, print results, and ask what to do on failures.

    Returns the working adapters. Exits if the user declines to continue
    or nothing passes.
    """
    console.print("\n[bold]Checking council members...[/bold]")
    results = asyncio.run(run_health_checks(adapters))

    failed: list[CouncilMember] = []
    for member in sorted(results, key=lambda m: m.value):
        ok, err = results[member]
        if ok:
            console.print(f"  [green]OK  [/green] {member.value}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {member.value}: {short_err}")
            failed.append(member)

    if not failed:
        console.print()
        return adapters

    working = {m: a for m, a in adapters.items() if m not in failed}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No council member passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} member(s) failed:[/yellow] {', '.join(m.value for m in failed)}")
    if not click.confirm("Continue with working members only?", default=True):
        sys.exit(0)
    console.print()
    return working


async def _run(
    query: str,
    config: AppConfig,
    adapters: dict[CouncilMember, MemberAdapter],
    sources: SourceProvider | None,
    require_anchor: bool | None,
) -> PipelineResult:
    pipeline = build_pipeline(config, adapters, sources=sources)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Council in session...", total=None)
        return await pipeline.process(query, require_anchor=require_anchor)


@click.command()
@click.argument("query", required=False)
@click.option("--file", "query_file", type=click.Path(exists=True), help="Read the query from a file")
@click.option("--route-only", is_flag=True, help="Classify and route, then stop")
@click.option("--no-anchor", is_flag=True, help="Do not require a VERIFIED source (THEORETICAL answers allowed)")
@click.option("--sources", "sources_path", default=None, help="YAML source catalogue (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--trace-json", is_flag=True, help="Also save the validation trace as JSON")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    query: str | None,
    query_file: str | None,
    route_only: bool,
    no_anchor: bool,
    sources_path: str | None,
    output_path: str | None,
    trace_json: bool,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Council Gate -- deliberate on a query and only answer what can be anchored.

    \b
    Examples:
      python -m council_gate.cli "What is 2+2?"
      python -m council_gate.cli "Compare X and Y if Z holds" --no-anchor
      python -m council_gate.cli --file query.md --trace-json
      python -m council_gate.cli "Hello there" --route-only
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if query_file:
        query_text = Path(query_file).read_text(encoding="utf-8").strip()
    elif query:
        query_text = query
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUERY argument or --file.")
        sys.exit(1)

    if route_only:
        pipeline = build_pipeline(config, {})
        print_route(pipeline.route(query_text))
        return

    adapters = _build_adapters(config)
    if not adapters:
        console.print("[bold red]Error:[/bold red] No council members available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        adapters = _check_and_filter_adapters(adapters)

    sources = _build_sources(config, sources_path)
    result = asyncio.run(_run(query_text, config, adapters, sources, False if no_anchor else None))

    print_route(result.route)
    print_deliberation(result)
    print_trace(result.validation.trace)
    print_result(result)

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    saved = save_to_file(result, query_text, output_dir)
    console.print(f"\n[dim]Saved to: {saved}[/dim]")
    if trace_json:
        trace_path = save_trace_json(result.validation.trace, output_dir)
        console.print(f"[dim]Trace: {trace_path}[/dim]")


if __name__ == "__main__":
    main()
