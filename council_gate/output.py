"""Rich console output plus markdown report and JSON trace files."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council_gate.models import CouncilResponse, RouteDecision, StepResult, ValidationTrace
from council_gate.pipeline import PipelineResult
from council_gate.trace import trace_to_json

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_RESULT_STYLE = {
    StepResult.PASS: "green",
    StepResult.WARN: "yellow",
    StepResult.FAIL: "red",
    StepResult.SKIP: "dim",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: CouncilResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def print_route(route: RouteDecision) -> None:
    console.print(Rule("[bold cyan]Route[/bold cyan]"))
    members = ", ".join(m.value for m in route.council_members) or f"{route.direct_member.value} (direct)"
    console.print(
        Text(
            f"Complexity: {route.complexity.value} | "
            f"Deliberation: {'yes' if route.requires_deliberation else 'no'} | "
            f"Branch: {route.primary_branch.value} | "
            f"Tokens: ~{route.estimated_tokens}",
            style="dim",
        )
    )
    console.print(f"Members: {members}")


def print_deliberation(result: PipelineResult) -> None:
    """Print member answers, challenges and the verdict."""
    deliberation = result.deliberation
    if deliberation is None:
        return
    console.print(Rule("[bold cyan]Council[/bold cyan]"))
    for resp in deliberation.responses:
        console.print(
            Panel(
                _response_preview(resp),
                title=f"[bold]{resp.member.value}[/bold] ({resp.confidence}%, {resp.branch.value})",
                subtitle=f"{resp.processing_time_ms / 1000:.1f}s",
                border_style="dim",
            )
        )
    for challenge in deliberation.challenges:
        status = "[green]resolved[/green]" if challenge.resolved else "[red]unresolved[/red]"
        console.print(f"  {challenge.severity.value} vs {challenge.target.value}: {challenge.text[:100]} ({status})")
    verdict = deliberation.verdict
    console.print(Text(f"Verdict: {verdict.outcome.value} ({verdict.winning_share:.0%})", style="bold"))


def print_trace(trace: ValidationTrace) -> None:
    table = Table(title=f"Trace {trace.id}", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Component")
    table.add_column("Action")
    table.add_column("Result")
    table.add_column("ms", justify="right")
    for step in trace.steps:
        style = _RESULT_STYLE[step.result]
        table.add_row(
            str(step.step_number),
            step.component,
            step.action,
            f"[{style}]{step.result.value}[/{style}]",
            str(step.duration_ms),
        )
    console.print(table)


def print_result(result: PipelineResult) -> None:
    validation = result.validation
    if validation.is_valid:
        title = f"[bold green]APPROVED[/bold green] {validation.confidence}% {validation.branch.value}"
        style = "green"
    else:
        title = f"[bold red]REJECTED[/bold red] {validation.rejection_reason.value}"
        style = "red"
    console.print(Rule(title))
    console.print(Panel(Markdown(result.answer), border_style=style))
    console.print(Text(f"Request {result.request_id} | {result.duration_ms / 1000:.1f}s", style="dim"))


def save_to_file(result: PipelineResult, query: str, output_dir: Path) -> Path:
    """Save the run as a markdown report.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(query)}.md"
    validation = result.validation
    decision = validation.decision.value
    if validation.rejection_reason is not None:
        decision += f" ({validation.rejection_reason.value})"

    lines: list[str] = [
        f"# Council Gate: {query[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Request:** {result.request_id}",
        f"**Complexity:** {result.route.complexity.value}",
        f"**Decision:** {decision}",
        f"**Confidence:** {validation.confidence}% ({validation.branch.value})",
        f"**Duration:** {result.duration_ms / 1000:.1f}s",
        "",
        "---",
        "",
    ]

    if result.deliberation is not None:
        lines += ["## Council Answers", ""]
        for resp in result.deliberation.responses:
            lines += [f"### {resp.member.value.title()} ({resp.confidence}%)", "", resp.content, ""]
        if result.deliberation.challenges:
            lines += ["## Challenges", ""]
            for c in result.deliberation.challenges:
                state = "resolved" if c.resolved else "unresolved"
                lines.append(f"- **{c.severity.value}** against {c.target.value} ({state}): {c.text}")
            lines.append("")
        lines += ["## Verdict", "", result.deliberation.verdict.reasoning, ""]

    lines += ["## Answer", "", result.answer, ""]
    lines += ["## Trace", "", "| # | Component | Action | Result |", "|---|---|---|---|"]
    for step in validation.trace.steps:
        lines.append(f"| {step.step_number} | {step.component} | {step.action} | {step.result.value} |")
    lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath


def save_trace_json(trace: ValidationTrace, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"{trace.request_id}_trace.json"
    filepath.write_text(trace_to_json(trace), encoding="utf-8")
    logger.info("Trace saved to: %s", filepath)
    return filepath
