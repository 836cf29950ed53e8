"""Proposal synthesis and rendering of the caller-facing answer."""

import asyncio
import logging

from config.config_loader import PromptsConfig
from council_gate.adapters.base import AdapterError, MemberAdapter
from council_gate.deadline import Deadline
from council_gate.epistemic import ensure_untainted
from council_gate.models import CouncilResponse, RejectionReason, ValidationResult, Verdict, member_order

logger = logging.getLogger(__name__)

NO_RESPONSES = "No consensus reached - insufficient responses from council members."

_MAX_LISTED_SOURCES = 5

REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.NO_SOURCE: "I cannot verify this claim with validated sources.",
    RejectionReason.CONTRADICTS_MEMORY: "This contradicts previously validated information.",
    RejectionReason.FAILED_CRITIQUE: "This claim did not withstand critical analysis.",
    RejectionReason.NO_CONSENSUS: "The council could not reach consensus on this matter.",
    RejectionReason.INSUFFICIENT_CONFIDENCE: "Confidence level is below required threshold.",
    RejectionReason.CONTAMINATION_DETECTED: "Epistemic contamination detected between branches.",
    RejectionReason.TIMEOUT: "Processing exceeded time limits.",
    RejectionReason.INTERNAL_ERROR: "An internal error occurred during validation.",
}


def _format_responses(responses: list[CouncilResponse]) -> str:
    """Format answers into one block for the synthesis prompt."""
    return "\n\n".join(
        f"**{r.member.value} ({r.confidence}%)**\n{r.content}" for r in responses
    )


def _winning_responses(responses: list[CouncilResponse], verdict: Verdict) -> list[CouncilResponse]:
    winners = [r for r in responses if verdict.votes.get(r.member) == verdict.winning_position]
    return winners or list(responses)


async def synthesize_proposal(
    query: str,
    responses: list[CouncilResponse],
    verdict: Verdict,
    prompts: PromptsConfig,
    deadline: Deadline,
    synthesizer: MemberAdapter | None = None,
) -> str:
    """Merge the winning position into a single proposal text.

    With a synthesizer and more than one winning answer, the synthesizer
    writes the merged text; any failure falls back to the most confident
    winning answer (ties go to the earlier member).

    Raises:
        EpistemicContaminationError: A response's branch tag disagrees with its confidence.
    """
    if not responses:
        return NO_RESPONSES

    ensure_untainted(responses, "proposal synthesis")
    ordered = sorted(responses, key=lambda r: member_order(r.member))
    winners = _winning_responses(ordered, verdict)
    best = max(winners, key=lambda r: r.confidence)

    if synthesizer is None or len(winners) < 2 or deadline.expired:
        return best.content

    prompt = prompts.synthesis.format(
        query=query,
        outcome=verdict.outcome.value,
        share=f"{verdict.winning_share:.0%}",
        responses=_format_responses(winners),
    )
    logger.info("Running synthesis via %s", synthesizer.name())
    try:
        answer = await asyncio.wait_for(synthesizer.ask(prompt, None), timeout=deadline.remaining())
    except (AdapterError, TimeoutError) as exc:
        logger.warning("Synthesis via %s failed, using best answer: %s", synthesizer.name(), exc)
        return best.content

    content = answer.content.strip()
    if not content:
        logger.warning("Synthesizer %s returned empty content, using best answer", synthesizer.name())
        return best.content
    return content


def compose_answer(validation: ValidationResult, proposal: str) -> str:
    """Render what the caller sees: the proposal with sources, or an honest refusal."""
    if not validation.is_valid:
        message = REJECTION_MESSAGES.get(validation.rejection_reason, "Validation failed.")
        return f"I do not know. {message}"

    content = proposal
    if validation.sources:
        lines = [f"- {s.title or s.identifier} ({s.type.value})" for s in validation.sources[:_MAX_LISTED_SOURCES]]
        content += "\n\nSources:\n" + "\n".join(lines)
    return content
