"""Weighted voting over council positions."""

import logging
import re
import time
from collections.abc import Callable

from council_gate.epistemic import ensure_untainted
from council_gate.models import (
    Challenge,
    CouncilMember,
    CouncilResponse,
    Severity,
    StepResult,
    Verdict,
    VerdictOutcome,
    member_order,
)
from council_gate.trace import TraceRecorder, ms_since

logger = logging.getLogger(__name__)

_POSITION_CHARS = 100
_FIRST_SENTENCE = re.compile(r"(?<=[.!?])\s+|\n")
_PUNCTUATION = re.compile(r"[^\w\s]")

_STEP_RESULT = {
    VerdictOutcome.CONSENSUS: StepResult.PASS,
    VerdictOutcome.MAJORITY: StepResult.PASS,
    VerdictOutcome.SPLIT: StepResult.WARN,
    VerdictOutcome.DEADLOCK: StepResult.FAIL,
}


def position_of(response: CouncilResponse) -> str:
    """Normalised first sentence of the answer: the position it votes for."""
    first = _FIRST_SENTENCE.split(response.content.strip(), maxsplit=1)[0]
    normalised = " ".join(_PUNCTUATION.sub("", first.lower()).split())
    return normalised[:_POSITION_CHARS]


def council_confidence(responses: list[CouncilResponse] | tuple[CouncilResponse, ...], verdict: Verdict) -> int:
    """Confidence of the winning position, discounted by its vote share.

    The weighted mean of the winners' confidences (each weighted by c/100),
    multiplied by the winning share. Zero when nobody won.
    """
    if verdict.winning_position is None:
        return 0
    winners = [r.confidence for r in responses if verdict.votes.get(r.member) == verdict.winning_position]
    total = sum(winners)
    if total == 0:
        return 0
    weighted_mean = sum(c * c for c in winners) / total
    return max(0, min(100, round(verdict.winning_share * weighted_mean)))


class VotingArbiter:
    """Weighs council responses by confidence and renders a Verdict."""

    def __init__(
        self,
        threshold: float = 0.66,
        noise_floor: float = 0.1,
        position: Callable[[CouncilResponse], str] = position_of,
    ) -> None:
        self._threshold = threshold
        self._noise_floor = noise_floor
        self._position = position

    def arbitrate(
        self,
        responses: list[CouncilResponse] | tuple[CouncilResponse, ...],
        challenges: list[Challenge] | tuple[Challenge, ...],
        trace: TraceRecorder | None = None,
    ) -> Verdict:
        """Tally votes and render a verdict.

        Deterministic for the same responses and challenges.

        Raises:
            EpistemicContaminationError: A response's branch tag disagrees with its confidence.
        """
        start = time.monotonic()
        ensure_untainted(responses, "vote tally")

        excluded_set = {c.target for c in challenges if c.severity is Severity.CRITICAL and not c.resolved}
        excluded = tuple(sorted(excluded_set, key=member_order))
        voters = sorted((r for r in responses if r.member not in excluded_set), key=lambda r: member_order(r.member))

        labels: dict[str, str] = {}
        votes: dict[CouncilMember, str] = {}
        points: dict[str, int] = {}
        for response in voters:
            key = self._position(response)
            label = labels.setdefault(key, f"position_{len(labels) + 1}")
            votes[response.member] = label
            points[label] = points.get(label, 0) + response.confidence

        total = sum(points.values())
        ranked = sorted(points.items(), key=lambda kv: -kv[1])
        share = ranked[0][1] / total if total else 0.0
        tied = len(ranked) > 1 and all(p == ranked[0][1] for _, p in ranked)

        winning: str | None = ranked[0][0] if ranked else None
        if len(voters) < 2 or total == 0 or tied:
            outcome = VerdictOutcome.DEADLOCK
        # unresolved CRITICAL targets were removed from voters above; the gate still rejects them
        elif share >= self._threshold:
            outcome = VerdictOutcome.CONSENSUS
        elif share >= 0.5:
            outcome = VerdictOutcome.MAJORITY
        elif sum(1 for p in points.values() if p / total >= self._noise_floor) >= 2:
            outcome = VerdictOutcome.SPLIT
        else:
            outcome = VerdictOutcome.DEADLOCK
        if outcome is VerdictOutcome.DEADLOCK:
            winning = None

        dissent: tuple[CouncilMember, ...] = ()
        if outcome in (VerdictOutcome.SPLIT, VerdictOutcome.DEADLOCK):
            dissenters = {m for m, label in votes.items() if label != winning} | excluded_set
            dissent = tuple(sorted(dissenters, key=member_order))

        verdict = Verdict(
            outcome=outcome,
            vote_tally={label: p / 100 for label, p in points.items()},
            votes=votes,
            positions={label: key for key, label in labels.items()},
            winning_position=winning,
            winning_share=round(share, 4),
            reasoning=self._reasoning(outcome, responses, voters, challenges, excluded, share),
            dissent=dissent,
            excluded=excluded,
        )

        logger.info(
            "Verdict rendered: %s (share %.2f, %d voters, %d excluded)",
            outcome.value, share, len(voters), len(excluded),
        )
        if trace is not None:
            trace.record(
                "VOTING", "tally", _STEP_RESULT[outcome], ms_since(start),
                {"outcome": outcome.value, "share": verdict.winning_share,
                 "tally": verdict.vote_tally, "excluded": [m.value for m in excluded]},
            )
        return verdict

    @staticmethod
    def _reasoning(
        outcome: VerdictOutcome,
        responses: list[CouncilResponse] | tuple[CouncilResponse, ...],
        voters: list[CouncilResponse],
        challenges: list[Challenge] | tuple[Challenge, ...],
        excluded: tuple[CouncilMember, ...],
        share: float,
    ) -> str:
        if not responses:
            return "Verdict: DEADLOCK. No responses received from council members."
        average = sum(r.confidence for r in voters) / len(voters) if voters else 0
        parts = [
            f"Verdict: {outcome.value}.",
            f"{len(voters)} of {len(responses)} council members counted "
            f"with average confidence of {average:.0f}%; leading position holds {share:.0%} of the weight.",
        ]
        unresolved = sum(1 for c in challenges if not c.resolved)
        if unresolved:
            parts.append(f"{unresolved} unresolved challenge(s) remain.")
        if excluded:
            parts.append(
                "WARNING: excluded for unresolved critical challenges: "
                + ", ".join(m.value for m in excluded) + "."
            )
        return " ".join(parts)
