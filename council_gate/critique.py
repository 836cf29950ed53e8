"""Adversarial critique: one challenge per targeted response, then rebuttals."""

import asyncio
import logging
import re
import time
from collections.abc import Mapping

from config.config_loader import PromptsConfig
from council_gate.adapters.base import MemberAdapter
from council_gate.adapters.replies import is_no_objection, parse_severity, strip_severity
from council_gate.deadline import Deadline, join_within
from council_gate.models import Challenge, CouncilMember, CouncilResponse, Severity, StepResult, member_order
from council_gate.trace import TraceRecorder, ms_since

logger = logging.getLogger(__name__)

_HEURISTIC_AUTHOR = "heuristic"

_FALLACIES = [
    (re.compile(r"everyone knows|\bobviously\b|\bclearly\b|it's obvious", re.IGNORECASE), "appeal to common knowledge"),
    (re.compile(r"\b(always|never)\b", re.IGNORECASE), "absolute statement without nuance"),
    (re.compile(r"experts say|studies show", re.IGNORECASE), "appeal to vague authority"),
]
_UNSUPPORTED_CLAIM = re.compile(r"according to|research shows|data indicates|statistics show", re.IGNORECASE)
_COUNTERPOINT = re.compile(r"\b(however|although)\b", re.IGNORECASE)
_LONG_ANSWER_CHARS = 200


def heuristic_challenge(response: CouncilResponse) -> tuple[str, Severity] | None:
    """Rule-based objection used when no critic model is available."""
    if response.confidence > 90 and not response.sources:
        return (
            f"{response.member.value} claims {response.confidence}% confidence without providing sources",
            Severity.HIGH,
        )
    for pattern, fallacy in _FALLACIES:
        match = pattern.search(response.content)
        if match:
            return f"Potential {fallacy} detected in response: '{match.group(0)}'", Severity.MEDIUM
    if _UNSUPPORTED_CLAIM.search(response.content) and not response.sources:
        return "Response makes claims about research/data without citing sources", Severity.HIGH
    if len(response.content) > _LONG_ANSWER_CHARS and not _COUNTERPOINT.search(response.content):
        return "Response may not consider alternative perspectives or edge cases", Severity.LOW
    return None


def severity_from_confidence(confidence: float) -> Severity:
    if confidence < 25:
        return Severity.LOW
    if confidence < 50:
        return Severity.MEDIUM
    if confidence < 75:
        return Severity.HIGH
    return Severity.CRITICAL


class CritiqueEngine:
    """Has the critic challenge council responses and collects rebuttals."""

    def __init__(
        self,
        adapters: Mapping[CouncilMember, MemberAdapter],
        prompts: PromptsConfig,
        critic: CouncilMember = CouncilMember.CRITIC,
        threshold: int = 70,
        required: bool = True,
    ) -> None:
        self._adapters = dict(adapters)
        self._prompts = prompts
        self._critic = critic
        self._threshold = threshold
        self._required = required

    def targets(self, responses: list[CouncilResponse]) -> list[CouncilResponse]:
        if self._required:
            return list(responses)
        return [r for r in responses if r.confidence < self._threshold]

    async def challenge(
        self,
        query: str,
        responses: list[CouncilResponse],
        deadline: Deadline,
        trace: TraceRecorder,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Challenge]:
        """Author challenges and collect rebuttals.

        Responses are never modified. Every returned challenge is settled.

        Returns:
            Challenges ordered by target member enumeration.
        """
        start = time.monotonic()
        targets = sorted(self.targets(responses), key=lambda r: member_order(r.member))
        if not targets:
            trace.record("CRITIQUE", "author_challenges", StepResult.SKIP,
                         details={"reason": "no response needs critique"})
            return []

        challenges = await self._author(query, targets, deadline, trace, cancel_event)
        if challenges:
            by_member = {r.member: r for r in responses}
            await self._rebut(query, challenges, by_member, deadline, trace, cancel_event)

        unresolved = sum(1 for c in challenges if not c.resolved)
        logger.info(
            "Critique complete: %d challenge(s), %d unresolved, %.2fs",
            len(challenges), unresolved, time.monotonic() - start,
        )
        trace.record(
            "CRITIQUE", "critique_round",
            StepResult.WARN if unresolved else StepResult.PASS,
            ms_since(start),
            {"targets": len(targets), "challenges": len(challenges), "unresolved": unresolved},
        )
        return challenges

    async def _author(
        self,
        query: str,
        targets: list[CouncilResponse],
        deadline: Deadline,
        trace: TraceRecorder,
        cancel_event: asyncio.Event | None,
    ) -> list[Challenge]:
        critic = self._adapters.get(self._critic)
        replies = {}
        if critic is not None:
            persona = self._prompts.personas.get(self._critic.value, "")
            calls = {
                r.member: critic.ask(
                    self._prompts.challenge.format(
                        persona=persona, query=query, confidence=r.confidence, response=r.content,
                    ),
                    None,
                )
                for r in targets
            }
            outcome = await join_within(calls, deadline, cancel_event)
            replies = outcome.results
            for member, exc in outcome.errors.items():
                logger.warning("Critic failed on %s, falling back to heuristics: %s", member.value, exc)
        else:
            logger.info("No %s adapter, challenges come from heuristics", self._critic.value)

        challenges: list[Challenge] = []
        for response in targets:
            reply = replies.get(response.member)
            if reply is not None:
                if is_no_objection(reply.content):
                    trace.record(self._critic.name, "challenge", StepResult.PASS,
                                 details={"target": response.member.value, "raised": False})
                    continue
                severity = parse_severity(reply.content) or severity_from_confidence(reply.confidence)
                challenge = Challenge(
                    target=response.member,
                    text=strip_severity(reply.content),
                    severity=severity,
                    author=self._critic.value,
                )
            else:
                found = heuristic_challenge(response)
                if found is None:
                    trace.record(self._critic.name, "challenge", StepResult.PASS,
                                 details={"target": response.member.value, "raised": False, "author": _HEURISTIC_AUTHOR})
                    continue
                text, severity = found
                challenge = Challenge(target=response.member, text=text, severity=severity, author=_HEURISTIC_AUTHOR)

            challenges.append(challenge)
            trace.record(
                self._critic.name, "challenge", StepResult.WARN,
                details={"target": response.member.value, "raised": True,
                         "severity": challenge.severity.value, "author": challenge.author},
            )
        return challenges

    async def _rebut(
        self,
        query: str,
        challenges: list[Challenge],
        responses: dict[CouncilMember, CouncilResponse],
        deadline: Deadline,
        trace: TraceRecorder,
        cancel_event: asyncio.Event | None,
    ) -> None:
        calls = {}
        for challenge in challenges:
            adapter = self._adapters.get(challenge.target)
            if adapter is None:
                continue
            calls[challenge.id] = adapter.ask(
                self._prompts.rebuttal.format(
                    persona=self._prompts.personas.get(challenge.target.value, ""),
                    query=query,
                    response=responses[challenge.target].content,
                    severity=challenge.severity.value,
                    challenge=challenge.text,
                ),
                None,
            )

        outcome = await join_within(calls, deadline, cancel_event)

        for challenge in challenges:
            answer = outcome.results.get(challenge.id)
            rebuttal = answer.content.strip() if answer is not None else ""
            if rebuttal:
                challenge.resolve(rebuttal)
                result = StepResult.PASS
            else:
                challenge.mark_unresolved()
                logger.warning(
                    "Challenge against %s unresolved, severity now %s",
                    challenge.target.value, challenge.severity.value,
                )
                result = StepResult.FAIL if challenge.severity is Severity.CRITICAL else StepResult.WARN
            trace.record(
                challenge.target.name, "rebuttal", result,
                details={"challenge_id": challenge.id, "resolved": challenge.resolved,
                         "severity": challenge.severity.value},
            )
