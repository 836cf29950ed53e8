"""Council fan-out: parallel member calls joined under the request deadline."""

import asyncio
import copy
import logging
import time
from collections.abc import Mapping
from typing import Any

from config.config_loader import PromptsConfig
from council_gate.adapters.base import AdapterError, MemberAdapter
from council_gate.deadline import Deadline, join_within
from council_gate.errors import EpistemicError, RequiredMemberError
from council_gate.models import CouncilMember, CouncilResponse, RouteDecision, StepResult, member_order
from council_gate.trace import TraceRecorder, ms_since

logger = logging.getLogger(__name__)

# Quality gate: warn when fewer than this many members answer
_MIN_QUALITY_RESPONSES = 3


def _timed_out(exc: BaseException) -> bool:
    return isinstance(exc, AdapterError) and exc.timed_out


async def _call_member(
    member: CouncilMember,
    adapter: MemberAdapter,
    prompt: str,
    context: dict[str, Any],
    deadline: Deadline,
) -> CouncilResponse:
    """Ask one member, retrying once on a provider timeout while time is left.

    Raises whatever the adapter raises on the final attempt.
    """
    start = time.monotonic()
    try:
        answer = await adapter.ask(prompt, context)
    except AdapterError as exc:
        if not exc.timed_out or deadline.expired:
            raise
        logger.warning(
            "Member %s timed out, retrying once (%.1fs left)",
            member.value, deadline.remaining(),
        )
        answer = await adapter.ask(prompt, context)

    content = answer.content.strip()
    if not content:
        raise AdapterError(member.value, "Empty answer")

    return CouncilResponse(
        member=member,
        content=content,
        confidence=round(answer.confidence),
        reasoning=answer.reasoning,
        sources=tuple(answer.sources),
        processing_time_ms=ms_since(start),
    )


class CouncilOrchestrator:
    """Asks every seated member except the critic, in parallel.

    Non-required members that fail are dropped with a WARN step. A required
    member that fails writes a FAIL step and aborts the request with
    RequiredMemberError.
    """

    def __init__(
        self,
        adapters: Mapping[CouncilMember, MemberAdapter],
        prompts: PromptsConfig,
        critic: CouncilMember = CouncilMember.CRITIC,
    ) -> None:
        self._adapters = dict(adapters)
        self._prompts = prompts
        self._critic = critic

    def responders(self, route: RouteDecision) -> list[CouncilMember]:
        return [m for m in route.council_members if m is not self._critic]

    def _prompt_for(self, member: CouncilMember, query: str) -> str:
        return self._prompts.answer.format(
            persona=self._prompts.personas.get(member.value, ""),
            query=query,
        )

    async def convene(
        self,
        query: str,
        route: RouteDecision,
        deadline: Deadline,
        trace: TraceRecorder,
        context: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[CouncilResponse]:
        """Collect responses from the route's responders.

        Returns:
            Responses ordered by member enumeration.

        Raises:
            RequiredMemberError: A required member failed, timed out or has no adapter.
            EpistemicError: A member answered with an invalid confidence.
        """
        start = time.monotonic()
        members = self.responders(route)
        required = set(route.required_members)

        seated = []
        for member in members:
            if member in self._adapters:
                seated.append(member)
                continue
            failure = self._record_failure(member, required, trace, "no adapter configured", timed_out=False)
            if failure is not None:
                raise failure

        calls = {
            member: _call_member(
                member,
                self._adapters[member],
                self._prompt_for(member, query),
                copy.deepcopy(context or {}),
                deadline,
            )
            for member in seated
        }

        logger.info("Council convened with %d members: %s", len(calls), ", ".join(m.value for m in calls))
        outcome = await join_within(calls, deadline, cancel_event)

        responses: list[CouncilResponse] = []
        failures: list[RequiredMemberError] = []
        for member in sorted(calls, key=member_order):
            if member in outcome.results:
                response = outcome.results[member]
                responses.append(response)
                trace.record(
                    member.name, "answer", StepResult.PASS, response.processing_time_ms,
                    {"confidence": response.confidence, "branch": response.branch.value},
                )
                continue

            if member in outcome.errors:
                exc = outcome.errors[member]
                if isinstance(exc, EpistemicError):
                    trace.record(member.name, "answer", StepResult.FAIL, details=exc.to_dict())
                    raise exc
                failure = self._record_failure(member, required, trace, str(exc), timed_out=_timed_out(exc))
            else:
                reason = "cancelled" if outcome.cancelled else "deadline exceeded"
                failure = self._record_failure(member, required, trace, reason, timed_out=True)
            if failure is not None:
                failures.append(failure)

        dropped = len(members) - len(responses)
        if failures:
            summary = StepResult.FAIL
        elif dropped:
            summary = StepResult.WARN
        else:
            summary = StepResult.PASS
        trace.record(
            "COUNCIL", "gather_responses", summary, ms_since(start),
            {"asked": len(members), "answered": len(responses)},
        )

        if failures:
            raise failures[0]

        if len(members) >= _MIN_QUALITY_RESPONSES and len(responses) < _MIN_QUALITY_RESPONSES:
            logger.warning(
                "WARNING: Only %d/%d members answered. Deliberation quality is degraded.",
                len(responses),
                len(members),
            )
        logger.info("Council round complete: %d/%d members answered in %.2fs",
                    len(responses), len(members), time.monotonic() - start)
        return responses

    async def consult(
        self,
        member: CouncilMember,
        query: str,
        deadline: Deadline,
        trace: TraceRecorder,
        context: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CouncilResponse:
        """Ask a single member who must answer (the direct route)."""
        adapter = self._adapters.get(member)
        if adapter is None:
            raise self._record_failure(member, {member}, trace, "no adapter configured", timed_out=False)

        call = _call_member(member, adapter, self._prompt_for(member, query), copy.deepcopy(context or {}), deadline)
        outcome = await join_within({member: call}, deadline, cancel_event)

        if member in outcome.results:
            response = outcome.results[member]
            trace.record(
                member.name, "answer", StepResult.PASS, response.processing_time_ms,
                {"confidence": response.confidence, "branch": response.branch.value, "direct": True},
            )
            return response
        if member in outcome.errors:
            exc = outcome.errors[member]
            if isinstance(exc, EpistemicError):
                trace.record(member.name, "answer", StepResult.FAIL, details=exc.to_dict())
                raise exc
            raise self._record_failure(member, {member}, trace, str(exc), timed_out=_timed_out(exc))
        reason = "cancelled" if outcome.cancelled else "deadline exceeded"
        raise self._record_failure(member, {member}, trace, reason, timed_out=True)

    def _record_failure(
        self,
        member: CouncilMember,
        required: set[CouncilMember],
        trace: TraceRecorder,
        reason: str,
        *,
        timed_out: bool,
    ) -> RequiredMemberError | None:
        if member in required:
            logger.error("Required member %s failed: %s", member.value, reason)
            trace.record(member.name, "answer", StepResult.FAIL, details={"reason": reason, "required": True})
            return RequiredMemberError(member.value, reason, timed_out=timed_out)
        logger.warning("Member %s dropped: %s", member.value, reason)
        trace.record(member.name, "answer", StepResult.WARN, details={"reason": reason, "required": False})
        return None
