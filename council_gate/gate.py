"""ValidationGate: the last word on whether an answer may leave the system.

Checks run in a fixed order and each writes exactly one trace step:

    1. anchoring    a cited or found source meets the target branch's floor
    2. memory       no claim contradicts what the user's memory holds
    3. critique     no unresolved CRITICAL challenge remains
    4. consensus    the verdict is not SPLIT or DEADLOCK
    5. confidence   the resulting confidence reaches the minimum

The first failing check decides the rejection reason. Rejections are
ordinary results with confidence 0 and the trace intact.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from enum import Enum
from typing import Any

from council_gate.adapters.base import MemoryProvider, SourceProvider
from council_gate.anchoring import anchoring_sources, dedupe_sources, extract_claims, find_sources, strongest_branch
from council_gate.epistemic import EpistemicBranch, branch_for_confidence, check_promotion
from council_gate.errors import ConfidenceOutOfRangeError, EpistemicError
from council_gate.models import (
    Decision,
    Deliberation,
    RejectionReason,
    Severity,
    Source,
    StepResult,
    ValidationResult,
    VerdictOutcome,
    new_id,
)
from council_gate.trace import TraceRecorder, ms_since
from council_gate.voting import council_confidence

logger = logging.getLogger(__name__)


class ValidationState(str, Enum):
    PENDING = "PENDING"
    ROUTED = "ROUTED"
    DELIBERATED = "DELIBERATED"
    CRITIQUED = "CRITIQUED"
    VOTED = "VOTED"
    ANCHORING = "ANCHORING"
    DECIDED = "DECIDED"


_STATES = list(ValidationState)


class RequestLifecycle:
    """Forward-only walk through ValidationState for one request."""

    def __init__(self, request_id: str, state: ValidationState = ValidationState.PENDING) -> None:
        self.request_id = request_id
        self._state = state

    @property
    def state(self) -> ValidationState:
        return self._state

    def advance(self, to: ValidationState) -> None:
        if _STATES.index(to) != _STATES.index(self._state) + 1:
            raise RuntimeError(f"Illegal transition {self._state.value} -> {to.value} for {self.request_id}")
        logger.debug("Request %s: %s -> %s", self.request_id, self._state.value, to.value)
        self._state = to

    def abort(self) -> None:
        logger.debug("Request %s aborted in %s", self.request_id, self._state.value)
        self._state = ValidationState.DECIDED


def rejection_reason_for(exc: EpistemicError) -> RejectionReason:
    if isinstance(exc, ConfidenceOutOfRangeError):
        return RejectionReason.INTERNAL_ERROR
    return RejectionReason.CONTAMINATION_DETECTED


class _Rejected(Exception):
    def __init__(self, reason: RejectionReason) -> None:
        self.reason = reason
        super().__init__(reason.value)


class ValidationGate:
    """Final approval step: anchoring, memory, critique, consensus and confidence checks."""

    def __init__(
        self,
        sources: SourceProvider | None = None,
        memory: MemoryProvider | None = None,
        require_anchor: bool = True,
        minimum_confidence: int = 100,
        unanchored_minimum_confidence: int = 60,
        require_consensus: bool = True,
    ) -> None:
        self._sources = sources
        self._memory = memory
        self._require_anchor = require_anchor
        self._minimum_confidence = minimum_confidence
        self._unanchored_minimum_confidence = unanchored_minimum_confidence
        self._require_consensus = require_consensus

    async def validate(
        self,
        content: str,
        deliberation: Deliberation | None = None,
        request_id: str | None = None,
        require_anchor: bool | None = None,
        user_id: str | None = None,
        trace: TraceRecorder | None = None,
        lifecycle: RequestLifecycle | None = None,
        cited: Sequence[Source] = (),
        answer_confidence: int | None = None,
    ) -> ValidationResult:
        """Approve or reject a proposal.

        Args:
            content: The proposal text whose claims are checked.
            deliberation: The council deliberation that produced it, if any.
            request_id: Correlation id; generated when missing.
            require_anchor: Overrides the configured anchoring requirement.
            user_id: Whose memory to check contradictions against.
            trace: Recorder shared with earlier stages; a fresh one otherwise.
            lifecycle: Request state; assumed VOTED when missing.
            cited: Sources the answering member cited directly.
            answer_confidence: Confidence of a direct answer (no deliberation).

        Returns:
            ValidationResult, never raises for validation outcomes.
        """
        request_id = request_id or (deliberation.request_id if deliberation else new_id("req"))
        trace = trace or TraceRecorder(request_id)
        lifecycle = lifecycle or RequestLifecycle(request_id, ValidationState.VOTED)
        lifecycle.advance(ValidationState.ANCHORING)
        anchored = self._require_anchor if require_anchor is None else require_anchor

        try:
            return await self._decide(
                content, deliberation, anchored, user_id, trace, lifecycle, cited, answer_confidence,
            )
        except _Rejected as rejected:
            return self.reject(rejected.reason, trace, lifecycle)
        except EpistemicError as exc:
            logger.error("Epistemic violation in request %s: %s %s", request_id, exc.code, exc.details)
            trace.record("GATE", "epistemic_check", StepResult.FAIL, details=exc.to_dict())
            return self.reject(rejection_reason_for(exc), trace, lifecycle)

    def bypass(
        self,
        trace: TraceRecorder,
        lifecycle: RequestLifecycle,
        confidence: int,
    ) -> ValidationResult:
        """Approve a conversational answer without running the checks."""
        lifecycle.advance(ValidationState.ANCHORING)
        trace.record("GATE", "conversational_bypass", StepResult.PASS, details={"confidence": confidence})
        branch = branch_for_confidence(confidence)
        check_promotion(branch, None)
        lifecycle.advance(ValidationState.DECIDED)
        return ValidationResult(
            is_valid=True,
            confidence=confidence,
            branch=branch,
            sources=(),
            trace=trace.finalize(Decision.APPROVED),
        )

    def reject(
        self,
        reason: RejectionReason,
        trace: TraceRecorder,
        lifecycle: RequestLifecycle,
    ) -> ValidationResult:
        if lifecycle.state is ValidationState.ANCHORING:
            lifecycle.advance(ValidationState.DECIDED)
        else:
            lifecycle.abort()
        logger.warning("Validation REJECTED for request %s: %s", trace.request_id, reason.value)
        return ValidationResult(
            is_valid=False,
            confidence=0,
            branch=EpistemicBranch.UNVERIFIED,
            sources=(),
            trace=trace.finalize(Decision.REJECTED),
            rejection_reason=reason,
        )

    async def _decide(
        self,
        content: str,
        deliberation: Deliberation | None,
        anchored: bool,
        user_id: str | None,
        trace: TraceRecorder,
        lifecycle: RequestLifecycle,
        cited: Sequence[Source],
        answer_confidence: int | None,
    ) -> ValidationResult:
        claims = extract_claims(content)
        target = EpistemicBranch.VERIFIED if anchored else EpistemicBranch.THEORETICAL

        anchors = await self._check_anchoring(claims, deliberation, cited, target, anchored, trace)
        await self._check_memory(claims, user_id, trace)
        self._check_critique(deliberation, trace)
        self._check_consensus(deliberation, trace)

        start = time.monotonic()
        if deliberation is not None:
            confidence = council_confidence(deliberation.responses, deliberation.verdict)
        elif anchors:
            confidence = min(s.trust_score for s in anchors)
        else:
            confidence = answer_confidence or 0
        minimum = self._minimum_confidence if anchored else self._unanchored_minimum_confidence
        details: dict[str, Any] = {"confidence": confidence, "minimum": minimum}
        if confidence < minimum:
            trace.record("GATE", "confidence_check", StepResult.FAIL, ms_since(start), details)
            raise _Rejected(RejectionReason.INSUFFICIENT_CONFIDENCE)

        branch = branch_for_confidence(confidence)
        check_promotion(branch, strongest_branch(anchors))
        trace.record("GATE", "confidence_check", StepResult.PASS, ms_since(start), {**details, "branch": branch.value})

        lifecycle.advance(ValidationState.DECIDED)
        logger.info(
            "Validation APPROVED for request %s: %d%% %s, %d source(s)",
            trace.request_id, confidence, branch.value, len(anchors),
        )
        return ValidationResult(
            is_valid=True,
            confidence=confidence,
            branch=branch,
            sources=tuple(anchors),
            trace=trace.finalize(Decision.APPROVED),
        )

    async def _check_anchoring(
        self,
        claims: list[str],
        deliberation: Deliberation | None,
        cited: Sequence[Source],
        target: EpistemicBranch,
        anchored: bool,
        trace: TraceRecorder,
    ) -> list[Source]:
        start = time.monotonic()
        pool = list(cited)
        if deliberation is not None:
            pool.extend(s for r in deliberation.responses for s in r.sources)

        lookup_error: str | None = None
        if self._sources is not None and claims:
            try:
                pool.extend(await find_sources(self._sources, claims))
            except Exception as exc:
                logger.warning("Source lookup failed: %s", exc)
                lookup_error = str(exc)

        anchors = anchoring_sources(dedupe_sources(pool), target)
        details: dict[str, Any] = {
            "claims": len(claims),
            "candidates": len(pool),
            "anchors": [s.id for s in anchors],
            "target_branch": target.value,
            "required": anchored,
        }
        if lookup_error:
            details["lookup_error"] = lookup_error

        if anchors:
            trace.record("GATE", "anchoring_check", StepResult.PASS, ms_since(start), details)
        elif anchored:
            trace.record("GATE", "anchoring_check", StepResult.FAIL, ms_since(start), details)
            raise _Rejected(RejectionReason.NO_SOURCE)
        else:
            trace.record("GATE", "anchoring_check", StepResult.WARN, ms_since(start), details)
        return anchors

    async def _check_memory(self, claims: list[str], user_id: str | None, trace: TraceRecorder) -> None:
        start = time.monotonic()
        if self._memory is None:
            trace.record("MEMORY", "contradiction_check", StepResult.SKIP, details={"reason": "no memory provider"})
            return

        found = await asyncio.gather(
            *(self._memory.find_contradiction(claim, user_id) for claim in claims),
            return_exceptions=True,
        )
        errors = [str(r) for r in found if isinstance(r, Exception)]
        for claim, memory_id in zip(claims, found):
            if memory_id and not isinstance(memory_id, BaseException):
                trace.record(
                    "MEMORY", "contradiction_check", StepResult.FAIL, ms_since(start),
                    {"claim": claim[:100], "memory_id": memory_id},
                )
                raise _Rejected(RejectionReason.CONTRADICTS_MEMORY)

        if errors:
            logger.warning("Memory lookup failed for %d claim(s): %s", len(errors), errors[0])
            trace.record("MEMORY", "contradiction_check", StepResult.WARN, ms_since(start), {"errors": errors})
        else:
            trace.record("MEMORY", "contradiction_check", StepResult.PASS, ms_since(start), {"claims": len(claims)})

    def _check_critique(self, deliberation: Deliberation | None, trace: TraceRecorder) -> None:
        if deliberation is None:
            trace.record("CRITIQUE", "critique_check", StepResult.SKIP, details={"reason": "no deliberation"})
            return
        critical = [
            c for c in deliberation.challenges
            if c.severity is Severity.CRITICAL and not c.resolved
        ]
        details = {"challenges": len(deliberation.challenges), "unresolved_critical": [c.target.value for c in critical]}
        if critical:
            trace.record("CRITIQUE", "critique_check", StepResult.FAIL, details=details)
            raise _Rejected(RejectionReason.FAILED_CRITIQUE)
        trace.record("CRITIQUE", "critique_check", StepResult.PASS, details=details)

    def _check_consensus(self, deliberation: Deliberation | None, trace: TraceRecorder) -> None:
        if deliberation is None:
            trace.record("VOTING", "consensus_check", StepResult.SKIP, details={"reason": "no deliberation"})
            return
        outcome = deliberation.verdict.outcome
        details = {"outcome": outcome.value, "share": deliberation.verdict.winning_share}
        if outcome in (VerdictOutcome.SPLIT, VerdictOutcome.DEADLOCK):
            if self._require_consensus:
                trace.record("VOTING", "consensus_check", StepResult.FAIL, details=details)
                raise _Rejected(RejectionReason.NO_CONSENSUS)
            trace.record("VOTING", "consensus_check", StepResult.WARN, details=details)
            return
        trace.record("VOTING", "consensus_check", StepResult.PASS, details=details)
