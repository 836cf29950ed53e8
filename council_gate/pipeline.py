"""End-to-end request processing: route, deliberate, validate, answer."""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from config.config_loader import AppConfig, PromptsConfig
from council_gate.adapters.base import MemberAdapter, MemoryProvider, SourceProvider
from council_gate.critique import CritiqueEngine
from council_gate.deadline import Deadline
from council_gate.errors import EpistemicError, RequiredMemberError
from council_gate.gate import RequestLifecycle, ValidationGate, ValidationState, rejection_reason_for
from council_gate.models import (
    CouncilMember,
    CouncilResponse,
    Deliberation,
    RejectionReason,
    RouteDecision,
    StepResult,
    ValidationResult,
    new_id,
)
from council_gate.orchestrator import CouncilOrchestrator
from council_gate.router import Router
from council_gate.synthesis import compose_answer, synthesize_proposal
from council_gate.trace import TraceRecorder, ms_since
from council_gate.voting import VotingArbiter

logger = logging.getLogger(__name__)

_SKIPPED_STAGES = (
    (ValidationState.DELIBERATED, "COUNCIL"),
    (ValidationState.CRITIQUED, "CRITIQUE"),
    (ValidationState.VOTED, "VOTING"),
)


@dataclass(frozen=True)
class PipelineResult:
    request_id: str
    route: RouteDecision
    validation: ValidationResult
    answer: str
    deliberation: Deliberation | None = None
    direct_response: CouncilResponse | None = None
    duration_ms: int = 0


class CouncilPipeline:
    """Runs one request from classification through the validation gate."""

    def __init__(
        self,
        router: Router,
        orchestrator: CouncilOrchestrator,
        critique: CritiqueEngine,
        arbiter: VotingArbiter,
        gate: ValidationGate,
        prompts: PromptsConfig,
        synthesizer: MemberAdapter | None = None,
        max_deliberation_time_ms: int = 60000,
        conversational_confidence: int = 80,
    ) -> None:
        self._router = router
        self._orchestrator = orchestrator
        self._critique = critique
        self._arbiter = arbiter
        self._gate = gate
        self._prompts = prompts
        self._synthesizer = synthesizer
        self._max_time_ms = max_deliberation_time_ms
        self._conversational_confidence = conversational_confidence

    def route(self, query: str, context: dict[str, Any] | None = None) -> RouteDecision:
        return self._router.route(query, context)

    async def validate(
        self,
        content: str,
        deliberation: Deliberation | None = None,
        request_id: str | None = None,
        require_anchor: bool | None = None,
        user_id: str | None = None,
    ) -> ValidationResult:
        return await self._gate.validate(
            content, deliberation, request_id=request_id, require_anchor=require_anchor, user_id=user_id,
        )

    async def process(
        self,
        query: str,
        context: dict[str, Any] | None = None,
        request_id: str | None = None,
        user_id: str | None = None,
        require_anchor: bool | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineResult:
        """Run one query through the whole pipeline.

        Never raises: aborts and contract violations come back as rejected
        results with the trace up to the point of failure.
        """
        request_id = request_id or new_id("req")
        start = time.monotonic()
        trace = TraceRecorder(request_id)
        lifecycle = RequestLifecycle(request_id)
        deadline = Deadline.from_ms(self._max_time_ms)
        logger.info("Processing request %s (%d chars)", request_id, len(query))

        step_start = time.monotonic()
        classification = self._router.classify(query, context)
        trace.record(
            "CLASSIFIER", "classify", StepResult.PASS, ms_since(step_start),
            {"complexity": classification.complexity.value, "type": classification.query_type,
             "domain": classification.domain, "conversational": classification.conversational},
        )
        step_start = time.monotonic()
        route = self._router.plan(classification)
        trace.record(
            "ROUTER", "route", StepResult.PASS, ms_since(step_start),
            {"deliberation": route.requires_deliberation, "primary_branch": route.primary_branch.value,
             "members": [m.value for m in route.council_members], "direct_member": route.direct_member.value},
        )
        lifecycle.advance(ValidationState.ROUTED)

        deliberation: Deliberation | None = None
        direct: CouncilResponse | None = None
        proposal = ""
        try:
            if route.requires_deliberation:
                deliberation = await self._deliberate(query, route, request_id, deadline, trace, lifecycle,
                                                      context, cancel_event)
                proposal = deliberation.final_proposal
                validation = await self._gate.validate(
                    proposal, deliberation, request_id=request_id, require_anchor=require_anchor,
                    user_id=user_id, trace=trace, lifecycle=lifecycle,
                )
            else:
                direct = await self._orchestrator.consult(
                    route.direct_member, query, deadline, trace, context, cancel_event,
                )
                proposal = direct.content
                reason = "conversational" if route.conversational else "simple query"
                for stage, component in _SKIPPED_STAGES:
                    trace.record(component, "skipped", StepResult.SKIP, details={"reason": reason})
                    lifecycle.advance(stage)
                if route.conversational:
                    validation = self._gate.bypass(trace, lifecycle, self._conversational_confidence)
                else:
                    validation = await self._gate.validate(
                        proposal, None, request_id=request_id, require_anchor=require_anchor,
                        user_id=user_id, trace=trace, lifecycle=lifecycle,
                        cited=direct.sources, answer_confidence=direct.confidence,
                    )
        except RequiredMemberError as exc:
            reason = RejectionReason.TIMEOUT if exc.timed_out else RejectionReason.INTERNAL_ERROR
            logger.warning("Request %s aborted: %s", request_id, exc)
            validation = self._gate.reject(reason, trace, lifecycle)
        except EpistemicError as exc:
            logger.error("Epistemic violation in request %s: %s %s", request_id, exc.code, exc.details)
            validation = self._gate.reject(rejection_reason_for(exc), trace, lifecycle)
        except Exception:
            logger.exception("Unexpected failure in request %s", request_id)
            trace.record("PIPELINE", "process", StepResult.FAIL, details={"reason": "unexpected error"})
            validation = self._gate.reject(RejectionReason.INTERNAL_ERROR, trace, lifecycle)

        duration_ms = ms_since(start)
        logger.info(
            "Request %s %s in %dms",
            request_id, validation.decision.value, duration_ms,
        )
        return PipelineResult(
            request_id=request_id,
            route=route,
            validation=validation,
            answer=compose_answer(validation, proposal),
            deliberation=deliberation,
            direct_response=direct,
            duration_ms=duration_ms,
        )

    async def _deliberate(
        self,
        query: str,
        route: RouteDecision,
        request_id: str,
        deadline: Deadline,
        trace: TraceRecorder,
        lifecycle: RequestLifecycle,
        context: dict[str, Any] | None,
        cancel_event: asyncio.Event | None,
    ) -> Deliberation:
        start = time.monotonic()
        responses = await self._orchestrator.convene(query, route, deadline, trace, context, cancel_event)
        lifecycle.advance(ValidationState.DELIBERATED)

        challenges = await self._critique.challenge(query, responses, deadline, trace, cancel_event)
        lifecycle.advance(ValidationState.CRITIQUED)

        verdict = self._arbiter.arbitrate(responses, challenges, trace)
        lifecycle.advance(ValidationState.VOTED)

        proposal = await synthesize_proposal(query, responses, verdict, self._prompts, deadline, self._synthesizer)
        return Deliberation(
            id=new_id("del"),
            request_id=request_id,
            query=query,
            responses=tuple(responses),
            challenges=tuple(challenges),
            verdict=verdict,
            final_proposal=proposal,
            total_time_ms=ms_since(start),
        )


def build_pipeline(
    config: AppConfig,
    adapters: Mapping[CouncilMember, MemberAdapter],
    sources: SourceProvider | None = None,
    memory: MemoryProvider | None = None,
) -> CouncilPipeline:
    """Wire every component from configuration."""
    council = config.council
    validation = config.validation
    critic = CouncilMember(council.critic)
    synthesizer = adapters.get(CouncilMember(council.synthesizer)) if council.synthesizer else None

    return CouncilPipeline(
        router=Router(required_members=tuple(CouncilMember(m) for m in council.required_members)),
        orchestrator=CouncilOrchestrator(adapters, config.prompts, critic=critic),
        critique=CritiqueEngine(
            adapters,
            config.prompts,
            critic=critic,
            threshold=council.critique_threshold,
            required=council.critique_required,
        ),
        arbiter=VotingArbiter(threshold=council.voting_threshold, noise_floor=council.noise_floor),
        gate=ValidationGate(
            sources=sources,
            memory=memory,
            require_anchor=validation.require_anchor,
            minimum_confidence=validation.minimum_confidence,
            unanchored_minimum_confidence=validation.unanchored_minimum_confidence,
            require_consensus=validation.require_consensus,
        ),
        prompts=config.prompts,
        synthesizer=synthesizer,
        max_deliberation_time_ms=council.max_deliberation_time_ms,
        conversational_confidence=validation.conversational_confidence,
    )
