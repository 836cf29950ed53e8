"""Dataclasses for the council validation pipeline.

Everything here is a value: frozen, comparable, safe to hand across tasks.
The only behaviour is construction-time branch checks and the one-shot
settlement of a Challenge.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from council_gate.epistemic import EpistemicBranch, branch_for_confidence, check_branch_tag


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CouncilMember(str, Enum):
    REASONER = "reasoner"
    CREATIVE = "creative"
    CALCULATOR = "calculator"
    GENERALIST = "generalist"
    VISION = "vision"
    CRITIC = "critic"
    ARBITER = "arbiter"


MEMBER_CAPABILITIES: dict[CouncilMember, str] = {
    CouncilMember.REASONER: "logical deduction and step-by-step analysis",
    CouncilMember.CREATIVE: "lateral thinking and synthesis of alternatives",
    CouncilMember.CALCULATOR: "arithmetic, formal logic and quantitative checks",
    CouncilMember.GENERALIST: "broad world knowledge",
    CouncilMember.VISION: "image and diagram understanding",
    CouncilMember.CRITIC: "adversarial review of other members' answers",
    CouncilMember.ARBITER: "balanced judgement across positions",
}

_MEMBER_ORDER = {member: index for index, member in enumerate(CouncilMember)}


def member_order(member: CouncilMember) -> int:
    """Sort key giving the canonical enumeration order of members."""
    return _MEMBER_ORDER[member]


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    def escalated(self) -> "Severity":
        """One step up, saturating at CRITICAL."""
        order = list(Severity)
        return order[min(order.index(self) + 1, len(order) - 1)]


class VerdictOutcome(str, Enum):
    CONSENSUS = "CONSENSUS"
    MAJORITY = "MAJORITY"
    SPLIT = "SPLIT"
    DEADLOCK = "DEADLOCK"


class StepResult(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARN = "WARN"
    SKIP = "SKIP"


class Decision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RejectionReason(str, Enum):
    NO_SOURCE = "NO_SOURCE"
    CONTRADICTS_MEMORY = "CONTRADICTS_MEMORY"
    FAILED_CRITIQUE = "FAILED_CRITIQUE"
    NO_CONSENSUS = "NO_CONSENSUS"
    INSUFFICIENT_CONFIDENCE = "INSUFFICIENT_CONFIDENCE"
    CONTAMINATION_DETECTED = "CONTAMINATION_DETECTED"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class SourceType(str, Enum):
    ACADEMIC = "academic"
    BOOK = "book"
    ENCYCLOPEDIA = "encyclopedia"
    STANDARD = "standard"
    OFFICIAL = "official"
    WEB = "web"
    OTHER = "other"


@dataclass(frozen=True)
class Source:
    id: str
    type: SourceType
    identifier: str        # DOI, ISBN, URL or any stable key
    url: str
    title: str
    trust_score: int
    branch: EpistemicBranch
    authors: tuple[str, ...] = ()
    fetched_at: datetime = field(default_factory=utc_now, compare=False)


@dataclass(frozen=True)
class AdapterAnswer:
    """What a member adapter hands back before it becomes a CouncilResponse."""

    content: str
    confidence: float
    reasoning: str | None = None
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class CouncilResponse:
    member: CouncilMember
    content: str
    confidence: int
    reasoning: str | None = None
    sources: tuple[Source, ...] = ()
    processing_time_ms: int = 0
    timestamp: datetime = field(default_factory=utc_now, compare=False)
    branch: EpistemicBranch | None = None

    def __post_init__(self) -> None:
        if self.branch is None:
            object.__setattr__(self, "branch", branch_for_confidence(self.confidence))
        else:
            check_branch_tag(self.branch, self.confidence, f"response from {self.member.value}")


@dataclass
class Challenge:
    """An objection raised against one member's response.

    Settled exactly once, either by a rebuttal (resolve) or by giving up on
    it (mark_unresolved, which escalates severity by one step).
    """

    target: CouncilMember
    text: str
    severity: Severity
    author: str = CouncilMember.CRITIC.value
    id: str = field(default_factory=lambda: new_id("chl"))
    response: str | None = None
    resolved: bool = False
    settled: bool = False
    timestamp: datetime = field(default_factory=utc_now, compare=False)

    def resolve(self, rebuttal: str) -> None:
        self._settle()
        self.response = rebuttal
        self.resolved = True

    def mark_unresolved(self) -> None:
        self._settle()
        self.severity = self.severity.escalated()

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError(f"Challenge {self.id} was already settled")
        self.settled = True


@dataclass(frozen=True)
class Verdict:
    outcome: VerdictOutcome
    vote_tally: dict[str, float]            # position label -> summed weight
    votes: dict[CouncilMember, str]         # member -> position label
    positions: dict[str, str]               # position label -> normalised position text
    winning_position: str | None
    winning_share: float
    reasoning: str
    dissent: tuple[CouncilMember, ...] = ()
    excluded: tuple[CouncilMember, ...] = ()
    timestamp: datetime = field(default_factory=utc_now, compare=False)


@dataclass(frozen=True)
class Deliberation:
    id: str
    request_id: str
    query: str
    responses: tuple[CouncilResponse, ...]
    challenges: tuple[Challenge, ...]
    verdict: Verdict
    final_proposal: str
    total_time_ms: int
    timestamp: datetime = field(default_factory=utc_now, compare=False)


@dataclass(frozen=True)
class Classification:
    query_type: str
    domain: str
    complexity: Complexity
    estimated_tokens: int
    conversational: bool
    controversial: bool
    requires_deliberation: bool
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteDecision:
    primary_branch: EpistemicBranch
    secondary_branches: tuple[EpistemicBranch, ...]
    complexity: Complexity
    requires_deliberation: bool
    council_members: tuple[CouncilMember, ...]
    required_members: tuple[CouncilMember, ...]
    estimated_tokens: int
    conversational: bool
    direct_member: CouncilMember
    classification: Classification


@dataclass(frozen=True)
class ValidationStep:
    step_number: int
    component: str
    action: str
    result: StepResult
    duration_ms: int
    timestamp: datetime = field(default_factory=utc_now, compare=False)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "component": self.component,
            "action": self.action,
            "result": self.result.value,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


@dataclass(frozen=True)
class ValidationTrace:
    id: str
    request_id: str
    steps: tuple[ValidationStep, ...]
    final_decision: Decision
    processing_time_ms: int
    version: str
    timestamp: datetime = field(default_factory=utc_now, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "final_decision": self.final_decision.value,
            "processing_time_ms": self.processing_time_ms,
            "version": self.version,
            "timestamp": self.timestamp.isoformat(),
            "steps": [step.to_dict() for step in self.steps],
        }


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    confidence: int
    branch: EpistemicBranch
    sources: tuple[Source, ...]
    trace: ValidationTrace = field(compare=False)
    rejection_reason: RejectionReason | None = None

    def __post_init__(self) -> None:
        check_branch_tag(self.branch, self.confidence, "validation result")

    @property
    def decision(self) -> Decision:
        return Decision.APPROVED if self.is_valid else Decision.REJECTED
