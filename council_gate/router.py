"""Turn a classification into a RouteDecision."""

import logging
from typing import Any

from council_gate.classifier import Classifier
from council_gate.epistemic import EpistemicBranch
from council_gate.models import Classification, Complexity, CouncilMember, RouteDecision, member_order

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_MEMBERS = (CouncilMember.REASONER, CouncilMember.ARBITER)

_CALCULATION_DOMAINS = ("mathematics", "logic")


def _primary_branch(classification: Classification) -> EpistemicBranch:
    if classification.query_type in ("research", "theoretical"):
        return EpistemicBranch.THEORETICAL
    if classification.query_type == "current_events":
        return EpistemicBranch.UNVERIFIED
    return EpistemicBranch.VERIFIED


def _secondary_branches(classification: Classification, primary: EpistemicBranch) -> tuple[EpistemicBranch, ...]:
    if classification.complexity is not Complexity.COMPLEX:
        return ()
    secondary = []
    if primary is not EpistemicBranch.VERIFIED:
        secondary.append(EpistemicBranch.VERIFIED)
    if classification.query_type == "research" and primary is not EpistemicBranch.THEORETICAL:
        secondary.append(EpistemicBranch.THEORETICAL)
    return tuple(secondary)


def _optional_members(classification: Classification) -> set[CouncilMember]:
    members: set[CouncilMember] = set()
    if classification.domain in _CALCULATION_DOMAINS:
        members.add(CouncilMember.CALCULATOR)
    if classification.domain == "creative" or classification.query_type == "creative":
        members.add(CouncilMember.CREATIVE)
    if classification.domain in ("history", "general"):
        members.add(CouncilMember.GENERALIST)
    if classification.domain == "vision":
        members.add(CouncilMember.VISION)
    if classification.complexity is Complexity.COMPLEX:
        members.add(CouncilMember.CRITIC)
    return members


def plan_route(
    classification: Classification,
    required_members: tuple[CouncilMember, ...] = DEFAULT_REQUIRED_MEMBERS,
) -> RouteDecision:
    """Pure routing policy.

    Deliberated routes always seat the required members and add specialists
    by capability. Other routes seat nobody: the direct member answers alone.
    """
    primary = _primary_branch(classification)
    if classification.domain in _CALCULATION_DOMAINS:
        direct = CouncilMember.CALCULATOR
    else:
        direct = CouncilMember.GENERALIST

    if classification.requires_deliberation:
        seated = set(required_members) | _optional_members(classification)
        council = tuple(sorted(seated, key=member_order))
        required = tuple(sorted(set(required_members), key=member_order))
        secondary = _secondary_branches(classification, primary)
    else:
        council, required, secondary = (), (), ()

    return RouteDecision(
        primary_branch=primary,
        secondary_branches=secondary,
        complexity=classification.complexity,
        requires_deliberation=classification.requires_deliberation,
        council_members=council,
        required_members=required,
        estimated_tokens=classification.estimated_tokens,
        conversational=classification.conversational,
        direct_member=direct,
        classification=classification,
    )


class Router:
    """Classifies a query and plans which members deliberate on it."""

    def __init__(
        self,
        classifier: Classifier | None = None,
        required_members: tuple[CouncilMember, ...] = DEFAULT_REQUIRED_MEMBERS,
    ) -> None:
        self._classifier = classifier or Classifier()
        self._required = tuple(required_members)

    def classify(self, query: str, context: dict[str, Any] | None = None) -> Classification:
        return self._classifier.classify(query, context)

    def plan(self, classification: Classification) -> RouteDecision:
        return plan_route(classification, self._required)

    def route(self, query: str, context: dict[str, Any] | None = None) -> RouteDecision:
        decision = self.plan(self.classify(query, context))
        logger.info(
            "Route decision: complexity=%s deliberation=%s members=%s",
            decision.complexity.value,
            decision.requires_deliberation,
            ", ".join(m.value for m in decision.council_members) or decision.direct_member.value,
        )
        return decision
