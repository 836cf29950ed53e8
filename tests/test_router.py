"""Tests for council_gate/router.py."""

import logging

from council_gate.epistemic import EpistemicBranch
from council_gate.models import Classification, Complexity, CouncilMember
from council_gate.router import DEFAULT_REQUIRED_MEMBERS, Router, plan_route


def _classification(**overrides) -> Classification:
    values = {
        "query_type": "factual",
        "domain": "general",
        "complexity": Complexity.MODERATE,
        "estimated_tokens": 2000,
        "conversational": False,
        "controversial": False,
        "requires_deliberation": True,
    }
    values.update(overrides)
    return Classification(**values)


def test_simple_route_skips_council():
    route = plan_route(_classification(complexity=Complexity.SIMPLE, requires_deliberation=False, domain="mathematics"))
    assert not route.requires_deliberation
    assert route.council_members == ()
    assert route.required_members == ()
    assert route.direct_member is CouncilMember.CALCULATOR


def test_deliberated_route_always_seats_required_members():
    route = plan_route(_classification(domain="medicine"))
    for member in DEFAULT_REQUIRED_MEMBERS:
        assert member in route.council_members
    assert route.required_members == (CouncilMember.REASONER, CouncilMember.ARBITER)


def test_members_sorted_in_enumeration_order():
    route = plan_route(_classification(domain="history", complexity=Complexity.COMPLEX))
    assert route.council_members == (
        CouncilMember.REASONER,
        CouncilMember.GENERALIST,
        CouncilMember.CRITIC,
        CouncilMember.ARBITER,
    )


def test_specialists_by_domain():
    assert CouncilMember.CALCULATOR in plan_route(_classification(domain="logic")).council_members
    assert CouncilMember.VISION in plan_route(_classification(domain="vision")).council_members
    assert CouncilMember.CREATIVE in plan_route(_classification(query_type="creative")).council_members


def test_critic_seated_only_for_complex():
    assert CouncilMember.CRITIC not in plan_route(_classification()).council_members
    assert CouncilMember.CRITIC in plan_route(_classification(complexity=Complexity.COMPLEX)).council_members


def test_primary_branch_by_query_type():
    assert plan_route(_classification()).primary_branch is EpistemicBranch.VERIFIED
    assert plan_route(_classification(query_type="research")).primary_branch is EpistemicBranch.THEORETICAL
    assert plan_route(_classification(query_type="current_events")).primary_branch is EpistemicBranch.UNVERIFIED


def test_secondary_branches_only_for_complex():
    moderate = plan_route(_classification(query_type="current_events"))
    assert moderate.secondary_branches == ()
    complex_route = plan_route(_classification(query_type="current_events", complexity=Complexity.COMPLEX))
    assert complex_route.secondary_branches == (EpistemicBranch.VERIFIED,)


def test_custom_required_members():
    required = (CouncilMember.REASONER, CouncilMember.CALCULATOR, CouncilMember.ARBITER)
    route = plan_route(_classification(domain="history"), required)
    assert route.council_members == (
        CouncilMember.REASONER,
        CouncilMember.CALCULATOR,
        CouncilMember.GENERALIST,
        CouncilMember.ARBITER,
    )
    assert route.required_members == required


def test_router_route_logs_decision(caplog):
    with caplog.at_level(logging.INFO, logger="council_gate.router"):
        route = Router().route("What is 2+2?")
    assert route.direct_member is CouncilMember.CALCULATOR
    assert "Route decision" in caplog.text


def test_conversational_route_uses_generalist():
    route = Router().route("Good morning!")
    assert route.conversational
    assert route.direct_member is CouncilMember.GENERALIST
    assert route.council_members == ()
