"""Tests for council_gate/voting.py."""

import pytest

from council_gate.epistemic import EpistemicBranch
from council_gate.errors import EpistemicContaminationError
from council_gate.models import Challenge, CouncilMember, Severity, StepResult, VerdictOutcome
from council_gate.voting import VotingArbiter, council_confidence, position_of
from tests.conftest import make_response

R, C, G, A = CouncilMember.REASONER, CouncilMember.CALCULATOR, CouncilMember.GENERALIST, CouncilMember.ARBITER


def _critical(target: CouncilMember, resolved: bool = False) -> Challenge:
    challenge = Challenge(target=target, text="Contradicts the record.", severity=Severity.HIGH)
    if resolved:
        challenge.resolve("Here is the record.")
        challenge.severity = Severity.CRITICAL
    else:
        challenge.mark_unresolved()
    return challenge


def test_position_of_normalises_first_sentence():
    a = make_response(R, 80, "Rome fell in 476! It was sacked.")
    b = make_response(A, 80, "rome fell in 476.\nOdoacer deposed the emperor.")
    assert position_of(a) == "rome fell in 476"
    assert position_of(a) == position_of(b)


def test_position_of_truncates():
    assert len(position_of(make_response(R, 80, "x" * 300))) == 100


def test_consensus_when_all_agree(trace):
    responses = [make_response(R, 80), make_response(G, 70), make_response(A, 90)]
    verdict = VotingArbiter().arbitrate(responses, [], trace)

    assert verdict.outcome is VerdictOutcome.CONSENSUS
    assert verdict.winning_position == "position_1"
    assert verdict.winning_share == 1.0
    assert verdict.vote_tally == {"position_1": pytest.approx(2.4)}
    assert verdict.votes == {R: "position_1", G: "position_1", A: "position_1"}
    assert verdict.positions == {"position_1": "the answer is four"}
    assert verdict.dissent == ()
    assert verdict.reasoning.startswith("Verdict: CONSENSUS.")
    assert trace.steps[-1].component == "VOTING"
    assert trace.steps[-1].result is StepResult.PASS


def test_majority(trace):
    responses = [make_response(R, 50, "X."), make_response(G, 50, "Y."), make_response(A, 20, "X.")]
    verdict = VotingArbiter().arbitrate(responses, [], trace)
    assert verdict.outcome is VerdictOutcome.MAJORITY
    assert verdict.winning_share == pytest.approx(0.5833)
    assert verdict.dissent == ()


def test_split(trace):
    responses = [make_response(R, 40, "X."), make_response(G, 35, "Y."), make_response(A, 25, "Z.")]
    verdict = VotingArbiter().arbitrate(responses, [], trace)
    assert verdict.outcome is VerdictOutcome.SPLIT
    assert verdict.winning_position == "position_1"
    assert verdict.dissent == (G, A)
    assert trace.steps[-1].result is StepResult.WARN


def test_tie_is_deadlock(trace):
    responses = [make_response(R, 50, "X."), make_response(A, 50, "Y.")]
    verdict = VotingArbiter().arbitrate(responses, [], trace)
    assert verdict.outcome is VerdictOutcome.DEADLOCK
    assert verdict.winning_position is None
    assert verdict.dissent == (R, A)
    assert trace.steps[-1].result is StepResult.FAIL


def test_tie_below_every_position_is_split(trace):
    responses = [make_response(R, 40, "X."), make_response(G, 40, "Y."), make_response(A, 20, "Z.")]
    verdict = VotingArbiter().arbitrate(responses, [], trace)
    assert verdict.outcome is VerdictOutcome.SPLIT
    assert verdict.winning_position == "position_1"
    assert verdict.dissent == (G, A)


def test_three_way_exact_tie_is_deadlock():
    responses = [make_response(R, 30, "X."), make_response(G, 30, "Y."), make_response(A, 30, "Z.")]
    verdict = VotingArbiter().arbitrate(responses, [])
    assert verdict.outcome is VerdictOutcome.DEADLOCK
    assert verdict.dissent == (R, G, A)


def test_single_voter_is_deadlock():
    verdict = VotingArbiter().arbitrate([make_response(R, 90)], [])
    assert verdict.outcome is VerdictOutcome.DEADLOCK


def test_no_responses_is_deadlock():
    verdict = VotingArbiter().arbitrate([], [])
    assert verdict.outcome is VerdictOutcome.DEADLOCK
    assert "No responses received" in verdict.reasoning


def test_zero_weight_is_deadlock():
    verdict = VotingArbiter().arbitrate([make_response(R, 0), make_response(A, 0)], [])
    assert verdict.outcome is VerdictOutcome.DEADLOCK


def test_unresolved_critical_target_is_excluded():
    responses = [
        make_response(R, 90, "Rome fell in 476."),
        make_response(C, 90, "Rome fell in 476."),
        make_response(G, 95, "Rome never fell."),
        make_response(A, 90, "Rome fell in 476."),
    ]
    verdict = VotingArbiter().arbitrate(responses, [_critical(G)])

    assert verdict.outcome is VerdictOutcome.CONSENSUS
    assert verdict.excluded == (G,)
    assert G not in verdict.votes
    assert verdict.winning_share == 1.0
    assert "excluded" in verdict.reasoning


def test_resolved_critical_target_still_votes():
    responses = [make_response(R, 90), make_response(A, 90)]
    verdict = VotingArbiter().arbitrate(responses, [_critical(R, resolved=True)])
    assert verdict.excluded == ()
    assert R in verdict.votes


def test_arbitrate_is_deterministic():
    responses = [make_response(R, 40, "X."), make_response(G, 35, "Y."), make_response(A, 25, "Z.")]
    arbiter = VotingArbiter()
    assert arbiter.arbitrate(responses, []) == arbiter.arbitrate(list(reversed(responses)), [])


def test_contaminated_response_is_rejected():
    response = make_response(R, 60)
    object.__setattr__(response, "branch", EpistemicBranch.VERIFIED)
    with pytest.raises(EpistemicContaminationError):
        VotingArbiter().arbitrate([response, make_response(A, 60)], [])


def test_custom_threshold():
    responses = [make_response(R, 50, "X."), make_response(G, 50, "Y."), make_response(A, 20, "X.")]
    verdict = VotingArbiter(threshold=0.5).arbitrate(responses, [])
    assert verdict.outcome is VerdictOutcome.CONSENSUS


def test_council_confidence_weighted_mean():
    responses = [make_response(R, 80), make_response(A, 60)]
    verdict = VotingArbiter().arbitrate(responses, [])
    assert council_confidence(responses, verdict) == 71


def test_council_confidence_discounted_by_share():
    responses = [make_response(R, 50, "X."), make_response(G, 50, "Y."), make_response(A, 20, "X.")]
    verdict = VotingArbiter().arbitrate(responses, [])
    assert council_confidence(responses, verdict) == 24


def test_council_confidence_unanimous_certainty():
    responses = [make_response(R, 100), make_response(A, 100)]
    verdict = VotingArbiter().arbitrate(responses, [])
    assert council_confidence(responses, verdict) == 100


def test_council_confidence_zero_without_winner():
    responses = [make_response(R, 50, "X."), make_response(A, 50, "Y.")]
    verdict = VotingArbiter().arbitrate(responses, [])
    assert council_confidence(responses, verdict) == 0
