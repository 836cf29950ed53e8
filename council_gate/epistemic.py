"""Epistemic branches and the checks that keep them from mixing.

A branch is never chosen: it is read off a confidence value.

    VERIFIED     confidence == 100
    THEORETICAL  50 <= confidence <= 99
    UNVERIFIED   0 <= confidence <= 49

Every artifact that carries both a branch tag and a confidence (responses,
sources, validation results) must satisfy ``tag == branch_for_confidence(c)``.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any

from council_gate.errors import (
    BranchMismatchError,
    ConfidenceOutOfRangeError,
    EpistemicContaminationError,
    InvalidPromotionError,
    SourceBranchViolationError,
)


class EpistemicBranch(str, Enum):
    VERIFIED = "VERIFIED"
    THEORETICAL = "THEORETICAL"
    UNVERIFIED = "UNVERIFIED"


CONFIDENCE_RANGES: dict[EpistemicBranch, tuple[int, int]] = {
    EpistemicBranch.VERIFIED: (100, 100),
    EpistemicBranch.THEORETICAL: (50, 99),
    EpistemicBranch.UNVERIFIED: (0, 49),
}

_RANK = {
    EpistemicBranch.UNVERIFIED: 0,
    EpistemicBranch.THEORETICAL: 1,
    EpistemicBranch.VERIFIED: 2,
}


def branch_for_confidence(confidence: float) -> EpistemicBranch:
    """Return the branch a confidence value belongs to.

    Raises:
        ConfidenceOutOfRangeError: If confidence is not a number in 0-100.
    """
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ConfidenceOutOfRangeError(confidence)
    if not 0 <= confidence <= 100:
        raise ConfidenceOutOfRangeError(confidence)
    if confidence == 100:
        return EpistemicBranch.VERIFIED
    if confidence >= 50:
        return EpistemicBranch.THEORETICAL
    return EpistemicBranch.UNVERIFIED


def confidence_floor(branch: EpistemicBranch) -> int:
    return CONFIDENCE_RANGES[branch][0]


def branch_rank(branch: EpistemicBranch) -> int:
    return _RANK[branch]


def is_valid_confidence_for_branch(confidence: float, branch: EpistemicBranch) -> bool:
    low, high = CONFIDENCE_RANGES[branch]
    return low <= confidence <= high


def check_branch_tag(tag: EpistemicBranch, confidence: float, operation: str) -> None:
    """Raise BranchMismatchError when an explicit tag disagrees with its confidence."""
    expected = branch_for_confidence(confidence)
    if tag is not expected:
        raise BranchMismatchError(expected, tag, operation)


def ensure_untainted(responses: Iterable[Any], operation: str) -> None:
    """Re-check the branch tag of every response before they are merged.

    Responses are frozen, so a tag that no longer matches its confidence
    means something forced it after construction.
    """
    for response in responses:
        expected = branch_for_confidence(response.confidence)
        if response.branch is not expected:
            raise EpistemicContaminationError(response.branch, expected, operation)


def check_source(source: Any) -> None:
    """A source's trust score must sit inside the range of the branch it was fetched for."""
    trust_branch = branch_for_confidence(source.trust_score)
    if trust_branch is not source.branch:
        raise SourceBranchViolationError(source.id, source.branch, trust_branch)


def check_promotion(target: EpistemicBranch, evidence: EpistemicBranch | None) -> None:
    """VERIFIED status can only be granted on top of VERIFIED evidence."""
    if target is EpistemicBranch.VERIFIED and evidence is not EpistemicBranch.VERIFIED:
        raise InvalidPromotionError(
            evidence or EpistemicBranch.UNVERIFIED,
            target,
            "no VERIFIED source anchors the claim",
        )
