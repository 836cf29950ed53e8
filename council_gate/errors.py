"""Exception hierarchy: epistemic contract violations and council aborts."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from council_gate.epistemic import EpistemicBranch


class EpistemicError(Exception):
    """Base for violations of the branch/confidence contract.

    These are programming-contract violations, never business outcomes:
    they are fatal to the request that raised them.
    """

    code = "EPISTEMIC_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": str(self),
            "details": self.details,
        }


class EpistemicContaminationError(EpistemicError):
    """Information crossed from one branch into another without validation."""

    code = "EPISTEMIC_CONTAMINATION"

    def __init__(self, from_branch: "EpistemicBranch", to_branch: "EpistemicBranch", operation: str) -> None:
        self.from_branch = from_branch
        self.to_branch = to_branch
        super().__init__(
            f"Attempted contamination from {from_branch.value} to {to_branch.value} in {operation}",
            {"from": from_branch.value, "to": to_branch.value, "operation": operation},
        )


class InvalidPromotionError(EpistemicError):
    """A proposal was raised to a branch its evidence does not support."""

    code = "INVALID_PROMOTION"

    def __init__(self, from_branch: "EpistemicBranch", to_branch: "EpistemicBranch", reason: str) -> None:
        super().__init__(
            f"Cannot promote from {from_branch.value} to {to_branch.value}: {reason}",
            {"from": from_branch.value, "to": to_branch.value, "reason": reason},
        )


class BranchMismatchError(EpistemicError):
    """A branch tag disagrees with the confidence it labels."""

    code = "BRANCH_MISMATCH"

    def __init__(self, expected: "EpistemicBranch", actual: "EpistemicBranch", operation: str) -> None:
        super().__init__(
            f"Branch mismatch in {operation}: expected {expected.value}, got {actual.value}",
            {"expected": expected.value, "actual": actual.value, "operation": operation},
        )


class ConfidenceOutOfRangeError(EpistemicError):
    """A confidence value outside 0-100 or not a number."""

    code = "CONFIDENCE_OUT_OF_RANGE"

    def __init__(self, confidence: Any, expected_range: tuple[int, int] = (0, 100)) -> None:
        super().__init__(
            f"Confidence {confidence!r} outside {expected_range[0]}-{expected_range[1]}",
            {"confidence": repr(confidence), "expected_range": list(expected_range)},
        )


class SourceBranchViolationError(EpistemicError):
    """A source is labelled with a branch its trust score does not reach."""

    code = "SOURCE_BRANCH_VIOLATION"

    def __init__(self, source_id: str, source_branch: "EpistemicBranch", trust_branch: "EpistemicBranch") -> None:
        super().__init__(
            f"Source {source_id} is tagged {source_branch.value} but its trust score belongs to {trust_branch.value}",
            {"source_id": source_id, "source_branch": source_branch.value, "trust_branch": trust_branch.value},
        )


class RequiredMemberError(Exception):
    """Raised when a member the route cannot do without fails to answer."""

    def __init__(self, member: str, reason: str, *, timed_out: bool) -> None:
        self.member = member
        self.reason = reason
        self.timed_out = timed_out
        super().__init__(f"Required member {member} failed: {reason}")
