"""Claim extraction and source collection for anchoring a proposal."""

import asyncio
import logging
import re
from collections.abc import Iterable

from council_gate.adapters.base import SourceProvider
from council_gate.epistemic import EpistemicBranch, branch_rank, check_source, confidence_floor
from council_gate.models import Source

logger = logging.getLogger(__name__)

_MAX_CLAIMS = 10
_MIN_CLAIM_CHARS = 10
_SENTENCE_END = re.compile(r"[.!?]+(?:\s+|$)")
_FACTUAL_MARKER = re.compile(r"\d|\b(is|are|was|were|has|have|had|equals)\b", re.IGNORECASE)


def extract_claims(content: str) -> list[str]:
    """Pick out sentences that look like factual claims.

    A sentence qualifies when it is longer than ten characters and contains
    a digit or a copula. At most ten claims are kept. A short answer with no
    qualifying sentence is treated as a single claim.
    """
    sentences = [s.strip() for s in _SENTENCE_END.split(content)]
    claims = [s for s in sentences if len(s) > _MIN_CLAIM_CHARS and _FACTUAL_MARKER.search(s)]
    if not claims and content.strip():
        return [content.strip()]
    return claims[:_MAX_CLAIMS]


def dedupe_sources(sources: Iterable[Source]) -> list[Source]:
    """Drop repeats of the same (type, identifier), keeping first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for source in sources:
        key = (source.type.value, source.identifier)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique


async def find_sources(provider: SourceProvider, claims: list[str]) -> list[Source]:
    """Look up every claim concurrently and return the deduplicated union."""
    found = await asyncio.gather(*(provider.find_sources(claim) for claim in claims))
    flat = [source for batch in found for source in batch]
    logger.debug("Found %d source(s) for %d claim(s)", len(flat), len(claims))
    return dedupe_sources(flat)


def anchoring_sources(sources: Iterable[Source], target: EpistemicBranch) -> list[Source]:
    """Sources strong enough to anchor a claim in the target branch.

    Raises:
        SourceBranchViolationError: A source's trust score is outside its branch's range.
    """
    eligible = []
    for source in sources:
        check_source(source)
        if source.trust_score >= confidence_floor(target):
            eligible.append(source)
    return eligible


def strongest_branch(sources: Iterable[Source]) -> EpistemicBranch | None:
    branches = [s.branch for s in sources]
    return max(branches, key=branch_rank) if branches else None
