"""Tests for council_gate/anchoring.py."""

import pytest

from council_gate.anchoring import (
    anchoring_sources,
    dedupe_sources,
    extract_claims,
    find_sources,
    strongest_branch,
)
from council_gate.epistemic import EpistemicBranch
from council_gate.errors import SourceBranchViolationError
from council_gate.models import SourceType
from tests.conftest import FakeSources, make_source


def test_extract_claims_picks_factual_sentences():
    content = "Water boils at 100 degrees at sea level. Nice. The boiling point is lower on mountains!"
    assert extract_claims(content) == [
        "Water boils at 100 degrees at sea level",
        "The boiling point is lower on mountains",
    ]


def test_extract_claims_short_answer_is_one_claim():
    assert extract_claims("2 + 2 = 4.") == ["2 + 2 = 4."]


def test_extract_claims_caps_at_ten():
    content = " ".join(f"Item {i} is listed here." for i in range(15))
    assert len(extract_claims(content)) == 10


def test_extract_claims_empty():
    assert extract_claims("   ") == []


def test_dedupe_sources_keeps_first():
    a = make_source(100, id="src_a")
    b = make_source(100, id="src_b")
    c = make_source(100, identifier="doi:10.1000/182", type=SourceType.ACADEMIC)
    assert [s.id for s in dedupe_sources([a, b, c])] == ["src_a", c.id]


async def test_find_sources_unions_and_dedupes():
    provider = FakeSources([make_source(100)])
    found = await find_sources(provider, ["claim one", "claim two"])
    assert len(found) == 1
    assert provider.claims == ["claim one", "claim two"]


def test_anchoring_sources_filters_by_floor():
    verified = make_source(100, id="v")
    theoretical = make_source(80, identifier="ISBN 1", id="t")
    assert [s.id for s in anchoring_sources([verified, theoretical], EpistemicBranch.VERIFIED)] == ["v"]
    assert [s.id for s in anchoring_sources([verified, theoretical], EpistemicBranch.THEORETICAL)] == ["v", "t"]


def test_anchoring_sources_rejects_mislabelled_source():
    bad = make_source(80, branch=EpistemicBranch.VERIFIED)
    with pytest.raises(SourceBranchViolationError):
        anchoring_sources([bad], EpistemicBranch.THEORETICAL)


def test_strongest_branch():
    assert strongest_branch([]) is None
    sources = [make_source(60, identifier="x1"), make_source(100, identifier="x2")]
    assert strongest_branch(sources) is EpistemicBranch.VERIFIED
