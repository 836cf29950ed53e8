"""Tests for council_gate/adapters/replies.py and prompt building."""

from council_gate.adapters.base import build_prompt
from council_gate.adapters.replies import (
    estimate_confidence,
    is_no_objection,
    parse_reply,
    parse_severity,
    strip_severity,
)
from council_gate.models import Severity


def test_parse_reply_strips_trailers():
    answer = parse_reply("Rome fell in 476.\n\nCONFIDENCE: 85\nREASONING: Standard dating.")
    assert answer.content == "Rome fell in 476."
    assert answer.confidence == 85
    assert answer.reasoning == "Standard dating."


def test_parse_reply_bold_and_percent():
    answer = parse_reply("Yes.\n**Confidence:** 92%")
    assert answer.confidence == 92
    assert answer.content == "Yes."


def test_parse_reply_clamps_confidence():
    assert parse_reply("Sure.\nCONFIDENCE: 250").confidence == 100


def test_parse_reply_keeps_severity_line():
    answer = parse_reply("SEVERITY: HIGH\nNo source.\nCONFIDENCE: 70")
    assert "SEVERITY: HIGH" in answer.content


def test_parse_reply_estimates_without_trailer():
    answer = parse_reply("It might possibly be true.")
    assert answer.confidence == 60
    assert answer.reasoning is None


def test_estimate_confidence_bounds():
    assert estimate_confidence("plain statement") == 70
    assert estimate_confidence("definitely " * 20) == 95
    assert estimate_confidence("maybe " * 20) == 30


def test_parse_severity():
    assert parse_severity("severity: critical\nWrong date.") is Severity.CRITICAL
    assert parse_severity("**SEVERITY:** low") is Severity.LOW
    assert parse_severity("No trailer here.") is None


def test_strip_severity():
    assert strip_severity("SEVERITY: HIGH\nNo source cited.") == "No source cited."


def test_is_no_objection():
    assert is_no_objection("")
    assert is_no_objection("NONE")
    assert is_no_objection("**None.**\nThe answer holds.")
    assert not is_no_objection("None of the sources support this.")


def test_build_prompt_without_history():
    assert build_prompt("Q?", None) == "Q?"


def test_build_prompt_includes_recent_history():
    history = [{"role": "user", "content": f"turn {i}"} for i in range(8)]
    prompt = build_prompt("Q?", {"history": history})
    assert prompt.startswith("Conversation so far:\n")
    assert "user: turn 7" in prompt
    assert "turn 1" not in prompt
    assert prompt.endswith("\n\nQ?")
