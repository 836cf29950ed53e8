"""Parse structured trailers out of raw model replies."""

import logging
import re

from council_gate.models import AdapterAnswer, Severity

logger = logging.getLogger(__name__)

_CONFIDENCE_LINE = re.compile(
    r"^[ \t]*\**confidence\**[ \t]*[:=][ \t]*\**[ \t]*(\d{1,3}(?:\.\d+)?)[ \t]*%?.*$\n?",
    re.IGNORECASE | re.MULTILINE,
)
_REASONING_LINE = re.compile(
    r"^[ \t]*\**reasoning\**[ \t]*[:=][ \t]*(.+)$\n?",
    re.IGNORECASE | re.MULTILINE,
)
_SEVERITY_LINE = re.compile(
    r"^[ \t]*\**severity\**[ \t]*[:=][ \t]*\**[ \t]*(low|medium|high|critical)\b.*$\n?",
    re.IGNORECASE | re.MULTILINE,
)

_UNCERTAIN_WORDS = ("maybe", "perhaps", "possibly", "might", "could", "uncertain", "unclear")
_CONFIDENT_WORDS = ("definitely", "certainly", "clearly", "obviously", "undoubtedly")
_WORD = re.compile(r"[a-z']+")


def estimate_confidence(content: str) -> int:
    """Guess a confidence from hedging vocabulary when the model gave none."""
    words = _WORD.findall(content.lower())
    uncertain = sum(words.count(w) for w in _UNCERTAIN_WORDS)
    confident = sum(words.count(w) for w in _CONFIDENT_WORDS)
    return max(30, min(95, 70 - uncertain * 5 + confident * 5))


def parse_reply(text: str) -> AdapterAnswer:
    """Split a reply into body, confidence and reasoning.

    ``CONFIDENCE:`` and ``REASONING:`` trailer lines are stripped from the body.
    Parsed confidence is clamped to 0-100.
    """
    confidence_match = _CONFIDENCE_LINE.search(text)
    reasoning_match = _REASONING_LINE.search(text)

    body = _REASONING_LINE.sub("", _CONFIDENCE_LINE.sub("", text)).strip()

    if confidence_match:
        confidence = max(0, min(100, round(float(confidence_match.group(1)))))
    else:
        confidence = estimate_confidence(body)
        logger.debug("No confidence trailer, estimated %d", confidence)

    reasoning = reasoning_match.group(1).strip() if reasoning_match else None
    return AdapterAnswer(content=body, confidence=confidence, reasoning=reasoning)


def parse_severity(text: str) -> Severity | None:
    match = _SEVERITY_LINE.search(text)
    return Severity(match.group(1).upper()) if match else None


def strip_severity(text: str) -> str:
    return _SEVERITY_LINE.sub("", text).strip()


def is_no_objection(text: str) -> bool:
    """True for an empty critic reply or one that opens with NONE."""
    stripped = text.strip()
    if not stripped:
        return True
    first_line = stripped.splitlines()[0].strip().strip("*").rstrip(".").upper()
    return first_line == "NONE"
