"""Query classification: complexity, conversational detection, type and domain."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from council_gate.models import Classification, Complexity

logger = logging.getLogger(__name__)

_TOKENS_PER_UNIT = 1000
_TOKEN_MULTIPLIER = {Complexity.SIMPLE: 1, Complexity.MODERATE: 2, Complexity.COMPLEX: 4}

_TYPE_PATTERNS: list[tuple[str, list[re.Pattern[str]]]] = [
    ("current_events", [
        re.compile(r"\b(latest|recent|today|yesterday|this week|this month|current)\b"),
        re.compile(r"\b(news|update|happening|live)\b"),
    ]),
    ("creative", [
        re.compile(r"\b(write|create|generate|compose|imagine|story|poem)\b"),
        re.compile(r"\b(design|brainstorm|suggest ideas)\b"),
    ]),
    ("research", [
        re.compile(r"\b(research|study|studies|paper|journal|publication)\b"),
        re.compile(r"\b(according to|evidence|data shows)\b"),
    ]),
    ("factual", [
        re.compile(r"\b(what is|what are|what's|who is|who was|when did|where is|how many|how much)\b"),
        re.compile(r"\b(define|explain|describe)\b"),
        re.compile(r"\d{4}.*happened|\bhistorical\b"),
    ]),
    ("theoretical", [re.compile(r"\b(theory|theories|hypothesis|hypothetical)\b")]),
    ("procedural", [re.compile(r"\b(how to|how do i|steps to)\b")]),
]

_DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "vision": ("image", "photo", "picture", "diagram", "screenshot", "chart"),
    "science": ("physics", "chemistry", "biology", "science", "scientific", "experiment"),
    "mathematics": ("math", "mathematics", "calculate", "equation", "formula", "number", "algebra", "geometry"),
    "history": ("history", "historical", "century", "ancient", "war", "civilization", "empire"),
    "technology": ("computer", "software", "programming", "technology", "digital", "internet"),
    "medicine": ("medical", "health", "disease", "treatment", "doctor", "symptom", "vaccine"),
    "law": ("legal", "law", "court", "rights", "regulation", "contract"),
    "philosophy": ("philosophy", "ethics", "moral", "meaning", "existence"),
    "creative": ("art", "music", "literature", "creative", "writing"),
    "logic": ("logic", "reasoning", "proof", "argument", "fallacy", "syllogism"),
}
_DOMAIN_PATTERNS = {
    domain: re.compile(r"\b(" + "|".join(re.escape(k) for k in keywords) + r")s?\b")
    for domain, keywords in _DOMAIN_KEYWORDS.items()
}
_ARITHMETIC = re.compile(r"\d+(?:\.\d+)?\s*[-+*/×÷^%]\s*\d+")

_CONTROVERSIAL = [
    re.compile(r"\b(politics|political|election|vote)\b"),
    re.compile(r"\b(religion|religious|faith|belief)\b"),
    re.compile(r"\b(abortion|gun control|climate change debate)\b"),
]

_GREETING = re.compile(
    r"^(hi|hello|hey|yo|greetings|good (morning|afternoon|evening)|thanks|thank you|thx|cheers"
    r"|bye|goodbye|see you|how are you|who are you)\b"
)
_FOLLOW_UP = re.compile(
    r"\b(you said|you mentioned|as you said|earlier|that one|the previous|your last|what about|why not)\b"
    r"|^(and|so|but|also)\b"
)
_GREETING_MAX_WORDS = 8
_FOLLOW_UP_MAX_WORDS = 12

_CLAUSE_MARKERS = re.compile(r"\b(and|or|but|versus|vs)\b")
_CONDITION_MARKERS = re.compile(r"\b(if|unless|whether|assuming|suppose|provided)\b")

_STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "must", "shall",
    "can", "need", "dare", "ought", "used", "to", "of", "in",
    "for", "on", "with", "at", "by", "from", "as", "into",
    "through", "during", "before", "after", "above", "below",
    "between", "under", "again", "further", "then", "once",
    "what", "who", "when", "where", "why", "how", "which",
    "and", "or", "but", "not", "this", "that", "these", "those",
})


class ComplexityScorer(ABC):
    """Deterministic strategy mapping a query to a complexity tier."""

    @abstractmethod
    def score(self, query: str, context: dict[str, Any] | None = None) -> Complexity:
        ...


class MarkerComplexityScorer(ComplexityScorer):
    """Word count plus clause and condition markers.

    Longer queries and more markers never lower the tier.
    """

    def __init__(self, moderate_words: int = 20, complex_words: int = 50) -> None:
        self._moderate_words = moderate_words
        self._complex_words = complex_words

    def score(self, query: str, context: dict[str, Any] | None = None) -> Complexity:
        lowered = query.lower()
        word_count = len(lowered.split())
        has_clauses = bool(_CLAUSE_MARKERS.search(lowered)) or lowered.count("?") > 1
        has_conditions = bool(_CONDITION_MARKERS.search(lowered))

        if word_count > self._complex_words or (has_clauses and has_conditions):
            return Complexity.COMPLEX
        if word_count > self._moderate_words or has_clauses or has_conditions:
            return Complexity.MODERATE
        return Complexity.SIMPLE


def is_conversational(query: str, context: dict[str, Any] | None = None) -> bool:
    """Greetings, thanks, and short follow-ups to an ongoing conversation."""
    lowered = query.lower().strip()
    word_count = len(lowered.split())
    if word_count <= _GREETING_MAX_WORDS and _GREETING.search(lowered):
        return True
    history = (context or {}).get("history")
    return bool(history) and word_count <= _FOLLOW_UP_MAX_WORDS and bool(_FOLLOW_UP.search(lowered))


def query_type(lowered: str) -> str:
    for name, patterns in _TYPE_PATTERNS:
        if any(p.search(lowered) for p in patterns):
            return name
    return "unknown"


def query_domain(lowered: str) -> str:
    if _ARITHMETIC.search(lowered):
        return "mathematics"
    for domain, pattern in _DOMAIN_PATTERNS.items():
        if pattern.search(lowered):
            return domain
    return "general"


def extract_keywords(lowered: str) -> tuple[str, ...]:
    words = (re.sub(r"[^a-z0-9]", "", word) for word in lowered.split())
    return tuple(w for w in words if len(w) > 2 and w not in _STOP_WORDS)


class Classifier:
    """Labels a query with complexity, type, domain and conversational intent."""

    def __init__(self, scorer: ComplexityScorer | None = None) -> None:
        self._scorer = scorer or MarkerComplexityScorer()

    def classify(self, query: str, context: dict[str, Any] | None = None) -> Classification:
        lowered = query.lower().strip()
        complexity = self._scorer.score(query, context)
        conversational = is_conversational(query, context)

        classification = Classification(
            query_type=query_type(lowered),
            domain=query_domain(lowered),
            complexity=complexity,
            estimated_tokens=_TOKENS_PER_UNIT * _TOKEN_MULTIPLIER[complexity],
            conversational=conversational,
            controversial=any(p.search(lowered) for p in _CONTROVERSIAL),
            requires_deliberation=not conversational and complexity is not Complexity.SIMPLE,
            keywords=extract_keywords(lowered),
        )
        logger.debug(
            "Query classified (%d chars): type=%s domain=%s complexity=%s conversational=%s",
            len(query),
            classification.query_type,
            classification.domain,
            complexity.value,
            conversational,
        )
        return classification
