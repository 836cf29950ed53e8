"""Source provider backed by a local YAML catalogue of vetted references."""

import logging
from pathlib import Path
from typing import Any

import yaml

from council_gate.adapters.base import SourceProvider
from council_gate.epistemic import EpistemicBranch, branch_for_confidence
from council_gate.models import Source, SourceType, new_id

logger = logging.getLogger(__name__)


def _to_source(entry: dict[str, Any]) -> Source:
    trust = int(entry["trust_score"])
    branch = entry.get("branch")
    return Source(
        id=str(entry.get("id") or new_id("src")),
        type=SourceType(entry.get("type", SourceType.OTHER.value)),
        identifier=str(entry["identifier"]),
        url=str(entry.get("url", "")),
        title=str(entry.get("title", "")),
        trust_score=trust,
        branch=EpistemicBranch(branch) if branch else branch_for_confidence(trust),
        authors=tuple(entry.get("authors", ())),
    )


class YamlSourceProvider(SourceProvider):
    """Matches claims against catalogue entries by keyword.

    File layout::

        sources:
          - identifier: "ISBN 978-0-07-054235-8"
            title: "Principles of Mathematical Analysis"
            type: book
            trust_score: 100
            keywords: ["2 + 2", "arithmetic"]

    An entry matches when any of its keywords occurs in the claim
    (case-insensitive). Entries without keywords never match.
    """

    def __init__(self, path: Path) -> None:
        if not path.exists():
            raise FileNotFoundError(f"Sources file not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        self._entries: list[tuple[Source, list[str]]] = []
        for entry in raw.get("sources", []):
            keywords = [str(k).lower() for k in entry.get("keywords", [])]
            self._entries.append((_to_source(entry), keywords))
        logger.info("Loaded %d sources from %s", len(self._entries), path)

    async def find_sources(self, claim: str) -> list[Source]:
        lowered = claim.lower()
        return [
            source
            for source, keywords in self._entries
            if any(keyword in lowered for keyword in keywords)
        ]
