"""Member health checks: ping each seated model before a run."""

import asyncio
import logging

from council_gate.adapters.base import MemberAdapter
from council_gate.models import CouncilMember

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(member: CouncilMember, adapter: MemberAdapter) -> tuple[CouncilMember, bool, str]:
    """Ping a single member. Returns (member, ok, error_message)."""
    try:
        await asyncio.wait_for(adapter.ask(_PING_PROMPT, None), timeout=_TIMEOUT_SEC)
        return member, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", member.value, exc)
        return member, False, str(exc)


async def run_health_checks(
    adapters: dict[CouncilMember, MemberAdapter],
) -> dict[CouncilMember, tuple[bool, str]]:
    """Ping all members in parallel.

    Returns:
        Dict mapping member -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(m, a) for m, a in adapters.items()))
    return {member: (ok, err) for member, ok, err in results}
