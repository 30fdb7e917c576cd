"""Connectivity check: stream a tiny completion from each provider before a discussion starts."""

import asyncio
import logging

from thinktank.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_MESSAGES = [{"role": "user", "content": "Reply with the word OK only."}]
_PING_MAX_TOKENS = 8
_TIMEOUT_SEC = 15.0


async def _ping(provider: AIProvider) -> str:
    return await asyncio.wait_for(
        provider.generate(_PING_MESSAGES, max_tokens=_PING_MAX_TOKENS, temperature=0.0),
        timeout=_TIMEOUT_SEC,
    )


async def run_health_checks(
    providers: dict[str, AIProvider],
) -> dict[str, tuple[bool, str]]:
    """Ping every provider concurrently.

    Returns:
        Provider name -> (ok, error_message); the message is "" on success.
    """
    names = list(providers)
    outcomes = await asyncio.gather(*(_ping(providers[n]) for n in names), return_exceptions=True)

    results: dict[str, tuple[bool, str]] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.debug("Health check failed for %s: %r", name, outcome)
            results[name] = (False, str(outcome) or type(outcome).__name__)
        else:
            results[name] = (True, "")
    return results
