"""Emote name list used for tab completion."""

from __future__ import annotations

import logging

import aiohttp

logger = logging.getLogger(__name__)

EMOTES_URL = "https://raw.githubusercontent.com/MemeLabs/chat-gui/master/assets/emotes.json"


def parse_emotes(payload: object) -> list[str]:
    """Extract emote names from ``{"default": [...]}``; anything else yields []."""
    if not isinstance(payload, dict):
        return []
    names = payload.get("default")
    if not isinstance(names, list):
        return []
    return [n for n in names if isinstance(n, str) and n]


async def fetch_emotes(url: str = EMOTES_URL, timeout: float = 10.0) -> list[str]:
    """Download the emote list. Returns [] on any network or format failure.

    Completion still works for nicks and commands without emotes, so a
    failed download is logged and otherwise ignored.
    """
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as http:
            async with http.get(url) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
    except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
        logger.warning("Could not load emotes from %s: %s", url, exc)
        return []
    emotes = parse_emotes(payload)
    logger.info("Loaded %d emotes", len(emotes))
    return emotes
