"""
Resolves a selected format into a concrete, fetchable stream URL.
"""

import logging
from typing import Any, Optional

log = logging.getLogger(__name__)


async def _format_decipher(player: Any, fmt: Any) -> Optional[str]:
    decipher = getattr(fmt, "decipher", None)
    if player is None or not callable(decipher):
        return None
    return await decipher(player)


async def _player_decipher(player: Any, fmt: Any) -> Optional[str]:
    if player is None:
        return None
    cipher = getattr(fmt, "signature_cipher", None) or getattr(
        fmt, "signatureCipher", None
    )
    return await player.decipher(
        getattr(fmt, "url", None), cipher, getattr(fmt, "cipher", None)
    )


async def _raw_url(player: Any, fmt: Any) -> Optional[str]:
    return getattr(fmt, "url", None)


class StreamResolver:
    """
    Applies an ordered chain of decipher strategies to a format.

    The first strategy that yields a URL wins; a strategy that raises falls
    through to the next one.
    """

    STRATEGIES = (
        ("format decipher", _format_decipher),
        ("player decipher", _player_decipher),
        ("raw url", _raw_url),
    )

    async def resolve(self, session: Any, fmt: Any) -> Optional[str]:
        """Returns a fetchable URL for the format, or None when none can be derived."""
        player = getattr(session, "player", None)
        for name, strategy in self.STRATEGIES:
            try:
                url = await strategy(player, fmt)
            except Exception as e:
                log.debug(f"Resolver strategy '{name}' failed: {e}")
                continue
            if url:
                log.debug(f"Resolved stream URL via {name}")
                return url
        return None
