import asyncio
from types import SimpleNamespace

from extraction_node.media.resolver import StreamResolver
from extraction_node.models.media import FormatDescriptor


class FakePlayer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def decipher(self, url=None, signature_cipher=None, cipher=None):
        self.calls.append((url, signature_cipher, cipher))
        if self.fail:
            raise ValueError("bad cipher")
        return f"{url or 'https://deciphered'}&sig=ok"


def _ciphered_format(url=None, fail=False, **fields):
    """A format that can decipher itself against a player."""

    async def decipher(player):
        if fail:
            raise ValueError("self decipher failed")
        return f"{url}&n=ok"

    return SimpleNamespace(url=url, decipher=decipher, **fields)


def _resolve(session, fmt):
    return asyncio.run(StreamResolver().resolve(session, fmt))


def test_format_decipher_is_tried_first() -> None:
    player = FakePlayer()
    fmt = _ciphered_format(url="https://a", signature_cipher="s=x")

    assert _resolve(SimpleNamespace(player=player), fmt) == "https://a&n=ok"
    assert player.calls == []


def test_player_decipher_reads_camel_case_cipher() -> None:
    player = FakePlayer()
    fmt = SimpleNamespace(url=None, signatureCipher="s=y&url=z", cipher=None)

    assert _resolve(SimpleNamespace(player=player), fmt) == "https://deciphered&sig=ok"
    assert player.calls == [(None, "s=y&url=z", None)]


def test_failing_strategies_fall_through_to_raw_url() -> None:
    player = FakePlayer(fail=True)
    fmt = _ciphered_format(url="https://raw", fail=True, cipher="s=1")

    assert _resolve(SimpleNamespace(player=player), fmt) == "https://raw"
    assert player.calls == [("https://raw", None, "s=1")]


def test_session_without_player_uses_raw_url() -> None:
    fmt = FormatDescriptor(mime_type="audio/webm", url="https://raw")

    assert _resolve(SimpleNamespace(player=None), fmt) == "https://raw"
    assert _resolve(SimpleNamespace(), fmt) == "https://raw"


def test_nothing_resolvable_returns_none() -> None:
    fmt = FormatDescriptor(mime_type="audio/webm")
    assert _resolve(SimpleNamespace(player=FakePlayer(fail=True)), fmt) is None
