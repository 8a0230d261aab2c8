"""Japanese script detection used to decide whether input needs translation."""

from __future__ import annotations

import re

_HIRAGANA = re.compile(r"[\u3040-\u309F]")
_KATAKANA = re.compile(r"[\u30A0-\u30FF]")
_KANJI = re.compile(r"[\u4E00-\u9FFF]")


def _is_japanese_char(char: str) -> bool:
    return bool(_HIRAGANA.match(char) or _KATAKANA.match(char) or _KANJI.match(char))


def detect_japanese(text: str) -> bool:
    """Return True when text contains any hiragana, katakana or kanji."""

    if not text or not text.strip():
        return False
    return bool(_HIRAGANA.search(text) or _KATAKANA.search(text) or _KANJI.search(text))


def japanese_ratio(text: str) -> float:
    """Share of Japanese characters in text, from 0.0 to 1.0."""

    if not text or not text.strip():
        return 0.0
    chars = list(text)
    japanese = sum(1 for char in chars if _is_japanese_char(char))
    return japanese / len(chars)
