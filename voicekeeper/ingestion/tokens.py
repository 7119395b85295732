"""Token counting with a single cached tiktoken encoding."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

import tiktoken

from voicekeeper.config import settings

TokenCounter = Callable[[str], int]


@lru_cache(maxsize=4)
def get_encoding(name: str | None = None) -> tiktoken.Encoding:
    """Return the shared encoding (``settings.tokenizer_encoding`` by default)."""
    return tiktoken.get_encoding(name or settings.tokenizer_encoding)


def count_tokens(text: str) -> int:
    """Number of model tokens in *text*.  Deterministic for a given encoding."""
    if not text:
        return 0
    return len(get_encoding().encode(text, disallowed_special=()))


def last_tokens_text(text: str, n: int, count: TokenCounter = count_tokens) -> str:
    """Trailing whole words of *text* worth at most *n* tokens.

    Words are counted individually and never cut in half, so the result may
    be a little under *n* tokens.  The last word is always kept, even when it
    alone is worth more than *n*.
    """
    if n <= 0:
        return ""

    kept: list[str] = []
    total = 0
    for word in reversed(text.split()):
        word_tokens = count(word)
        if kept and total + word_tokens > n:
            break
        total += word_tokens
        kept.append(word)
    kept.reverse()
    return " ".join(kept)
