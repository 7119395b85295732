"""Sentence segmentation on terminal punctuation."""

from __future__ import annotations

import re

# A run of non-terminators followed by one or more terminators, or a trailing
# run with no terminator at all.
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+\s*|[^.!?]+$|[.!?]+\s*")


def segment(text: str) -> list[str]:
    """Split *text* into sentences, keeping terminal punctuation.

    Splits on ``.``, ``!`` and ``?`` followed by optional whitespace.  Text
    after the last terminator is kept as a final sentence so that joining the
    result with single spaces reconstructs the input modulo whitespace.  If no
    boundary is found the whole (stripped) input is returned as one sentence.
    """
    if not text or not text.strip():
        return []

    sentences = [m.group(0).strip() for m in _SENTENCE_RE.finditer(text)]
    sentences = [s for s in sentences if s]
    return sentences or [text.strip()]
