# core/chunker.py
"""Split post text into platform-sized pieces, preferring whitespace boundaries."""

from __future__ import annotations

from typing import List, Optional, Tuple


def _last_whitespace(candidate: str) -> int:
    for i in range(len(candidate) - 1, -1, -1):
        if candidate[i].isspace():
            return i
    return -1


def split_with_offsets(text: str, max_length: Optional[int]) -> List[Tuple[int, str]]:
    """
    Split `text` into `(offset, piece)` pairs where `text[offset:offset + len(piece)] == piece`.

    Offsets count everything consumed before a piece, trimmed whitespace included, so
    annotation offsets in `text` can be translated into piece-local offsets.

    - Every piece is at most `max_length` long. A word longer than `max_length` is cut
      mid-word at exactly `max_length` characters.
    - The result is never empty; empty (or all-whitespace) input yields `[(0, "")]`.
    - `max_length=None` disables splitting (the whole trimmed text is one piece).
    """
    if max_length is not None and max_length < 1:
        raise ValueError(f"max_length must be >= 1, got {max_length}")

    remaining = text.lstrip()
    offset = len(text) - len(remaining)
    remaining = remaining.rstrip()

    if not remaining:
        return [(0, "")]

    pieces: List[Tuple[int, str]] = []
    while max_length is not None and len(remaining) > max_length:
        if remaining[max_length].isspace():
            # The candidate already ends on a word boundary.
            cut = max_length
        else:
            cut = _last_whitespace(remaining[:max_length])
            if cut <= 0:
                cut = max_length

        pieces.append((offset, remaining[:cut].rstrip()))

        rest = remaining[cut:]
        trimmed = rest.lstrip()
        offset += cut + (len(rest) - len(trimmed))
        remaining = trimmed

    if remaining:
        pieces.append((offset, remaining))
    return pieces


def split_text(text: str, max_length: Optional[int]) -> List[str]:
    """`split_with_offsets` without the offsets."""
    return [piece for _, piece in split_with_offsets(text, max_length)]
