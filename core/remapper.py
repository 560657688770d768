# core/remapper.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence, Tuple

from core.chunker import split_with_offsets
from core.models import Annotation, Chunk

logger = logging.getLogger(__name__)


def remap_annotations(
    pieces: Sequence[Tuple[int, str]],
    annotations: Sequence[Annotation],
    thread_marker: str = "",
) -> List[Chunk]:
    """
    Give each chunk the annotations that lie fully inside it, in chunk-local offsets.

    An annotation straddling a chunk boundary belongs to no chunk and is dropped. The
    thread marker is appended to the first chunk only after remapping, and only when
    there is more than one chunk, so it never moves an offset.
    """
    chunks: List[Chunk] = []
    placed = 0

    for start, text in pieces:
        end = start + len(text)
        local = [a.shifted(-start) for a in annotations if a.start >= start and a.end <= end and a.end > a.start]
        placed += len(local)
        chunks.append(Chunk(text=text, annotations=local))

    if placed != len(annotations):
        logger.debug("Dropped %d annotation(s) split across chunk boundaries.", len(annotations) - placed)

    if thread_marker and len(chunks) > 1:
        chunks[0] = replace(chunks[0], text=chunks[0].text + thread_marker)

    return chunks


def build_chunks(
    text: str,
    annotations: Sequence[Annotation],
    max_length: int | None,
    thread_marker: str = "",
) -> List[Chunk]:
    """Chunk `text` and remap its annotations in one step."""
    return remap_annotations(split_with_offsets(text, max_length), annotations, thread_marker)
