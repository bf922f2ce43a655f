"""Split long replies into WhatsApp-sized messages at natural boundaries."""

from __future__ import annotations

import re

from buddy.config import ChunkerConfig

# WhatsApp rejects text messages above this size
MAX_MESSAGE_LENGTH = 4096

_CODE_BLOCK_RE = re.compile(r"(```[\s\S]*?```)")

# Boundaries tried in order, coarsest first
_BOUNDARIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\n{2,}"), "\n\n"),
    (re.compile(r"(?<=[.!?])\s+"), " "),
    (re.compile(r"\s+"), " "),
)


def chunk_message(text: str, config: ChunkerConfig | None = None) -> list[str]:
    """Split ``text`` into chunks no longer than the configured limit.

    Code fences are kept whole when they fit. Anything that does not fit is
    broken at paragraph, then sentence, then word boundaries. A single word
    longer than the limit is hard-cut.
    """
    config = config or ChunkerConfig()
    limit = min(config.limit, MAX_MESSAGE_LENGTH)
    text = text.strip()
    if not text:
        return []
    if len(text) <= limit:
        return [text]

    pieces: list[str] = []
    for segment in _CODE_BLOCK_RE.split(text):
        segment = segment.strip()
        if not segment:
            continue
        if segment.startswith("```") and len(segment) <= limit:
            pieces.append(segment)
        else:
            pieces.extend(_split(segment, limit, 0))

    chunks = _pack(pieces, limit, "\n\n")
    return _merge_short(chunks, limit, config.min_chunk_size)


def _split(text: str, limit: int, level: int) -> list[str]:
    if len(text) <= limit:
        return [text]
    if level >= len(_BOUNDARIES):
        return [text[i:i + limit] for i in range(0, len(text), limit)]

    pattern, joiner = _BOUNDARIES[level]
    parts = [p for p in pattern.split(text) if p]
    if len(parts) == 1:
        return _split(text, limit, level + 1)

    pieces: list[str] = []
    for part in parts:
        pieces.extend(_split(part, limit, level + 1))
    return _pack(pieces, limit, joiner)


def _pack(pieces: list[str], limit: int, joiner: str) -> list[str]:
    """Greedily join consecutive pieces while the result stays within the limit."""
    chunks: list[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current}{joiner}{piece}" if current else piece
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        current = piece
    if current:
        chunks.append(current)
    return chunks


def _merge_short(chunks: list[str], limit: int, min_size: int) -> list[str]:
    if not chunks:
        return chunks
    merged = [chunks[0]]
    for chunk in chunks[1:]:
        if len(merged[-1]) < min_size and len(merged[-1]) + len(chunk) + 1 <= limit:
            merged[-1] = f"{merged[-1]}\n{chunk}"
        else:
            merged.append(chunk)
    return merged
