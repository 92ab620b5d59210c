"""Paragraph-based chunking strategy with word-boundary overlap."""

import math
import re
from dataclasses import dataclass
from typing import Optional

from ragfs.errors import ValidationError
from ragfs.models import Chunk

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_END = re.compile(r"[.!?]+(?=\s)")
WORD = re.compile(r"\S+")
TERMINAL_PUNCTUATION = (".", "!", "?")

MIN_OVERLAP_CHARS = 50

Span = tuple[int, int]


@dataclass(frozen=True)
class ChunkingPolicy:
    """How text is cut into chunks."""

    max_chars_per_chunk: int = 1000
    overlap_percentage: int = 25
    preserve_separators: bool = True
    # Only consulted when chunking a whole file: shorter texts stay one chunk
    min_file_chars: int = 512

    def __post_init__(self) -> None:
        if self.max_chars_per_chunk < 1:
            raise ValidationError("max_chars_per_chunk must be positive")
        if not 0 <= self.overlap_percentage <= 100:
            raise ValidationError("overlap_percentage must be between 0 and 100")

    @property
    def overlap_size(self) -> int:
        """Maximum overlap carried into the next chunk, in characters."""
        return max(
            MIN_OVERLAP_CHARS,
            math.floor(self.overlap_percentage / 100 * self.max_chars_per_chunk),
        )


DEFAULT_POLICY = ChunkingPolicy()


class ParagraphChunker:
    """Default chunking: split on blank lines, flush at sentence ends.

    - Paragraphs (blank-line separated) are the units of accumulation
    - Paragraphs longer than the limit are split at sentence ends, then
      at whitespace, then hard-cut
    - A chunk is flushed after a unit ending in terminal punctuation, once
      the buffer reaches the limit, or at the last unit
    - Each chunk after the first starts with the tail of the previous one,
      trimmed to a word boundary

    Chunk text is a literal substring of the input (with
    ``preserve_separators``), and ``text[overlap_length:]`` of consecutive
    chunks are contiguous, so they concatenate back to the input.
    """

    STRATEGY = "paragraph"

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def chunk(self, text: str) -> list[Chunk]:
        """Split text into chunks with metadata.

        Args:
            text: The text content to chunk

        Returns:
            List of Chunk objects, ``metadata["index"]`` matching position
        """
        if not text or not text.strip():
            return []

        limit = self.policy.max_chars_per_chunk
        units: list[Span] = []
        for start, end in self._paragraph_spans(text):
            if end - start > limit:
                units.extend(self._split_long_unit(text, start, end, limit))
            else:
                units.append((start, end))

        groups = self._accumulate(text, units, limit)

        chunks = []
        prev_text_start = 0
        prev_end = 0
        for idx, (group_start, group_end) in enumerate(groups):
            own_start = 0 if idx == 0 else prev_end
            own_end = len(text) if idx == len(groups) - 1 else group_end

            overlap_start = own_start
            if idx > 0:
                overlap_start = self._overlap_start(text, prev_text_start, prev_end)
                overlap = text[overlap_start:prev_end]
                if overlap and text[group_start:group_end].startswith(overlap):
                    overlap_start = own_start

            overlap_text = text[overlap_start:own_start]
            own_text = text[own_start:own_end]
            if not self.policy.preserve_separators:
                overlap_text = PARAGRAPH_BREAK.sub(" ", overlap_text)
                own_text = PARAGRAPH_BREAK.sub(" ", own_text)
            chunk_text = overlap_text + own_text

            chunks.append(
                Chunk(
                    text=chunk_text,
                    metadata={
                        "index": idx,
                        "length": len(chunk_text),
                        "strategy": self.STRATEGY,
                        "overlap_size": self.policy.overlap_size,
                        "overlap_length": len(overlap_text),
                        "start": own_start,
                        "end": own_end,
                    },
                )
            )
            prev_text_start = overlap_start
            prev_end = group_end

        return chunks

    @staticmethod
    def _paragraph_spans(text: str) -> list[Span]:
        """Spans of non-blank paragraphs, trimmed of surrounding whitespace."""
        raw: list[Span] = []
        pos = 0
        for match in PARAGRAPH_BREAK.finditer(text):
            raw.append((pos, match.start()))
            pos = match.end()
        raw.append((pos, len(text)))

        spans = []
        for start, end in raw:
            segment = text[start:end]
            stripped = segment.strip()
            if not stripped:
                continue
            lead = len(segment) - len(segment.lstrip())
            spans.append((start + lead, start + lead + len(stripped)))
        return spans

    @staticmethod
    def _split_long_unit(text: str, start: int, end: int, limit: int) -> list[Span]:
        """Break an oversized unit into pieces no longer than the limit."""
        sentences: list[Span] = []
        pos = start
        for match in SENTENCE_END.finditer(text, start, end):
            sentences.append((pos, match.end()))
            pos = match.end()
            while pos < end and text[pos].isspace():
                pos += 1
        if pos < end:
            sentences.append((pos, end))

        atoms: list[Span] = []
        for s_start, s_end in sentences:
            if s_end - s_start <= limit:
                atoms.append((s_start, s_end))
                continue
            for word in WORD.finditer(text, s_start, s_end):
                w_start, w_end = word.span()
                if w_end - w_start <= limit:
                    atoms.append((w_start, w_end))
                else:
                    atoms.extend((i, min(i + limit, w_end)) for i in range(w_start, w_end, limit))

        # Greedily merge neighbouring atoms back up to the limit
        pieces: list[Span] = []
        for a_start, a_end in atoms:
            if pieces and a_end - pieces[-1][0] <= limit:
                pieces[-1] = (pieces[-1][0], a_end)
            else:
                pieces.append((a_start, a_end))
        return pieces

    @staticmethod
    def _accumulate(text: str, units: list[Span], limit: int) -> list[Span]:
        groups: list[Span] = []
        buffer: Optional[Span] = None

        for i, (start, end) in enumerate(units):
            if buffer is not None and end - buffer[0] > limit:
                groups.append(buffer)
                buffer = None

            buffer = (start, end) if buffer is None else (buffer[0], end)

            is_last = i == len(units) - 1
            breaks = text[start:end].endswith(TERMINAL_PUNCTUATION)
            if is_last or breaks or buffer[1] - buffer[0] >= limit:
                groups.append(buffer)
                buffer = None

        return groups

    def _overlap_start(self, text: str, chunk_start: int, chunk_end: int) -> int:
        """Where the overlap taken from text[chunk_start:chunk_end] begins."""
        pos = max(chunk_start, chunk_end - self.policy.overlap_size)

        # Cut landed mid-word: move forward to the next word
        if pos > chunk_start and not text[pos - 1].isspace():
            while pos < chunk_end and not text[pos].isspace():
                pos += 1
        while pos < chunk_end and text[pos].isspace():
            pos += 1
        return pos


def chunk_text(text: str, policy: Optional[ChunkingPolicy] = None) -> list[Chunk]:
    """Split text into overlapping chunks according to the policy."""
    return ParagraphChunker(policy).chunk(text)
