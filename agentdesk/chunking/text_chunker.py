"""
Text Chunker - overlapping character windows cut at sentence boundaries

Each window is cut back to the last sentence terminator or newline when
that boundary falls in the second half of the window, so chunks rarely
end mid-sentence. Consecutive chunks overlap by up to ``chunk_overlap``
characters and together cover the whole input.
"""

from typing import Iterator, List
import logging

from agentdesk.config import settings

logger = logging.getLogger(__name__)

BOUNDARY_CHARS = (".", "!", "?", "\n")


class TextChunker:
    """
    Boundary-aware character chunker

    Holds only configuration; every ``chunk`` call starts a fresh walk,
    so the returned iterator can be recreated at will.
    """

    def __init__(
        self,
        chunk_size: int = settings.CHUNK_SIZE,
        chunk_overlap: int = settings.CHUNK_OVERLAP,
        boundary_ratio: float = settings.CHUNK_BOUNDARY_RATIO,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.boundary_ratio = boundary_ratio

    def chunk(self, text: str) -> Iterator[str]:
        """
        Lazily yield chunks of ``text``

        Args:
            text: Raw document text

        Yields:
            Non-blank chunks, at most ``chunk_size`` characters each
        """
        if not text:
            return

        length = len(text)
        start = 0
        min_boundary = int(self.chunk_size * self.boundary_ratio)

        while start < length:
            end = min(start + self.chunk_size, length)

            if end < length:
                boundary = self._find_boundary(text, start, end)
                if boundary >= min_boundary:
                    end = start + boundary

            piece = text[start:end]
            if piece.strip():
                yield piece.strip()

            if end >= length:
                break

            # Always move forward, and never past the end of this chunk
            next_start = end - self.chunk_overlap
            start = next_start if next_start > start else end

    def chunk_list(self, text: str) -> List[str]:
        """Eager variant of ``chunk``"""
        return list(self.chunk(text))

    @staticmethod
    def _find_boundary(text: str, start: int, end: int) -> int:
        """Offset (relative to start) just after the last boundary char in the window, or -1"""
        window = text[start:end]
        best = max(window.rfind(ch) for ch in BOUNDARY_CHARS)
        return best + 1 if best >= 0 else -1
