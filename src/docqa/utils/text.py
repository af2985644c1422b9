"""Text helpers: chunking policies and raw-text decoding."""

from __future__ import annotations

from typing import Iterator, List, Protocol

PARAGRAPH_SEPARATOR = "\n\n"


class Chunker(Protocol):
    """Splitting policy: full document text in, ordered passages out."""

    def split(self, content: str) -> List[str]: ...


def split_paragraphs(content: str) -> List[str]:
    """Split text on blank lines, trimming and dropping empty paragraphs."""
    if not content:
        return []
    paragraphs = (part.strip() for part in content.split(PARAGRAPH_SEPARATOR))
    return [paragraph for paragraph in paragraphs if paragraph]


def chunk_text(text: str, *, max_chars: int = 1200, overlap: int = 200) -> Iterator[str]:
    """Split text into overlapping character chunks.

    This coarse chunker keeps things simple while preserving context overlap.
    """
    if not text:
        return iter(())

    step = max(max_chars - overlap, 1)
    for start in range(0, len(text), step):
        yield text[start : start + max_chars]
        if start + max_chars >= len(text):
            break


class ParagraphChunker:
    """Default policy: one chunk per non-empty paragraph."""

    def split(self, content: str) -> List[str]:
        return split_paragraphs(content)


class SlidingWindowChunker:
    """Overlapping fixed-size character windows."""

    def __init__(self, *, max_chars: int = 1200, overlap: int = 200) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        if not 0 <= overlap < max_chars:
            raise ValueError("overlap must be in [0, max_chars)")
        self.max_chars = max_chars
        self.overlap = overlap

    def split(self, content: str) -> List[str]:
        windows = (
            window.strip()
            for window in chunk_text(content, max_chars=self.max_chars, overlap=self.overlap)
        )
        return [window for window in windows if window]


def build_chunker(name: str, *, max_chars: int = 1200, overlap: int = 200) -> Chunker:
    """Return the chunking policy registered under ``name``."""
    if name == "paragraph":
        return ParagraphChunker()
    if name == "window":
        return SlidingWindowChunker(max_chars=max_chars, overlap=overlap)
    raise ValueError(f"Unknown chunker: {name!r}")


def decode_text(raw: bytes) -> str:
    """Decode uploaded bytes as UTF-8, dropping a BOM and replacing bad bytes."""
    return raw.decode("utf-8-sig", errors="replace")
