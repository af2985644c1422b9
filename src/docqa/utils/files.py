"""Utility helpers for working with files."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Iterable, Iterator

TEXT_SUFFIXES = (".txt", ".md")


def iter_text_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield text file paths from input paths, descending into directories.

    Files named explicitly are yielded whatever their suffix; directories are
    searched for ``TEXT_SUFFIXES`` only.
    """
    for item in inputs:
        if item.is_dir():
            yield from sorted(
                child
                for child in item.rglob("*")
                if child.is_file() and child.suffix.lower() in TEXT_SUFFIXES
            )
        elif item.is_file():
            yield item


def guess_content_type(path: Path) -> str:
    """Best-effort MIME type for a text file, defaulting to ``text/plain``."""
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or "text/plain"
