"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping

from docqa.embedding.encoder import DEFAULT_DIMENSION, DEFAULT_MODEL

ENV_PREFIX = "DOCQA_"
COLLECTION_NAME = "doc_vectors"


@dataclass(slots=True)
class AppConfig:
    db_path: Path = Path("data/docqa.db")
    model_name: str = DEFAULT_MODEL
    vector_dimension: int = DEFAULT_DIMENSION
    collection_name: str = COLLECTION_NAME
    qdrant_url: str | None = None
    qdrant_path: Path = Path("data/qdrant")
    qdrant_api_key: str | None = None
    qdrant_timeout: int = 10
    hnsw_ef_construct: int = 1024
    shard_number: int = 2
    top_k: int = 3
    chunker: str = "paragraph"
    window_chars: int = 1200
    window_overlap: int = 200
    embed_workers: int = 1

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.qdrant_path = Path(self.qdrant_path)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from ``DOCQA_*`` variables, falling back to defaults.

        ``DOCQA_TOP_K=5`` sets ``top_k``; values are converted to the type of
        the field's default.
        """
        environ = os.environ if environ is None else environ
        config = cls()
        for item in fields(cls):
            raw = environ.get(ENV_PREFIX + item.name.upper())
            if raw is None:
                continue
            current = getattr(config, item.name)
            value: object
            if isinstance(current, int):
                value = int(raw)
            elif isinstance(current, Path):
                value = Path(raw)
            else:
                value = raw or current
            setattr(config, item.name, value)
        config.__post_init__()
        return config

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        return _resolve(self.db_path, base_dir)

    def resolve_qdrant_path(self, base_dir: Path | None = None) -> Path:
        return _resolve(self.qdrant_path, base_dir)


def _resolve(path: Path, base_dir: Path | None) -> Path:
    if path.is_absolute() or base_dir is None:
        return path
    return base_dir / path
