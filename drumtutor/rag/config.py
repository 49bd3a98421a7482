"""
Configuration for course-material retrieval.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

CATEGORIES = ("Technique", "Reading", "Performance")
ALL_CATEGORIES = "all"


@dataclass
class RAGConfig:
    """Configuration for retrieval against the pre-built course index."""

    top_k: int = 5
    metadata_top_k: int = 100
    category_top_k: int = 3
    embedding_dimension: int = field(default_factory=lambda: int(os.getenv("EMBEDDING_DIMENSION", "1536")))
    backend: str = field(default_factory=lambda: os.getenv("VECTOR_BACKEND", "chroma"))
    index_name: str = field(default_factory=lambda: os.getenv("INDEX_NAME", "drum-course"))
    chroma_path: str = field(default_factory=lambda: os.getenv("CHROMA_PATH", "data/chroma"))
    chroma_host: Optional[str] = field(default_factory=lambda: os.getenv("CHROMA_HOST"))
    chroma_port: int = field(default_factory=lambda: int(os.getenv("CHROMA_PORT", "8000")))
    export_path: str = field(default_factory=lambda: os.getenv("INDEX_EXPORT_PATH", "data/index.jsonl"))
    timeout: float = field(default_factory=lambda: float(os.getenv("INDEX_TIMEOUT", "30")))
