"""
RAG (Retrieval-Augmented Generation) module.

Provides query-side access to the pre-built course index:
- Vector index protocol with Chroma and in-memory backends
- Equality filters over category / level / unit / chapter
- Retrieval result types (metadata, content, multi-category)
"""

from .chroma_store import ChromaIndex
from .config import ALL_CATEGORIES, CATEGORIES, RAGConfig
from .dense import InMemoryIndex
from .index import IndexMatch, IndexRecord, VectorIndex, build_filter, load_index_export
from .retriever import (
    CategoryMatches,
    ContentResult,
    CourseMatch,
    MetadataResult,
    MultiCategoryResult,
    RetrievalError,
    RetrievalResult,
    aggregate_structure,
)

__all__ = [
    "ALL_CATEGORIES",
    "CATEGORIES",
    "CategoryMatches",
    "ChromaIndex",
    "ContentResult",
    "CourseMatch",
    "InMemoryIndex",
    "IndexMatch",
    "IndexRecord",
    "MetadataResult",
    "MultiCategoryResult",
    "RAGConfig",
    "RetrievalError",
    "RetrievalResult",
    "VectorIndex",
    "aggregate_structure",
    "build_filter",
    "load_index_export",
]
