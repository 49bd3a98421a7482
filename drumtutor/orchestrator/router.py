"""
Retrieval router: picks one of three retrieval strategies per request.

- metadata_query        -> neutral (zero-vector) listing aggregated into units/chapters
- level_recommendation  -> one leveled search per fixed category
- everything else       -> single semantic search with equality filters
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from drumtutor.llm import LLMClient
from drumtutor.rag.config import CATEGORIES, RAGConfig
from drumtutor.rag.index import VectorIndex, build_filter
from drumtutor.rag.retriever import (
    CategoryMatches,
    ContentResult,
    CourseMatch,
    MetadataResult,
    MultiCategoryResult,
    RetrievalError,
    RetrievalResult,
    aggregate_structure,
)

from .context_analyzer import UserContext
from .query_analyzer import QueryAnalysis, QueryType

logger = logging.getLogger(__name__)

_CONTENT_TYPES = (
    QueryType.CONTENT_SEARCH,
    QueryType.SPECIFIC_CHAPTER,
    QueryType.GENERAL_QUESTION,
)


def practice_phrase(category: str, level: int) -> str:
    return f"{category} practice exercises level {level}"


class RetrievalRouter:
    """Dispatches a classified question to a retrieval strategy."""

    def __init__(
        self,
        client: LLMClient,
        index: VectorIndex,
        config: Optional[RAGConfig] = None,
    ):
        self.client = client
        self.index = index
        self.config = config or RAGConfig()

    async def route(self, analysis: QueryAnalysis, user_context: UserContext) -> RetrievalResult:
        """Run the strategy matching analysis.query_type; errors propagate as RetrievalError."""
        if analysis.query_type == QueryType.METADATA_QUERY:
            return await self.fetch_structure(analysis)
        if analysis.query_type == QueryType.LEVEL_RECOMMENDATION:
            return await self.fetch_leveled(user_context.target_level)
        if analysis.query_type not in _CONTENT_TYPES:
            logger.warning(
                "No retrieval strategy for query_type=%s; falling back to content search",
                analysis.query_type,
            )
        return await self.fetch_content(analysis)

    async def _embed(self, text: str) -> List[float]:
        try:
            return await self.client.embed(text)
        except Exception as e:
            raise RetrievalError(f"embedding failed: {e}") from e

    async def _query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]],
    ) -> List[CourseMatch]:
        try:
            hits = await self.index.query(vector, top_k, filter)
        except asyncio.TimeoutError as e:
            raise RetrievalError(f"index query on '{self.index.name}' timed out") from e
        except Exception as e:
            raise RetrievalError(f"index query on '{self.index.name}' failed: {e}") from e
        return [CourseMatch.from_index_match(h) for h in hits]

    async def fetch_structure(self, analysis: QueryAnalysis) -> MetadataResult:
        """Metadata strategy: list everything under {category, level} and aggregate."""
        filter = build_filter(category=analysis.category, level=analysis.level)
        neutral = [0.0] * self.config.embedding_dimension
        matches = await self._query(neutral, self.config.metadata_top_k, filter)
        result = aggregate_structure(matches)
        logger.info("Metadata strategy: filter=%s matches=%s units=%s", filter, len(matches), result.total_units)
        return result

    async def _fetch_category(self, category: str, level: int) -> CategoryMatches:
        vector = await self._embed(practice_phrase(category, level))
        filter = build_filter(category=category, level=level)
        matches = await self._query(vector, self.config.category_top_k, filter)
        return CategoryMatches(level=level, matches=matches)

    async def fetch_leveled(self, target_level: int) -> MultiCategoryResult:
        """Multi-category strategy: the same target level for every fixed category."""
        blocks = await asyncio.gather(*(self._fetch_category(c, target_level) for c in CATEGORIES))
        categories = dict(zip(CATEGORIES, blocks))
        logger.info(
            "Multi-category strategy: level=%s matches=%s",
            target_level,
            {c: len(b.matches) for c, b in categories.items()},
        )
        return MultiCategoryResult(target_level=target_level, categories=categories)

    async def fetch_content(self, analysis: QueryAnalysis) -> ContentResult:
        """Single-category strategy: semantic search over the canonical phrase."""
        vector = await self._embed(analysis.search_query)
        filter = build_filter(
            category=analysis.category,
            level=analysis.level,
            unit=analysis.unit,
            chapter=analysis.chapter,
        )
        matches = await self._query(vector, self.config.top_k, filter)
        logger.info("Content strategy: filter=%s matches=%s", filter, len(matches))
        return ContentResult(matches=matches)
