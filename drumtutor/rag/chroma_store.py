"""
ChromaDB-backed vector index.

Uses the chromadb client directly with caller-supplied embeddings; the
collection is expected to exist already (built by the ingestion job) with
cosine distance and string-valued metadata.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import chromadb

from .index import IndexMatch

logger = logging.getLogger(__name__)


def to_where(filter: Optional[Dict[str, str]]) -> Optional[Dict[str, Any]]:
    """Translate an equality map into a Chroma where clause."""
    if not filter:
        return None
    if len(filter) == 1:
        return dict(filter)
    return {"$and": [{key: value} for key, value in filter.items()]}


def _merge_document(meta: Optional[dict], doc: Optional[str]) -> dict:
    out = dict(meta or {})
    if doc and "text" not in out:
        out["text"] = doc
    return out


class ChromaIndex:
    """Query-only adapter over a Chroma collection."""

    def __init__(self, collection, name: str, timeout: float = 30.0):
        self.collection = collection
        self.name = name
        self.timeout = timeout

    @classmethod
    def connect(
        cls,
        name: str,
        path: Optional[str] = None,
        host: Optional[str] = None,
        port: int = 8000,
        timeout: float = 30.0,
    ) -> "ChromaIndex":
        """Open an existing collection from a Chroma server or a local persist dir."""
        if host:
            client = chromadb.HttpClient(host=host, port=port)
        else:
            client = chromadb.PersistentClient(path=path or "data/chroma")
        collection = client.get_collection(name)
        logger.info("Chroma collection '%s' loaded: %s records", name, collection.count())
        return cls(collection, name=name, timeout=timeout)

    def count(self) -> int:
        return self.collection.count()

    def _query_sync(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]],
    ) -> List[IndexMatch]:
        where = to_where(filter)
        if not any(vector):
            # Neutral query: Chroma cannot rank against a zero vector, so list by filter
            got = self.collection.get(
                where=where,
                limit=top_k,
                include=["documents", "metadatas"],
            )
            ids = got.get("ids") or []
            metas = got.get("metadatas") or [None] * len(ids)
            docs = got.get("documents") or [None] * len(ids)
            return [
                IndexMatch(id=i, score=0.0, metadata=_merge_document(m, d))
                for i, m, d in zip(ids, metas, docs)
            ]

        result = self.collection.query(
            query_embeddings=[vector],
            n_results=top_k,
            where=where,
            include=["documents", "metadatas", "distances"],
        )
        # result["ids"] = [[id1, id2, ...]], one inner list per query embedding
        ids = result["ids"][0] if result.get("ids") else []
        metas = result["metadatas"][0] if result.get("metadatas") else [None] * len(ids)
        docs = result["documents"][0] if result.get("documents") else [None] * len(ids)
        dists = result["distances"][0] if result.get("distances") else [1.0] * len(ids)
        matches: List[IndexMatch] = []
        for i, m, d, dist in zip(ids, metas, docs, dists):
            score = max(0.0, min(1.0, 1.0 - float(dist)))
            matches.append(IndexMatch(id=i, score=score, metadata=_merge_document(m, d)))
        return matches

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]] = None,
    ) -> List[IndexMatch]:
        return await asyncio.wait_for(
            asyncio.to_thread(self._query_sync, vector, top_k, filter),
            timeout=self.timeout,
        )
