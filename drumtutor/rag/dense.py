"""
In-memory dense index over a pre-built export, using numpy cosine similarity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .index import IndexMatch, IndexRecord, load_index_export, matches_filter

logger = logging.getLogger(__name__)


@dataclass
class InMemoryIndex:
    """Dense retrieval over vectors held in memory."""

    name: str
    embeddings: np.ndarray  # shape: (n_records, dim), rows L2-normalised
    records: List[IndexRecord]

    @classmethod
    def from_records(cls, records: List[IndexRecord], name: str = "memory") -> "InMemoryIndex":
        """Build the index from export records."""
        if records:
            emb = np.asarray([r.values for r in records], dtype=np.float32)
            norms = np.linalg.norm(emb, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            emb = emb / norms
        else:
            emb = np.zeros((0, 0), dtype=np.float32)
        return cls(name=name, embeddings=emb, records=records)

    @classmethod
    def from_export(cls, path: Path, name: str = "memory") -> "InMemoryIndex":
        """Load a JSONL export written by the index build job."""
        records = load_index_export(path)
        logger.info("Loaded %s records from %s", len(records), path)
        return cls.from_records(records, name=name)

    def search(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]] = None,
    ) -> List[IndexMatch]:
        """Top-k records by cosine similarity among those passing the filter."""
        candidates = [i for i, r in enumerate(self.records) if matches_filter(r.metadata, filter)]
        if not candidates:
            return []
        q = np.asarray(vector, dtype=np.float32)
        q_norm = float(np.linalg.norm(q))
        if q_norm == 0.0:
            # Neutral query: no ranking signal, keep stored order
            chosen = candidates[:top_k]
            return [IndexMatch(id=self.records[i].id, score=0.0, metadata=dict(self.records[i].metadata)) for i in chosen]
        sims = np.dot(self.embeddings[candidates], q / q_norm)
        order = np.argsort(-sims, kind="stable")[:top_k]
        results: List[IndexMatch] = []
        for pos in order:
            rec = self.records[candidates[int(pos)]]
            score = max(0.0, min(1.0, float(sims[pos])))
            results.append(IndexMatch(id=rec.id, score=score, metadata=dict(rec.metadata)))
        return results

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]] = None,
    ) -> List[IndexMatch]:
        return self.search(vector, top_k, filter)
