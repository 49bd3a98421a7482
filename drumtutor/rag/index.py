"""
Vector index interface and course-record helpers.

The index is pre-built elsewhere; this package only queries it. Filters are
equality maps over the indexed metadata fields (category, level, unit,
chapter) and every filter value is a string.
"""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

FILTER_FIELDS = ("category", "level", "unit", "chapter")


@dataclasses.dataclass
class IndexMatch:
    """A nearest-neighbour hit as returned by the index."""

    id: str
    score: float
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class IndexRecord:
    """One row of a pre-built index export: id, vector, metadata."""

    id: str
    values: List[float]
    metadata: Dict[str, Any]


class VectorIndex(Protocol):
    """Protocol for vector index backends."""

    name: str

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, str]] = None,
    ) -> List[IndexMatch]:
        """
        Return up to top_k matches ordered by descending similarity.

        Args:
            vector: Query embedding. An all-zero vector asks for a neutral,
                    metadata-only listing.
            top_k: Maximum number of matches.
            filter: Equality filter over metadata fields (string values).
        """
        ...


def canonical_value(value: Any) -> str:
    """Canonical string form for filter and metadata values (1 -> "1", 1.0 -> "1")."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def build_filter(**fields: Any) -> Optional[Dict[str, str]]:
    """
    Build an equality filter from the non-empty fields.

    The "all" category sentinel is dropped since it means no restriction.
    """
    out: Dict[str, str] = {}
    for key, value in fields.items():
        if value is None:
            continue
        text = canonical_value(value)
        if not text:
            continue
        if key == "category" and text.lower() == "all":
            continue
        out[key] = text
    return out or None


def matches_filter(metadata: Dict[str, Any], filter: Optional[Dict[str, str]]) -> bool:
    """True if every filter field equals the record's canonical metadata value."""
    if not filter:
        return True
    for key, expected in filter.items():
        if key not in metadata or canonical_value(metadata[key]) != expected:
            return False
    return True


def load_index_export(path: Path) -> List[IndexRecord]:
    """Load a pre-built index export (JSONL of {id, values, metadata})."""
    if not path.exists():
        raise FileNotFoundError(f"index export not found at {path}")

    records: List[IndexRecord] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            records.append(
                IndexRecord(
                    id=str(obj["id"]),
                    values=[float(v) for v in obj["values"]],
                    metadata=dict(obj.get("metadata", {})),
                )
            )
    return records
