"""
Retrieval result types.

Exactly one of MetadataResult, ContentResult or MultiCategoryResult is
produced per request; the answer generator picks its template by type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

from .index import IndexMatch, canonical_value


class RetrievalError(RuntimeError):
    """Embedding or index query failed during retrieval."""


@dataclass
class CourseMatch:
    """A scored passage from the course index."""

    id: str
    book: str
    category: str
    level: str
    unit: str
    chapter: str
    chapter_title: str
    text: str
    score: float

    @classmethod
    def from_index_match(cls, match: IndexMatch) -> "CourseMatch":
        meta = match.metadata

        def _get(key: str) -> str:
            value = meta.get(key)
            return canonical_value(value) if value is not None else ""

        return cls(
            id=match.id,
            book=_get("book"),
            category=_get("category"),
            level=_get("level"),
            unit=_get("unit"),
            chapter=_get("chapter"),
            chapter_title=_get("chapter_title"),
            text=str(meta.get("text") or ""),
            score=match.score,
        )


@dataclass
class MetadataResult:
    """Structural listing: units and their chapters."""

    total_units: int
    units: List[str]
    chapters: Dict[str, List[Tuple[str, str]]]

    @property
    def is_empty(self) -> bool:
        return self.total_units == 0


@dataclass
class ContentResult:
    """Passages for a single semantic search."""

    matches: List[CourseMatch] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.matches


@dataclass
class CategoryMatches:
    """Passages for one category at the target level."""

    level: int
    matches: List[CourseMatch] = field(default_factory=list)


@dataclass
class MultiCategoryResult:
    """Per-category passages for a leveled practice recommendation."""

    target_level: int
    categories: Dict[str, CategoryMatches]

    @property
    def is_empty(self) -> bool:
        return all(not c.matches for c in self.categories.values())


RetrievalResult = Union[MetadataResult, ContentResult, MultiCategoryResult]


_NUMBER = re.compile(r"\d+")


def numeric_key(value: str) -> Tuple[int, int, str]:
    """Sort key ordering "2" before "10"; non-numeric values sort last."""
    m = _NUMBER.search(value)
    if m:
        return (0, int(m.group()), value)
    return (1, 0, value)


def _identity(value: str) -> str:
    """Identity of a unit/chapter label: "01", "1" and "1.0" are the same number."""
    try:
        number = float(value)
    except ValueError:
        return value.strip().lower()
    if number.is_integer():
        return str(int(number))
    return str(number)


def aggregate_structure(matches: List[CourseMatch]) -> MetadataResult:
    """
    Collapse matches into units -> chapters.

    Units and chapters are de-duplicated by number and sorted ascending;
    the first label and the first title seen win.
    """
    labels: Dict[str, str] = {}
    by_unit: Dict[str, Dict[str, Tuple[str, str]]] = {}
    for m in matches:
        if not m.unit:
            continue
        key = _identity(m.unit)
        labels.setdefault(key, m.unit)
        chapters = by_unit.setdefault(key, {})
        if m.chapter:
            chapters.setdefault(_identity(m.chapter), (m.chapter, m.chapter_title))
    keys = sorted(by_unit, key=lambda k: numeric_key(labels[k]))
    units = [labels[k] for k in keys]
    structure = {
        labels[k]: sorted(by_unit[k].values(), key=lambda ch: numeric_key(ch[0]))
        for k in keys
    }
    return MetadataResult(total_units=len(units), units=units, chapters=structure)
