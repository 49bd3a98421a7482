"""
Context builder for grounded answer generation.

Formats a retrieval result into the "Course material" block of the prompt,
one layout per result type, and renders recent turns for continuity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from drumtutor.rag.retriever import (
    ContentResult,
    CourseMatch,
    MetadataResult,
    MultiCategoryResult,
    RetrievalResult,
)

if TYPE_CHECKING:
    from drumtutor.orchestrator.context_analyzer import UserContext
    from drumtutor.orchestrator.memory import Turn

_ROLE_LABELS = {"user": "Student", "assistant": "Tutor"}


def _clip(text: str, max_chars: Optional[int]) -> str:
    text = (text or "").strip()
    if max_chars and len(text) > max_chars:
        return text[:max_chars].rstrip() + "..."
    return text


def format_transcript(turns: List["Turn"], max_chars: Optional[int] = None) -> str:
    """Render turns as "Student: ..." / "Tutor: ..." lines."""
    lines = []
    for t in turns:
        label = _ROLE_LABELS.get(t.role, t.role)
        lines.append(f"{label}: {_clip(t.content, max_chars)}")
    return "\n".join(lines)


def format_profile(user_context: "UserContext") -> str:
    """Render the inferred user context for the prompt."""
    years = user_context.years_experience
    return "\n".join(
        [
            f"- Level: {user_context.level}",
            f"- Experience: {f'{years:g} years' if years is not None else 'unknown'}",
            f"- Goals: {', '.join(user_context.goals) or 'not stated'}",
            f"- Challenges: {', '.join(user_context.challenges) or 'not stated'}",
            f"- Recommended course level: {user_context.target_level}",
        ]
    )


def _source(m: CourseMatch) -> str:
    parts = [m.book or "Unknown book"]
    if m.category:
        parts.append(f"{m.category} Level {m.level}" if m.level else m.category)
    if m.unit:
        parts.append(f"Unit {m.unit}")
    if m.chapter:
        parts.append(f"Chapter {m.chapter}")
    label = " / ".join(parts)
    if m.chapter_title:
        label += f" - {m.chapter_title}"
    return label


def format_passage(i: int, m: CourseMatch, max_chars: Optional[int] = None) -> str:
    """One passage with source attribution and similarity percentage."""
    return f"[{i}] {_source(m)} (similarity {m.score * 100:.0f}%)\n{_clip(m.text, max_chars)}"


def format_metadata(result: MetadataResult) -> str:
    if result.is_empty:
        return "No units were found for this part of the course."
    lines = [f"Total units: {result.total_units}"]
    for unit in result.units:
        chapters = result.chapters.get(unit, [])
        lines.append(f"Unit {unit} ({len(chapters)} chapters)")
        for chapter, title in chapters:
            lines.append(f"  - Chapter {chapter}: {title}" if title else f"  - Chapter {chapter}")
    return "\n".join(lines)


def format_content(result: ContentResult, max_passages: int = 5, max_chars: Optional[int] = None) -> str:
    if result.is_empty:
        return "No relevant passages were found."
    return "\n\n".join(
        format_passage(i, m, max_chars) for i, m in enumerate(result.matches[:max_passages], 1)
    )


def format_multi_category(result: MultiCategoryResult, max_chars: Optional[int] = None) -> str:
    sections = []
    for category, block in result.categories.items():
        header = f"### {category} (Level {block.level})"
        if not block.matches:
            sections.append(f"{header}\nNo material found for this category at this level.")
            continue
        body = "\n\n".join(format_passage(i, m, max_chars) for i, m in enumerate(block.matches, 1))
        sections.append(f"{header}\n{body}")
    return "\n\n".join(sections)


def build_context(
    result: RetrievalResult,
    max_passages: int = 5,
    max_chars: Optional[int] = None,
) -> str:
    """
    Format any retrieval result into the grounding block.

    Args:
        result: One of MetadataResult, ContentResult, MultiCategoryResult.
        max_passages: Cap on passages for content results.
        max_chars: Per-passage character cap.

    Returns:
        Plain text block for the prompt's "Course material" section.
    """
    if isinstance(result, MetadataResult):
        return format_metadata(result)
    if isinstance(result, ContentResult):
        return format_content(result, max_passages=max_passages, max_chars=max_chars)
    if isinstance(result, MultiCategoryResult):
        return format_multi_category(result, max_chars=max_chars)
    raise TypeError(f"unsupported retrieval result: {type(result).__name__}")
