"""
Query classifier: intent label plus structured retrieval parameters.

The completion model labels the question with one of a closed set of query
types and extracts category / level / unit / chapter / keywords and a
canonical search phrase. Output that does not parse into QueryAnalysis is a
fatal error for the request.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from drumtutor.generation.context_builder import format_transcript
from drumtutor.llm import LLMClient
from drumtutor.rag.config import ALL_CATEGORIES, CATEGORIES

from .memory import Turn

logger = logging.getLogger(__name__)

CLASSIFIER_HISTORY_ENTRIES = 6


class QueryType(str, Enum):
    METADATA_QUERY = "metadata_query"
    CONTENT_SEARCH = "content_search"
    SPECIFIC_CHAPTER = "specific_chapter"
    LEVEL_RECOMMENDATION = "level_recommendation"
    GENERAL_QUESTION = "general_question"


class QueryAnalysis(BaseModel):
    """Structured reading of one student question."""

    query_type: QueryType
    category: Optional[Literal["Technique", "Reading", "Performance", "all"]] = None
    level: Optional[int] = Field(default=None, ge=1, le=4)
    unit: Optional[str] = None
    chapter: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    search_query: str = ""
    reasoning: str = ""

    @model_validator(mode="before")
    @classmethod
    def _recommendation_category_before(cls, data):
        # Runs ahead of the category check so a stray extracted category cannot fail parsing
        if isinstance(data, dict):
            query_type = data.get("query_type")
            if isinstance(query_type, QueryType):
                query_type = query_type.value
            if query_type == QueryType.LEVEL_RECOMMENDATION.value:
                data = {**data, "category": ALL_CATEGORIES}
        return data

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() in ("none", "null"):
            return None
        if text.lower() == ALL_CATEGORIES:
            return ALL_CATEGORIES
        for name in CATEGORIES:
            if text.lower() == name.lower():
                return name
        return text

    @field_validator("unit", "chapter", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        return text or None

    @field_validator("keywords", mode="before")
    @classmethod
    def _clean_keywords(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        out: List[str] = []
        for item in value:
            text = str(item).strip()
            if text and text not in out:
                out.append(text)
        return out

    @model_validator(mode="after")
    def _recommendation_spans_all_categories(self) -> "QueryAnalysis":
        if self.query_type == QueryType.LEVEL_RECOMMENDATION:
            self.category = ALL_CATEGORIES
        return self


CLASSIFIER_PROMPT = """You classify questions sent to a drum-course tutor.

The course is organised into three categories (Technique, Reading, Performance).
Each category has levels 1-4; each level is split into units, and each unit into chapters.

Choose exactly one query_type:
- "metadata_query": structural questions about the course itself (how many units, list of chapters, table of contents).
- "content_search": how-to or conceptual questions answered by course content.
- "specific_chapter": the question names a concrete unit and/or chapter.
- "level_recommendation": the student asks what they should practise or study given their ability or experience.
- "general_question": anything else related to drumming.

Extract when present:
- category: "Technique", "Reading" or "Performance" (null if not stated or implied)
- level: integer 1-4
- unit, chapter: as written (e.g. "3")
- keywords: the important terms of the question
- search_query: a short canonical English phrase for semantic search
- reasoning: one sentence explaining the label

Examples:
Q: How many units does Technique Level 1 have?
{"query_type": "metadata_query", "category": "Technique", "level": 1, "unit": null, "chapter": null, "keywords": ["units", "technique", "level 1"], "search_query": "Technique level 1 units", "reasoning": "Asks for a count of units."}
Q: How do I play a paradiddle evenly?
{"query_type": "content_search", "category": "Technique", "level": null, "unit": null, "chapter": null, "keywords": ["paradiddle", "even"], "search_query": "playing paradiddle evenly", "reasoning": "How-to question about a sticking."}
Q: What is covered in Reading level 2 unit 3 chapter 1?
{"query_type": "specific_chapter", "category": "Reading", "level": 2, "unit": "3", "chapter": "1", "keywords": ["reading", "unit 3", "chapter 1"], "search_query": "Reading level 2 unit 3 chapter 1", "reasoning": "Names a concrete chapter."}
Q: I've been drumming two years, what should I practice?
{"query_type": "level_recommendation", "category": "all", "level": null, "unit": null, "chapter": null, "keywords": ["practice", "two years"], "search_query": "practice plan for intermediate drummer", "reasoning": "Asks what to study given experience."}
Q: Which drum brand is best?
{"query_type": "general_question", "category": null, "level": null, "unit": null, "chapter": null, "keywords": ["drum brand"], "search_query": "choosing a drum kit", "reasoning": "General drumming question."}

Use the recent conversation only to resolve references such as "that chapter" or "the next unit".
Respond with a single JSON object with exactly these keys and nothing else."""


class QueryClassifier:
    """Labels a question and extracts retrieval parameters via the completion model."""

    def __init__(self, client: LLMClient, history_entries: int = CLASSIFIER_HISTORY_ENTRIES):
        self.client = client
        self.history_entries = history_entries

    def build_messages(self, question: str, transcript: List[Turn]) -> List[dict]:
        recent = transcript[-self.history_entries :] if self.history_entries else []
        parts = []
        history = format_transcript(recent)
        if history:
            parts.append("Recent conversation:")
            parts.append(history)
            parts.append("")
        parts.append(f"Q: {question.strip()}")
        return [
            {"role": "system", "content": CLASSIFIER_PROMPT},
            {"role": "user", "content": "\n".join(parts)},
        ]

    async def classify(self, question: str, transcript: Optional[List[Turn]] = None) -> QueryAnalysis:
        """Classify question; raises StructuredOutputError on malformed output."""
        messages = self.build_messages(question, transcript or [])
        analysis = await self.client.complete_json(messages, QueryAnalysis)
        if not analysis.search_query.strip():
            analysis.search_query = question.strip()
        logger.info(
            "Classified query as %s (category=%s, level=%s, unit=%s, chapter=%s)",
            analysis.query_type.value,
            analysis.category,
            analysis.level,
            analysis.unit,
            analysis.chapter,
        )
        return analysis
