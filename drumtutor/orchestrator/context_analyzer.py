"""
Infers the student's skill level, goals and a suitable course level.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from drumtutor.generation.context_builder import format_transcript
from drumtutor.llm import LLMClient

from .memory import Turn

logger = logging.getLogger(__name__)

CONTEXT_HISTORY_ENTRIES = 4

LEVEL_TO_BOOK = {"beginner": 1, "intermediate": 2, "advanced": 3}


class UserContext(BaseModel):
    """What we can tell about the asker from the question and recent turns."""

    level: Literal["beginner", "intermediate", "advanced"]
    years_experience: Optional[float] = Field(default=None, ge=0)
    goals: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)
    suitable_book_level: Optional[int] = Field(default=None, ge=1, le=4)

    @field_validator("level", mode="before")
    @classmethod
    def _lower_level(cls, value):
        return str(value).strip().lower() if value is not None else value

    @field_validator("goals", "challenges", mode="before")
    @classmethod
    def _string_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(v).strip() for v in value if str(v).strip()]

    @property
    def target_level(self) -> int:
        """Course level to study: the explicit recommendation, else derived from skill level."""
        if self.suitable_book_level is not None:
            return self.suitable_book_level
        return LEVEL_TO_BOOK[self.level]


CONTEXT_PROMPT = """You assess drum students from what they write.

Course levels run from 1 (first steps) to 4 (advanced). Infer from the question and the recent conversation:
- level: "beginner", "intermediate" or "advanced" (default "beginner" when nothing is said)
- years_experience: number of years played, or null if unknown
- goals: what the student wants to achieve (may be empty)
- challenges: difficulties the student mentions (may be empty)
- suitable_book_level: integer 1-4 for the course level that fits best, or null if you cannot tell

Respond with a single JSON object with exactly these keys and nothing else:
{"level": "...", "years_experience": null, "goals": [], "challenges": [], "suitable_book_level": null}"""


class ContextAnalyzer:
    """Infers a UserContext per request via the completion model."""

    def __init__(self, client: LLMClient, history_entries: int = CONTEXT_HISTORY_ENTRIES):
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
        parts.append("Current question:")
        parts.append(question.strip())
        return [
            {"role": "system", "content": CONTEXT_PROMPT},
            {"role": "user", "content": "\n".join(parts)},
        ]

    async def analyze(self, question: str, transcript: Optional[List[Turn]] = None) -> UserContext:
        """Infer the asker's context; raises StructuredOutputError on malformed output."""
        messages = self.build_messages(question, transcript or [])
        context = await self.client.complete_json(messages, UserContext)
        logger.info(
            "Inferred user level=%s years=%s book_level=%s",
            context.level,
            context.years_experience,
            context.suitable_book_level,
        )
        return context
