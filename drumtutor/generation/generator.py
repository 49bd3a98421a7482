"""
Answer generator: grounding context + prompt template -> LLM -> Markdown answer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from drumtutor.llm import LLMClient
from drumtutor.rag.retriever import MultiCategoryResult, RetrievalResult

from .config import GenerationConfig
from .context_builder import build_context, format_profile, format_transcript
from .prompts import ANSWER_PROMPT, NO_MATERIAL_ANSWER, PRACTICE_PLAN_PROMPT, SYSTEM_PROMPT

if TYPE_CHECKING:
    from drumtutor.orchestrator.context_analyzer import UserContext
    from drumtutor.orchestrator.memory import Turn

logger = logging.getLogger(__name__)


class AnswerGenerator:
    """Produce the final answer from a retrieval result and the user's context."""

    def __init__(self, client: LLMClient, config: Optional[GenerationConfig] = None):
        self.client = client
        self.config = config or GenerationConfig()

    def build_prompt(
        self,
        question: str,
        result: RetrievalResult,
        user_context: "UserContext",
        transcript: List["Turn"],
    ) -> str:
        """Fill the template for the result type; practice-plan template only for multi-category."""
        config = self.config
        context = build_context(
            result,
            max_passages=config.max_passages,
            max_chars=config.passage_chars,
        )
        recent = transcript[-config.history_entries :] if config.history_entries else []
        history = format_transcript(recent, max_chars=config.history_chars) or "(none)"
        profile = format_profile(user_context)
        if isinstance(result, MultiCategoryResult):
            return PRACTICE_PLAN_PROMPT.format(
                profile=profile,
                target_level=result.target_level,
                context=context,
                history=history,
                question=question.strip(),
            )
        return ANSWER_PROMPT.format(
            profile=profile,
            context=context,
            history=history,
            question=question.strip(),
        )

    async def generate(
        self,
        question: str,
        result: RetrievalResult,
        user_context: "UserContext",
        transcript: Optional[List["Turn"]] = None,
    ) -> str:
        """Return the Markdown answer. Empty retrievals never reach the model."""
        if result.is_empty:
            logger.info("Empty %s retrieval; answering without the model", type(result).__name__)
            return NO_MATERIAL_ANSWER
        prompt = self.build_prompt(question, result, user_context, transcript or [])
        return await self.client.complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
