"""
Answer generation module.

- Grounding context from retrieval results (one layout per result type)
- Prompt templates (grounded answer, leveled practice plan)
- Answer generation through the completion model
"""

from .config import GenerationConfig
from .context_builder import build_context, format_profile, format_transcript
from .generator import AnswerGenerator
from .prompts import ANSWER_PROMPT, NO_MATERIAL_ANSWER, PRACTICE_PLAN_PROMPT, PRACTICE_SECTIONS, SYSTEM_PROMPT

__all__ = [
    "build_context",
    "format_profile",
    "format_transcript",
    "GenerationConfig",
    "ANSWER_PROMPT",
    "NO_MATERIAL_ANSWER",
    "PRACTICE_PLAN_PROMPT",
    "PRACTICE_SECTIONS",
    "SYSTEM_PROMPT",
    "AnswerGenerator",
]
