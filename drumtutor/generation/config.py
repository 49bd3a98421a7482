"""Configuration for answer generation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """Settings for grounded answer generation."""

    max_tokens: int = 1500
    temperature: float = 0.3
    max_passages: int = 5
    passage_chars: int = 800
    history_entries: int = 4
    history_chars: int = 200
