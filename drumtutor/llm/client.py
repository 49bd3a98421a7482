"""
LLM client for OpenAI-compatible APIs (OpenAI, Azure-style gateways, local servers).

Provides chat completion (free text or JSON mode) and text embeddings.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Type, TypeVar

from dotenv import load_dotenv
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


LLM_BASE_URL = os.getenv("LLM_BASE_URL")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S)


class LLMError(RuntimeError):
    """Completion or embedding call failed (transport error, timeout, empty reply)."""


class StructuredOutputError(LLMError):
    """Model output could not be parsed into the requested schema."""


def parse_json_payload(raw: str, schema: Type[ModelT]) -> ModelT:
    """
    Parse a JSON object from model output and validate it against schema.

    Tolerates a surrounding Markdown code fence; anything else that is not a
    single JSON object raises StructuredOutputError.
    """
    text = (raw or "").strip()
    m = _FENCE_PATTERN.match(text)
    if m:
        text = m.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StructuredOutputError(f"{schema.__name__}: response is not valid JSON ({e})") from e
    if not isinstance(data, dict):
        raise StructuredOutputError(f"{schema.__name__}: expected a JSON object, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise StructuredOutputError(f"{schema.__name__}: response does not match schema ({e})") from e


class LLMClient:
    """Async OpenAI-compatible client for chat completions and embeddings."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        embedding_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY") or os.getenv("LLM_API_KEY")
        if not api_key:
            raise ValueError("API key required. Set OPENAI_API_KEY (or LLM_API_KEY for a compatible gateway).")
        self.model_name = model_name or LLM_MODEL
        self.embedding_model = embedding_model or EMBEDDING_MODEL
        self.base_url = base_url or LLM_BASE_URL
        self.timeout = timeout if timeout is not None else LLM_TIMEOUT
        self.client = AsyncOpenAI(api_key=api_key, base_url=self.base_url)

    async def complete(
        self,
        messages: List[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> str:
        """Run one chat completion and return the message text."""
        create_kw: dict = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            create_kw["response_format"] = {"type": "json_object"}
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(**create_kw),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"Completion timed out after {self.timeout}s") from e
        except Exception as e:
            raise LLMError(f"Completion request failed: {e}") from e

        if not response.choices:
            raise LLMError("Empty response from completion API")
        content = response.choices[0].message.content or ""
        if not content.strip():
            logger.warning(
                "Empty content in completion (finish_reason=%s)",
                getattr(response.choices[0], "finish_reason", "?"),
            )
            raise LLMError("Completion returned no content")
        return content.strip()

    async def complete_json(
        self,
        messages: List[dict],
        schema: Type[ModelT],
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> ModelT:
        """Run a JSON-mode completion and validate the reply against schema."""
        raw = await self.complete(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=True,
        )
        return parse_json_payload(raw, schema)

    async def embed(self, text: str) -> List[float]:
        """Embed a single text and return its vector."""
        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(model=self.embedding_model, input=text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"Embedding timed out after {self.timeout}s") from e
        except Exception as e:
            raise LLMError(f"Embedding request failed: {e}") from e
        if not response.data:
            raise LLMError("Empty response from embeddings API")
        return list(response.data[0].embedding)


def create_client(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> LLMClient:
    """Create an OpenAI-compatible client from arguments or environment."""
    return LLMClient(
        model_name=model_name,
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
    )
