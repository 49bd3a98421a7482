"""
LLM client module for OpenAI-compatible completion and embedding APIs.
"""

from .client import LLMClient, LLMError, StructuredOutputError, create_client, parse_json_payload

__all__ = ["LLMClient", "LLMError", "StructuredOutputError", "create_client", "parse_json_payload"]
