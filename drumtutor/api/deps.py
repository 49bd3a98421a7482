"""
Build the tutor agent and its collaborators for the API (used in lifespan).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from drumtutor.generation import AnswerGenerator
from drumtutor.llm import LLMClient, create_client
from drumtutor.orchestrator import (
    ContextAnalyzer,
    ConversationStore,
    QueryClassifier,
    RetrievalRouter,
    TutorAgent,
)
from drumtutor.rag import ChromaIndex, InMemoryIndex, RAGConfig, VectorIndex

logger = logging.getLogger(__name__)


def open_index(config: RAGConfig) -> VectorIndex:
    """Open the configured pre-built index (chroma or a JSONL export held in memory)."""
    if config.backend == "memory":
        return InMemoryIndex.from_export(Path(config.export_path), name=config.index_name)
    if config.backend == "chroma":
        return ChromaIndex.connect(
            config.index_name,
            path=config.chroma_path,
            host=config.chroma_host,
            port=config.chroma_port,
            timeout=config.timeout,
        )
    raise ValueError(f"unknown VECTOR_BACKEND: {config.backend!r}")


def build_agent(
    store: ConversationStore,
    client: LLMClient,
    index: VectorIndex,
    config: Optional[RAGConfig] = None,
) -> TutorAgent:
    """Wire analyzers, router and generator around one client and index."""
    return TutorAgent(
        store=store,
        context_analyzer=ContextAnalyzer(client),
        classifier=QueryClassifier(client),
        router=RetrievalRouter(client, index, config),
        generator=AnswerGenerator(client),
    )


def build_services(
    store: ConversationStore,
    config: Optional[RAGConfig] = None,
) -> Tuple[Optional[TutorAgent], Optional[LLMClient]]:
    """
    Create client, index and agent from the environment.

    Returns (agent, client); either is None when its dependency is not
    configured, so routes can answer with an error reply instead of crashing.
    """
    config = config or RAGConfig()
    try:
        client = create_client()
    except ValueError as e:
        logger.warning("LLM client not configured: %s", e)
        return None, None
    try:
        index = open_index(config)
    except Exception as e:
        logger.warning("Vector index '%s' unavailable (%s backend): %s", config.index_name, config.backend, e)
        return None, client
    return build_agent(store, client, index, config), client
