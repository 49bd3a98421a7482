"""
FastAPI application for the drum tutor API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from drumtutor import __version__
from drumtutor.orchestrator import ConversationStore
from drumtutor.rag import RAGConfig

from .deps import build_services
from .routes import chat_validation_handler, router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the index and build the agent on startup; drop sessions on shutdown."""
    config = RAGConfig()
    store = ConversationStore()
    agent, client = build_services(store, config)
    app.state.store = store
    app.state.agent = agent
    app.state.client = client
    app.state.index_name = config.index_name
    yield
    app.state.agent = None
    app.state.client = None


app = FastAPI(
    title="Drum Tutor API",
    description="Conversational RAG over drum-instruction course material",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(router)
app.add_exception_handler(RequestValidationError, chat_validation_handler)
