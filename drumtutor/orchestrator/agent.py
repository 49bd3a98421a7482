"""
Tutor agent: context inference, classification, routed retrieval, answer generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from drumtutor.generation import AnswerGenerator

from .context_analyzer import ContextAnalyzer
from .memory import ConversationStore
from .query_analyzer import QueryClassifier
from .router import RetrievalRouter

logger = logging.getLogger(__name__)


@dataclass
class AgentResponse:
    """Response from the tutor agent."""

    answer: str
    session_id: str
    conversation_count: int


class PipelineError(RuntimeError):
    """A pipeline step failed; nothing was written to the conversation store."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause


class TutorAgent:
    """Runs one question through the pipeline and records the exchange."""

    def __init__(
        self,
        store: ConversationStore,
        context_analyzer: ContextAnalyzer,
        classifier: QueryClassifier,
        router: RetrievalRouter,
        generator: AnswerGenerator,
    ):
        self.store = store
        self.context_analyzer = context_analyzer
        self.classifier = classifier
        self.router = router
        self.generator = generator

    async def handle(self, session_id: str, question: str) -> AgentResponse:
        """
        Answer question within session_id.

        The user and assistant turns are appended only after every step
        succeeded; any failure raises PipelineError with the step name.
        """
        transcript = self.store.get(session_id)

        step = "context_analysis"
        try:
            user_context = await self.context_analyzer.analyze(question, transcript)
            step = "classification"
            analysis = await self.classifier.classify(question, transcript)
            step = "retrieval"
            result = await self.router.route(analysis, user_context)
            step = "generation"
            answer = await self.generator.generate(question, result, user_context, transcript)
        except Exception as e:
            logger.error("Session %s: %s step failed: %s", session_id, step, e)
            raise PipelineError(step, e) from e

        count = self.store.append_exchange(session_id, question, answer)
        logger.info(
            "Session %s: answered %s via %s (%s exchanges)",
            session_id,
            analysis.query_type.value,
            type(result).__name__,
            count,
        )
        return AgentResponse(answer=answer, session_id=session_id, conversation_count=count)
