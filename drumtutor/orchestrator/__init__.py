"""
Orchestrator: user-context inference, query classification, retrieval routing,
conversation memory, and the per-request answer flow.
"""

from .memory import ConversationStore, Turn
from .context_analyzer import ContextAnalyzer, UserContext
from .query_analyzer import QueryAnalysis, QueryClassifier, QueryType
from .router import RetrievalRouter
from .agent import AgentResponse, PipelineError, TutorAgent

__all__ = [
    "AgentResponse",
    "ContextAnalyzer",
    "ConversationStore",
    "PipelineError",
    "QueryAnalysis",
    "QueryClassifier",
    "QueryType",
    "RetrievalRouter",
    "TutorAgent",
    "Turn",
    "UserContext",
]
