"""
Tests for orchestrator: conversation store, context analyzer, query classifier, tutor agent.
"""

from __future__ import annotations

import json
import threading
from typing import List

import pytest

from drumtutor.generation import NO_MATERIAL_ANSWER, PRACTICE_SECTIONS, AnswerGenerator
from drumtutor.llm import StructuredOutputError, parse_json_payload
from drumtutor.rag import IndexRecord, InMemoryIndex, RAGConfig

from drumtutor.orchestrator import (
    AgentResponse,
    ContextAnalyzer,
    ConversationStore,
    PipelineError,
    QueryAnalysis,
    QueryClassifier,
    QueryType,
    RetrievalRouter,
    TutorAgent,
    Turn,
    UserContext,
)


class _StubClient:
    """Completion/embedding stand-in returning canned replies."""

    def __init__(self, json_replies: List[str] | None = None, text: str = "Stub answer."):
        self.json_replies = list(json_replies or [])
        self.text = text
        self.completions: List[List[dict]] = []
        self.embedded: List[str] = []

    async def complete(self, messages, **_kwargs) -> str:
        self.completions.append(messages)
        return self.text

    async def complete_json(self, messages, schema, **_kwargs):
        self.completions.append(messages)
        return parse_json_payload(self.json_replies.pop(0), schema)

    async def embed(self, text: str) -> List[float]:
        self.embedded.append(text)
        return [1.0, 0.0, 0.0]


class _RecordingIndex:
    """Wraps an index and records every query's filter and top_k."""

    def __init__(self, inner: InMemoryIndex):
        self.inner = inner
        self.name = inner.name
        self.queries: List[dict] = []

    async def query(self, vector, top_k, filter=None):
        self.queries.append({"vector": list(vector), "top_k": top_k, "filter": filter})
        return await self.inner.query(vector, top_k, filter)


def _record(rid: str, category: str, level, unit, chapter, title: str) -> IndexRecord:
    return IndexRecord(
        id=rid,
        values=[1.0, 0.1, 0.0],
        metadata={
            "book": f"{category} Book {level}",
            "category": category,
            "level": level,
            "unit": unit,
            "chapter": chapter,
            "chapter_title": title,
            "text": f"{title} exercise text.",
        },
    )


@pytest.fixture
def course_index() -> _RecordingIndex:
    records = [
        _record("t1", "Technique", "1", "1", "1", "Grip"),
        _record("t2", "Technique", "1", "1", "2", "Stroke types"),
        _record("t3", "Technique", 1, "2", "1", "Single strokes"),
        _record("t4", "Technique", "2", "1", "1", "Paradiddles"),
        _record("r1", "Reading", "2", "1", "1", "Eighth notes"),
        _record("p1", "Performance", "2", "1", "1", "Playing with a band"),
    ]
    return _RecordingIndex(InMemoryIndex.from_records(records, name="test-index"))


def _context_json(**overrides) -> str:
    payload = {
        "level": "beginner",
        "years_experience": None,
        "goals": [],
        "challenges": [],
        "suitable_book_level": None,
    }
    payload.update(overrides)
    return json.dumps(payload)


def _analysis_json(**overrides) -> str:
    payload = {
        "query_type": "content_search",
        "category": None,
        "level": None,
        "unit": None,
        "chapter": None,
        "keywords": [],
        "search_query": "grip",
        "reasoning": "test",
    }
    payload.update(overrides)
    return json.dumps(payload)


def _agent(store, context_reply, analysis_reply, index, answer="Stub answer.") -> tuple[TutorAgent, _StubClient]:
    gen_client = _StubClient(text=answer)
    agent = TutorAgent(
        store=store,
        context_analyzer=ContextAnalyzer(_StubClient([context_reply])),
        classifier=QueryClassifier(_StubClient([analysis_reply])),
        router=RetrievalRouter(_StubClient(), index, RAGConfig(embedding_dimension=3)),
        generator=AnswerGenerator(gen_client),
    )
    return agent, gen_client


# --- Conversation store ---


def test_store_get_creates_empty_transcript():
    store = ConversationStore(max_pairs=3)
    assert store.get("new") == []
    assert "new" in store
    assert store.active_sessions() == 1


def test_store_append_keeps_order_and_roles():
    store = ConversationStore(max_pairs=3)
    store.append("s", "user", "Q1")
    store.append("s", "assistant", "A1")
    turns = store.get("s")
    assert [(t.role, t.content) for t in turns] == [("user", "Q1"), ("assistant", "A1")]
    assert all(isinstance(t, Turn) and t.created_at is not None for t in turns)


def test_store_rejects_unknown_role():
    store = ConversationStore()
    with pytest.raises(ValueError):
        store.append("s", "system", "x")


def test_store_fifo_bound_never_exceeded():
    """Transcript never holds more than 2 x max_pairs entries; oldest pairs go first."""
    store = ConversationStore(max_pairs=2)
    for i in range(1, 8):
        store.append("s", "user", f"Q{i}")
        assert len(store.get("s")) <= 4
        store.append("s", "assistant", f"A{i}")
        assert len(store.get("s")) <= 4
    assert [t.content for t in store.get("s")] == ["Q6", "A6", "Q7", "A7"]


def test_store_default_bound_is_ten_pairs():
    store = ConversationStore(max_pairs=10)
    for i in range(25):
        store.append_exchange("s", f"Q{i}", f"A{i}")
    turns = store.get("s")
    assert len(turns) == 20
    assert turns[0].content == "Q15"


def test_store_clear_then_get_is_empty():
    store = ConversationStore(max_pairs=3)
    store.append_exchange("s", "Q", "A")
    store.clear("s")
    assert "s" not in store
    assert store.get("s") == []
    store.clear("never-seen")


def test_store_exchange_adds_exactly_one_pair():
    store = ConversationStore(max_pairs=5)
    before = store.pair_count("s")
    count = store.append_exchange("s", "Q", "A")
    assert count == before + 1
    assert store.pair_count("s") == before + 1


def test_store_get_returns_copy():
    store = ConversationStore()
    store.append_exchange("s", "Q", "A")
    snapshot = store.get("s")
    snapshot.clear()
    assert len(store.get("s")) == 2


def test_store_concurrent_exchanges_stay_paired():
    store = ConversationStore(max_pairs=50)

    def worker(n: int) -> None:
        for i in range(20):
            store.append_exchange("shared", f"Q{n}-{i}", f"A{n}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    turns = store.get("shared")
    assert len(turns) == 100
    for q, a in zip(turns[::2], turns[1::2]):
        assert q.role == "user" and a.role == "assistant"
        assert q.content[1:] == a.content[1:]


def test_store_sessions_are_independent():
    store = ConversationStore()
    store.append_exchange("a", "Q", "A")
    assert store.get("b") == []
    assert store.pair_count("a") == 1


# --- Context analyzer ---


@pytest.mark.anyio
async def test_context_analyzer_parses_user_context():
    client = _StubClient([_context_json(level="Intermediate", years_experience=2, goals=["jazz"])])
    ctx = await ContextAnalyzer(client).analyze("I've been drumming two years")
    assert isinstance(ctx, UserContext)
    assert ctx.level == "intermediate"
    assert ctx.years_experience == 2
    assert ctx.goals == ["jazz"]
    assert ctx.target_level == 2


def test_user_context_target_level_mapping():
    assert UserContext(level="beginner").target_level == 1
    assert UserContext(level="intermediate").target_level == 2
    assert UserContext(level="advanced").target_level == 3
    assert UserContext(level="advanced", suitable_book_level=4).target_level == 4


@pytest.mark.anyio
async def test_context_analyzer_uses_last_four_entries():
    client = _StubClient([_context_json()])
    transcript = [Turn(role="user" if i % 2 == 0 else "assistant", content=f"msg{i}") for i in range(8)]
    await ContextAnalyzer(client).analyze("What next?", transcript)
    prompt = client.completions[0][-1]["content"]
    assert "msg3" not in prompt
    assert all(f"msg{i}" in prompt for i in range(4, 8))


@pytest.mark.anyio
async def test_context_analyzer_malformed_output_raises():
    with pytest.raises(StructuredOutputError):
        await ContextAnalyzer(_StubClient(["not json"])).analyze("hello")


@pytest.mark.anyio
async def test_context_analyzer_schema_violation_raises():
    with pytest.raises(StructuredOutputError):
        await ContextAnalyzer(_StubClient([_context_json(level="expert")])).analyze("hello")


# --- Query classifier ---


@pytest.mark.anyio
async def test_classifier_metadata_query():
    client = _StubClient([_analysis_json(query_type="metadata_query", category="technique", level=1)])
    analysis = await QueryClassifier(client).classify("How many units does Technique Level 1 have?")
    assert analysis.query_type == QueryType.METADATA_QUERY
    assert analysis.category == "Technique"
    assert analysis.level == 1


@pytest.mark.anyio
async def test_classifier_level_recommendation_forces_all_category():
    client = _StubClient([_analysis_json(query_type="level_recommendation", category="Reading")])
    analysis = await QueryClassifier(client).classify("What should I practice?")
    assert analysis.query_type == QueryType.LEVEL_RECOMMENDATION
    assert analysis.category == "all"


def test_query_analysis_recommendation_always_all():
    for category in (None, "Technique", "Reading", "Performance", "all"):
        analysis = QueryAnalysis(query_type="level_recommendation", category=category)
        assert analysis.category == "all"


@pytest.mark.anyio
@pytest.mark.parametrize("category", ["Rhythm", "Technique and Reading", ["Technique", "Reading"]])
async def test_classifier_level_recommendation_ignores_unknown_category(category):
    client = _StubClient([_analysis_json(query_type="level_recommendation", category=category)])
    analysis = await QueryClassifier(client).classify("What should I work on next?")
    assert analysis.query_type == QueryType.LEVEL_RECOMMENDATION
    assert analysis.category == "all"


@pytest.mark.anyio
async def test_classifier_unknown_category_on_content_search_is_fatal():
    client = _StubClient([_analysis_json(query_type="content_search", category="Rhythm")])
    with pytest.raises(StructuredOutputError):
        await QueryClassifier(client).classify("How do I count triplets?")


@pytest.mark.anyio
async def test_classifier_normalises_fields():
    client = _StubClient(
        [_analysis_json(query_type="specific_chapter", unit=3, chapter=2.0, keywords=["a", " a ", "b"], search_query="")]
    )
    analysis = await QueryClassifier(client).classify("Unit 3 chapter 2?")
    assert analysis.unit == "3"
    assert analysis.chapter == "2"
    assert analysis.keywords == ["a", "b"]
    assert analysis.search_query == "Unit 3 chapter 2?"


@pytest.mark.anyio
async def test_classifier_unknown_type_is_fatal():
    with pytest.raises(StructuredOutputError):
        await QueryClassifier(_StubClient([_analysis_json(query_type="smalltalk")])).classify("hi")


@pytest.mark.anyio
async def test_classifier_out_of_range_level_is_fatal():
    with pytest.raises(StructuredOutputError):
        await QueryClassifier(_StubClient([_analysis_json(level=7)])).classify("level 7?")


@pytest.mark.anyio
async def test_classifier_uses_last_six_entries():
    client = _StubClient([_analysis_json()])
    transcript = [Turn(role="user" if i % 2 == 0 else "assistant", content=f"msg{i}") for i in range(10)]
    await QueryClassifier(client).classify("And the next one?", transcript)
    prompt = client.completions[0][-1]["content"]
    assert "msg3" not in prompt
    assert all(f"msg{i}" in prompt for i in range(4, 10))


# --- Tutor agent ---


@pytest.mark.anyio
async def test_agent_metadata_scenario(course_index):
    store = ConversationStore()
    agent, gen_client = _agent(
        store,
        _context_json(),
        _analysis_json(query_type="metadata_query", category="Technique", level=1),
        course_index,
        answer="Technique Level 1 has 2 units.",
    )
    resp = await agent.handle("s1", "How many units does Technique Level 1 have?")
    assert isinstance(resp, AgentResponse)
    assert resp.answer == "Technique Level 1 has 2 units."
    assert resp.session_id == "s1"
    assert resp.conversation_count == 1
    assert course_index.queries[0]["filter"] == {"category": "Technique", "level": "1"}
    assert course_index.queries[0]["top_k"] == 100
    assert not any(course_index.queries[0]["vector"])
    prompt = gen_client.completions[0][-1]["content"]
    assert "Total units: 2" in prompt


@pytest.mark.anyio
async def test_agent_recommendation_scenario(course_index):
    store = ConversationStore()
    agent, gen_client = _agent(
        store,
        _context_json(level="intermediate", years_experience=2),
        _analysis_json(query_type="level_recommendation", category="Technique", search_query="practice"),
        course_index,
    )
    resp = await agent.handle("s2", "I've been drumming two years, what should I practice?")
    filters = [q["filter"] for q in course_index.queries]
    assert sorted(f["category"] for f in filters) == ["Performance", "Reading", "Technique"]
    assert {f["level"] for f in filters} == {"2"}
    prompt = gen_client.completions[0][-1]["content"]
    for header in PRACTICE_SECTIONS:
        assert header in prompt
    assert "| Time | Activity | Material |" in prompt
    assert resp.conversation_count == 1


@pytest.mark.anyio
async def test_agent_malformed_context_leaves_transcript_unchanged(course_index):
    store = ConversationStore()
    store.append_exchange("s3", "earlier", "reply")
    before = store.get("s3")
    agent, gen_client = _agent(store, "{not json", _analysis_json(), course_index)
    with pytest.raises(PipelineError) as info:
        await agent.handle("s3", "What now?")
    assert info.value.step == "context_analysis"
    assert isinstance(info.value.cause, StructuredOutputError)
    assert store.get("s3") == before
    assert gen_client.completions == []


@pytest.mark.anyio
async def test_agent_malformed_classification_leaves_transcript_unchanged(course_index):
    store = ConversationStore()
    agent, _ = _agent(store, _context_json(), "[]", course_index)
    with pytest.raises(PipelineError) as info:
        await agent.handle("s4", "What now?")
    assert info.value.step == "classification"
    assert store.get("s4") == []


@pytest.mark.anyio
async def test_agent_empty_retrieval_says_so(course_index):
    store = ConversationStore()
    agent, gen_client = _agent(
        store,
        _context_json(),
        _analysis_json(category="Reading", level=4, search_query="odd meters"),
        course_index,
    )
    resp = await agent.handle("s5", "How do I read odd meters?")
    assert resp.answer == NO_MATERIAL_ANSWER
    assert "couldn't find" in resp.answer
    assert gen_client.completions == []
    assert [t.content for t in store.get("s5")] == ["How do I read odd meters?", NO_MATERIAL_ANSWER]


@pytest.mark.anyio
async def test_agent_counts_pairs_across_requests(course_index):
    store = ConversationStore()
    for expected in (1, 2):
        agent, _ = _agent(store, _context_json(), _analysis_json(), course_index)
        resp = await agent.handle("s6", f"Question {expected}")
        assert resp.conversation_count == expected
