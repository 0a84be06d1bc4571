import asyncio
import math
from pathlib import Path

import pytest
from conftest import FakeBackend, vector_for

from personaforge.core.errors import InferenceBackendError
from personaforge.core.models import ConversationId
from personaforge.inference.queue import InferenceQueue
from personaforge.memory import (
    EmbeddingStore,
    InferenceSummarizer,
    MemoryRetriever,
    MemoryService,
    MemorySummary,
    RetentionJob,
    cosine_similarity,
    decay,
)
from personaforge.memory.service import SUMMARY_PREFIX
from personaforge.runtime.tasks import TaskSupervisor
from personaforge.telemetry import InMemoryTelemetry

HOUR = 3600.0


@pytest.fixture
def store(tmp_path: Path):
    db = EmbeddingStore(tmp_path / "memory" / "memory.db")
    yield db
    db.close()


# ── Math ─────────────────────────────────────────────────────────────


def test_cosine_is_symmetric_and_bounded() -> None:
    a = [1.0, 2.0, 3.0]
    b = [-2.0, 0.5, 4.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


@pytest.mark.parametrize(
    ("a", "b"),
    [([], []), ([1.0], [1.0, 2.0]), ([0.0, 0.0], [1.0, 1.0])],
)
def test_cosine_degenerate_inputs_are_zero(a, b) -> None:
    assert cosine_similarity(a, b) == 0.0


def test_decay_starts_at_one_and_never_increases() -> None:
    assert decay(0, 0.1) == 1.0
    values = [decay(h, 0.1) for h in (0, 1, 12, 24, 240)]
    assert values == sorted(values, reverse=True)
    assert decay(24, 0.1) == pytest.approx(math.exp(-0.1))
    assert decay(1000, 0.0) == 1.0
    assert decay(-5, 0.1) == 1.0


# ── Store ────────────────────────────────────────────────────────────


def test_store_roundtrip_and_newest_first(store: EmbeddingStore) -> None:
    first = store.store("c1", "old", [1.0, 0.0], created_at=100.0)
    second = store.store("c1", "new", [0.0, 1.0], importance=2.0, role="assistant", created_at=200.0)
    store.store("c2", "elsewhere", [1.0, 1.0], created_at=300.0)

    chunks = store.load_recent("c1", 10)

    assert [c.id for c in chunks] == [second, first]
    assert chunks[0].embedding == [0.0, 1.0]
    assert chunks[0].importance == 2.0
    assert chunks[0].role == "assistant"
    assert store.count("c1") == 2
    assert store.conversation_keys() == ["c1", "c2"]
    assert store.load_recent("c1", 0) == []


def test_cap_keeps_most_recent(store: EmbeddingStore) -> None:
    for i in range(5):
        store.store("c1", f"m{i}", [1.0], created_at=float(i))

    removed = store.cap("c1", 2)

    assert removed == 3
    assert [c.text for c in store.load_recent("c1", 10)] == ["m4", "m3"]


def test_summary_advances_watermark_monotonically(store: EmbeddingStore) -> None:
    ids = [store.store("c1", f"m{i}", [1.0], created_at=float(i)) for i in range(4)]
    store.record_summary(
        MemorySummary(
            conversation_key="c1",
            summary_text="first three",
            from_chunk_id=ids[0],
            to_chunk_id=ids[2],
            message_count=3,
            created_at=10.0,
        )
    )
    assert store.summarized_through("c1") == ids[2]
    assert store.count_unsummarized("c1") == 1
    assert [c.text for c in store.unsummarized("c1")] == ["m3"]

    store.record_summary(
        MemorySummary(
            conversation_key="c1",
            summary_text="stale",
            from_chunk_id=ids[0],
            to_chunk_id=ids[1],
            message_count=2,
            created_at=11.0,
        )
    )
    assert store.summarized_through("c1") == ids[2]
    latest = store.latest_summary("c1")
    assert latest is not None and latest.summary_text == "first three"
    assert store.stats() == {"chunks": 4, "conversations": 1, "summaries": 2}


# ── Retriever ────────────────────────────────────────────────────────


def test_rank_weighs_similarity_recency_and_importance(store: EmbeddingStore) -> None:
    now = 1_000_000.0
    store.store("c1", "exact but old", [1.0, 0.0], created_at=now - 240 * HOUR)
    store.store("c1", "exact and fresh", [1.0, 0.0], created_at=now)
    store.store("c1", "orthogonal", [0.0, 1.0], created_at=now)
    store.store("c1", "important", [0.8, 0.6], importance=3.0, created_at=now)
    retriever = MemoryRetriever(store, decay_rate=0.1)

    hits = retriever.search("c1", [1.0, 0.0], 4, now=now)

    assert [h.chunk.text for h in hits] == [
        "important",
        "exact and fresh",
        "exact but old",
        "orthogonal",
    ]
    assert hits[1].decay == pytest.approx(1.0)
    assert hits[2].decay == pytest.approx(math.exp(-1.0))
    assert hits[3].score == 0.0


def test_rank_ties_keep_input_order(store: EmbeddingStore) -> None:
    for text in ("a", "b", "c"):
        store.store("c1", text, [1.0], created_at=50.0)
    retriever = MemoryRetriever(store, decay_rate=0.0)

    chunks = store.load_recent("c1", 10)
    ranked = retriever.rank(chunks, [1.0], now=50.0)

    assert [h.chunk.id for h in ranked] == [c.id for c in chunks]


def test_retrieve_respects_top_n_and_candidate_limit(store: EmbeddingStore) -> None:
    for i in range(10):
        store.store("c1", f"m{i}", [1.0, float(i)], created_at=float(i))
    retriever = MemoryRetriever(store, decay_rate=0.0, candidate_limit=3)

    texts = retriever.retrieve("c1", [1.0, 9.0], 5, now=10.0)

    assert sorted(texts) == ["m7", "m8", "m9"]
    assert retriever.retrieve("c1", [1.0, 9.0], 0) == []


# ── Service ──────────────────────────────────────────────────────────


def _service(store: EmbeddingStore, backend: FakeBackend, telemetry=None) -> MemoryService:
    queue = InferenceQueue(backend, max_concurrent=1)
    return MemoryService(
        store,
        MemoryRetriever(store, decay_rate=0.0),
        queue=queue,
        embedding_model="nomic-embed-text",
        tasks=TaskSupervisor("memory"),
        top_n=2,
        telemetry=telemetry,
    )


async def test_remember_embeds_in_background(store: EmbeddingStore, backend: FakeBackend) -> None:
    telemetry = InMemoryTelemetry()
    service = _service(store, backend, telemetry)
    conv = ConversationId("-100")

    service.remember(conv, "I love espresso", role="user")
    service.remember(conv, "   ")
    await service._tasks.drain(timeout=5)

    assert backend.embedded == ["I love espresso"]
    chunk = store.load_recent("-100", 1)[0]
    assert chunk.text == "I love espresso"
    assert chunk.embedding == pytest.approx(vector_for("I love espresso"))
    assert telemetry.get_counter("memory_capture_total", (("status", "stored"),)) == 1


async def test_embed_failure_is_logged_not_raised(store: EmbeddingStore, backend: FakeBackend) -> None:
    backend.embed_error = InferenceBackendError("HTTP 500: boom", status_code=500)
    telemetry = InMemoryTelemetry()
    service = _service(store, backend, telemetry)

    service.remember(ConversationId("-100"), "hello there")
    await service._tasks.drain(timeout=5)

    assert store.count("-100") == 0
    assert service._tasks.failures == 0
    assert telemetry.get_counter("memory_capture_total", (("status", "embed_failed"),)) == 1


async def test_recall_prepends_latest_summary(store: EmbeddingStore, backend: FakeBackend) -> None:
    ids = [store.store("-100", text, vector_for(text)) for text in ("coffee talk", "tea time")]
    store.record_summary(
        MemorySummary(
            conversation_key="-100",
            summary_text="Alice likes coffee.",
            from_chunk_id=ids[0],
            to_chunk_id=ids[0],
            message_count=1,
            created_at=1.0,
        )
    )
    service = _service(store, backend)

    memories = await service.recall(ConversationId("-100"), "coffee talk")

    assert memories[0] == SUMMARY_PREFIX + "Alice likes coffee."
    assert memories[1] == "coffee talk"
    assert len(memories) == 3


async def test_recall_without_embeddings_returns_only_summary(
    store: EmbeddingStore, backend: FakeBackend
) -> None:
    store.store("-100", "something", [1.0])
    backend.embed_error = InferenceBackendError("network error: refused")
    service = _service(store, backend)

    assert await service.recall(ConversationId("-100"), "anything") == []


# ── Retention ────────────────────────────────────────────────────────


class _RecordingSummarizer:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[list[str]] = []
        self.error = error

    async def summarize(self, texts: list[str]) -> str:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return f"{len(texts)} messages about stuff"


async def test_retention_summarizes_before_capping(store: EmbeddingStore) -> None:
    for i in range(6):
        store.store("c1", f"m{i}", [1.0], created_at=float(i))
    store.store("c2", "quiet", [1.0])
    summarizer = _RecordingSummarizer()
    job = RetentionJob(store, summarizer=summarizer, retention_cap=2, summary_threshold=3)

    report = await job.run_once()

    assert summarizer.calls == [[f"m{i}" for i in range(6)]]
    assert report.summarized == ["c1"]
    assert report.conversations == 2
    assert report.pruned == 4
    assert store.count("c1") == 2
    assert store.count_unsummarized("c1") == 0
    assert store.latest_summary("c1").message_count == 6


async def test_retention_summary_failure_still_caps(store: EmbeddingStore) -> None:
    for i in range(5):
        store.store("c1", f"m{i}", [1.0], created_at=float(i))
    job = RetentionJob(
        store,
        summarizer=_RecordingSummarizer(InferenceBackendError("HTTP 503: busy")),
        retention_cap=3,
        summary_threshold=1,
    )

    report = await job.run_once()

    assert report.failed == ["c1"]
    assert report.summarized == []
    assert store.count("c1") == 3
    assert store.latest_summary("c1") is None


async def test_retention_loop_stops_on_event(store: EmbeddingStore) -> None:
    job = RetentionJob(store, retention_cap=10)
    stop = asyncio.Event()
    stop.set()
    await asyncio.wait_for(job.run_forever(stop, interval_seconds=60), timeout=1)


async def test_inference_summarizer_prompts_chat_model(backend: FakeBackend) -> None:
    backend.replies = ["  Alice planned a trip.  "]
    summarizer = InferenceSummarizer(InferenceQueue(backend), model="gemma2:2b")

    text = await summarizer.summarize(["we go to Rome", "", "in May"])

    assert text == "Alice planned a trip."
    assert "- we go to Rome\n- in May" in backend.prompts[0]
    assert await summarizer.summarize(["  "]) == ""
