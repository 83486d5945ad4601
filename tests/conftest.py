"""Shared fixtures and in-memory fakes for Mimir tests."""

import asyncio
import os
from typing import Any, Dict, List, Optional

import pytest

from core.exceptions import LexicalSearchUnavailable
from core.models import (
    Chunk,
    ChunkReorder,
    ChunkUpsert,
    RateLimitBudget,
    RetrievedChunk,
    StoredChunkRecord,
    plan_position_moves,
)
from mimir.rate_limiter import RequestScheduler


class FakeTokenizer:
    """One token per character; encode/decode via code points."""

    def count_tokens(self, text: str, model: Optional[str] = None) -> int:
        return len(text)

    def count_batch(self, texts: List[str], model: Optional[str] = None) -> int:
        return sum(len(text) for text in texts)

    def encode(self, text: str, model: Optional[str] = None) -> List[int]:
        return [ord(char) for char in text]

    def decode(self, tokens: List[int], model: Optional[str] = None) -> str:
        return "".join(chr(token) for token in tokens)


def fake_vector(text: str) -> List[float]:
    return [float(len(text)), 1.0, 0.0, 0.0]


class FakeLLMProvider:
    """Deterministic provider recording every request."""

    def __init__(self, answer: str = "It works [1].", context: str = "situating context"):
        self.answer = answer
        self.context = context
        self.embed_calls: List[List[str]] = []
        self.context_calls: List[str] = []
        self.answer_calls: List[Dict[str, Any]] = []
        self.embed_delays: List[float] = []
        self.embed_error: Optional[Exception] = None
        self.answer_error: Optional[Exception] = None
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    @property
    def embedding_model(self) -> str:
        return "fake-embed"

    @property
    def chat_model(self) -> str:
        return "fake-chat"

    @property
    def dims(self) -> int:
        return 4

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.embed_calls.append(list(texts))
        if self.embed_delays:
            await asyncio.sleep(self.embed_delays.pop(0))
        if self.embed_error is not None:
            raise self.embed_error
        return [fake_vector(text) for text in texts]

    async def generate_context(self, chunk_content: str, document_content: str) -> str:
        self.context_calls.append(chunk_content)
        return self.context

    async def generate_answer(self, prompt, context, options=None) -> str:
        self.answer_calls.append({"prompt": prompt, "context": context, "options": options})
        if self.answer_error is not None:
            raise self.answer_error
        if options is not None and options.on_token is not None:
            for word in self.answer.split(" "):
                options.on_token(word + " ")
        return self.answer

    async def close(self) -> None:
        self.closed = True


class FakeChunkStore:
    """In-memory chunk store enforcing unique (filepath, position) on every write."""

    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self.operations: List[str] = []
        self.vector_results: List[RetrievedChunk] = []
        self.lexical_results: List[RetrievedChunk] = []
        self.lexical_error: Optional[Exception] = None
        self.search_calls: List[Dict[str, Any]] = []
        self._next_id = 1
        self.is_connected = True

    def connect(self) -> None:
        self.is_connected = True

    def disconnect(self) -> None:
        self.is_connected = False

    def _assert_unique_positions(self) -> None:
        keys = [(row["filepath"], row["position"]) for row in self.rows.values()]
        assert len(keys) == len(set(keys)), f"duplicate (filepath, position): {sorted(keys)}"

    def seed(self, filepath: str, chunks: List[Chunk]) -> None:
        self.upsert_chunks([
            ChunkUpsert(filepath, chunk.position, chunk.title, chunk.content, chunk.checksum, fake_vector(chunk.content))
            for chunk in chunks
        ])
        self.operations.clear()

    def rows_for(self, filepath: str) -> List[Dict[str, Any]]:
        return sorted(
            (row for row in self.rows.values() if row["filepath"] == filepath),
            key=lambda row: row["position"],
        )

    def fetch_existing_chunks(self, path: str) -> Dict[int, StoredChunkRecord]:
        return {
            row["position"]: StoredChunkRecord.from_dict(row)
            for row in self.rows.values()
            if row["filepath"] == path
        }

    def upsert_chunks(self, rows: List[ChunkUpsert]) -> None:
        self.operations.append("upsert")
        for upsert in rows:
            for chunk_id, row in list(self.rows.items()):
                if row["filepath"] == upsert.filepath and row["position"] == upsert.position:
                    del self.rows[chunk_id]
            self.rows[self._next_id] = {"id": self._next_id, **upsert.to_dict()}
            self._next_id += 1
            self._assert_unique_positions()

    def update_chunk_positions(self, moves: List[ChunkReorder]) -> None:
        self.operations.append("reorder")
        phase_one, phase_two = plan_position_moves(moves)
        for move in phase_one + phase_two:
            self.rows[move.id]["position"] = move.position
            self._assert_unique_positions()

    def delete_chunks_by_id(self, ids: List[int]) -> None:
        self.operations.append("delete")
        for chunk_id in ids:
            self.rows.pop(chunk_id, None)

    def list_document_paths(self) -> List[str]:
        return sorted({row["filepath"] for row in self.rows.values()})

    def delete_document(self, path: str) -> int:
        self.operations.append("delete_document")
        ids = [chunk_id for chunk_id, row in self.rows.items() if row["filepath"] == path]
        for chunk_id in ids:
            del self.rows[chunk_id]
        return len(ids)

    def vector_search(self, embedding, match_count, threshold=None) -> List[RetrievedChunk]:
        self.search_calls.append({"kind": "vector", "match_count": match_count, "threshold": threshold})
        return self.vector_results[:match_count]

    def lexical_search(self, query: str, match_count: int) -> List[RetrievedChunk]:
        self.search_calls.append({"kind": "lexical", "query": query, "match_count": match_count})
        if self.lexical_error is not None:
            raise self.lexical_error
        return self.lexical_results[:match_count]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "documents": len(self.list_document_paths()),
            "chunks": len(self.rows),
            "contextualized_chunks": sum(1 for row in self.rows.values() if row["contextual_text"]),
        }


class FakeDocumentSource:
    def __init__(self, documents):
        self.documents = list(documents)
        self.scopes: List[Optional[str]] = []

    def list_documents(self, scope: Optional[str] = None):
        self.scopes.append(scope)
        if scope:
            return [document for document in self.documents if document.path.startswith(scope)]
        return list(self.documents)


def make_match(filepath: str, position: int, title: str = "", similarity=None, lexical_rank=None) -> RetrievedChunk:
    return RetrievedChunk(
        filepath=filepath,
        position=position,
        title=title,
        content=f"content of {filepath}#{position}",
        similarity=similarity,
        lexical_rank=lexical_rank,
    )


@pytest.fixture
def tokenizer():
    return FakeTokenizer()


@pytest.fixture
def llm():
    return FakeLLMProvider()


@pytest.fixture
def store():
    return FakeChunkStore()


@pytest.fixture
def chat_scheduler():
    return RequestScheduler("fake:chat", RateLimitBudget(concurrency=2, retries=2), backoff_base=0)


@pytest.fixture
def embedding_scheduler():
    return RequestScheduler("fake:embedding", RateLimitBudget(concurrency=2, retries=2, batch_size=2), backoff_base=0)


@pytest.fixture
def unavailable_lexical():
    return LexicalSearchUnavailable("FTS extension is not loaded")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep host configuration out of tests."""
    for name in ("OPENAI_API_KEY", "OPENAI_BASE_URL", "MISTRAL_API_KEY", "ANTHROPIC_API_KEY", "MIMIR_CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.upper().startswith("MIMIR_"):
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
