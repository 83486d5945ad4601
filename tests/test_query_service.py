"""Tests for question answering."""

import pytest

from core.exceptions import ProviderError, QueryError, TransientProviderError, ValidationError
from services.answer_assembler import CitationAssembler
from services.embedding_service import EmbeddingBatcher
from services.query_service import NO_CONTEXT_ANSWER, QueryService
from services.retrieval_service import HybridRetrievalRanker
from tests.conftest import make_match


@pytest.fixture
def service(store, llm, chat_scheduler, embedding_scheduler, tokenizer):
    return QueryService(
        chat_provider=llm,
        chat_scheduler=chat_scheduler,
        embedding_batcher=EmbeddingBatcher(llm, embedding_scheduler, tokenizer),
        ranker=HybridRetrievalRanker(store, match_count=5, similarity_threshold=0.5),
        assembler=CitationAssembler(),
        tokenizer=tokenizer,
        max_tokens=500,
    )


class TestQueryService:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   "])
    async def test_empty_question_rejected(self, service, llm, question):
        with pytest.raises(ValidationError):
            await service.ask(question)
        assert llm.embed_calls == []

    @pytest.mark.asyncio
    async def test_no_matches_skips_generation(self, service, llm):
        result = await service.ask("How do I install?")

        assert result.answer == NO_CONTEXT_ANSWER
        assert result.sources == []
        assert llm.answer_calls == []

    @pytest.mark.asyncio
    async def test_answer_cites_matches(self, service, store, llm):
        store.vector_results = [
            make_match("guide/install.md", 0, title="Install", similarity=0.9),
            make_match("guide/usage.md", 1, title="Usage", similarity=0.8),
        ]
        llm.answer = "Run the installer [1]."

        result = await service.ask("  How do I install?  ")

        assert llm.embed_calls == [["How do I install?"]]
        assert llm.answer_calls[0]["prompt"] == "How do I install?"
        assert llm.answer_calls[0]["context"] == store.vector_results
        assert llm.answer_calls[0]["options"].max_tokens == 500
        assert [source.title for source in result.sources] == ["Install"]
        assert result.answer.endswith("Sources:\n- [Install](guide/install.md)")
        assert len(result.matches) == 2

    @pytest.mark.asyncio
    async def test_streamed_tokens_reach_callback(self, service, store, llm):
        store.vector_results = [make_match("a.md", 0, similarity=0.9)]
        llm.answer = "Streamed answer [1]."
        received = []

        await service.ask("question", on_token=received.append)

        assert "".join(received).strip() == "Streamed answer [1]."

    @pytest.mark.asyncio
    async def test_system_prompt_override(self, service, store, llm):
        store.vector_results = [make_match("a.md", 0, similarity=0.9)]

        await service.ask("question", system_prompt="Answer like a pirate.")

        assert llm.answer_calls[0]["options"].system_prompt == "Answer like a pirate."

    @pytest.mark.asyncio
    async def test_retrieval_overrides(self, service, store):
        await service.ask("question", match_count=2, similarity_threshold=0.1, hybrid=False)

        assert store.search_calls == [{"kind": "vector", "match_count": 2, "threshold": 0.1}]

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self, service, store, llm):
        store.vector_results = [make_match("a.md", 0, similarity=0.9)]
        llm.answer_error = ProviderError("fake", "chat", 400, "bad request")

        with pytest.raises(QueryError) as exc_info:
            await service.ask("question")

        assert isinstance(exc_info.value.cause, ProviderError)
        assert exc_info.value.question == "question"

    @pytest.mark.asyncio
    async def test_interrupted_stream_is_not_replayed(self, service, store, llm):
        store.vector_results = [make_match("a.md", 0, similarity=0.9)]
        calls = []

        async def drop_after_first_token(prompt, context, options=None):
            calls.append(prompt)
            options.on_token("Partial ")
            raise TransientProviderError("fake", "chat", 503, "connection reset")

        llm.generate_answer = drop_after_first_token
        received = []

        with pytest.raises(QueryError) as exc_info:
            await service.ask("question", on_token=received.append)

        assert len(calls) == 1
        assert received == ["Partial "]
        assert not isinstance(exc_info.value.cause, TransientProviderError)
        assert isinstance(exc_info.value.cause.cause, TransientProviderError)

    @pytest.mark.asyncio
    async def test_failure_before_first_token_is_retried(self, service, store, llm):
        store.vector_results = [make_match("a.md", 0, similarity=0.9)]
        failures = [TransientProviderError("fake", "chat", 503, "unavailable")]
        original = llm.generate_answer

        async def flaky(prompt, context, options=None):
            if failures:
                raise failures.pop()
            return await original(prompt, context, options)

        llm.generate_answer = flaky
        received = []

        result = await service.ask("question", on_token=received.append)

        assert "".join(received).strip() == "It works [1]."
        assert result.answer.startswith("It works [1].")
