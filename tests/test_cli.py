"""Tests for the command-line interface."""

import json

import pytest

from core.models import IngestionStats, SourceReference
from mimir.api.cli.commands import ask as ask_module
from mimir.api.cli.commands import ingest as ingest_module
from mimir.api.cli.commands import stats as stats_module
from mimir.api.cli.main import async_main, create_parser
from mimir.api.cli.utils import args_to_config, format_ingestion_stats, format_sources
from registry import ProviderRegistry
from tests.conftest import FakeLLMProvider, FakeTokenizer


class OfflineRegistry(ProviderRegistry):
    """Registry wired to fake embedding, chat and tokenizer providers."""

    answer = "It works [1]."

    def configure(self, config):
        super().configure(config)
        self.register_provider("embedding", FakeLLMProvider)
        self.register_provider("chat", lambda: FakeLLMProvider(answer=self.answer))
        self.register_provider("tokenizer", FakeTokenizer)


@pytest.fixture
def offline(monkeypatch):
    monkeypatch.setenv("MIMIR_DATABASE__DIMENSIONS", "4")
    for module in (ingest_module, ask_module, stats_module):
        monkeypatch.setattr(module, "ProviderRegistry", OfflineRegistry)


@pytest.fixture
def docs(tmp_path):
    root = tmp_path / "docs"
    (root / "guide").mkdir(parents=True)
    (root / "guide" / "install.md").write_text("# Install\nRun the installer.\n", encoding="utf-8")
    (root / "faq.md").write_text("# FAQ\nCommon questions.\n", encoding="utf-8")
    return root


def parse(*argv):
    return create_parser().parse_args(list(argv))


class TestParsers:
    def test_ingest_arguments(self):
        args = parse("ingest", "--source", "docs", "--scope", "guide", "--no-context", "--token-limit", "300")

        assert args.command == "ingest"
        assert args.scope == "guide"
        assert args.no_context is True
        assert args.no_prune is False
        assert args.token_limit == 300

    def test_ask_arguments(self):
        args = parse("ask", "How?", "--match-count", "3", "--threshold", "0.5", "--no-hybrid", "--json", "-v")

        assert args.question == "How?"
        assert args.match_count == 3
        assert args.threshold == 0.5
        assert args.no_hybrid is True
        assert args.json is True
        assert args.verbose is True

    def test_args_to_config(self, tmp_path):
        args = parse(
            "ask", "How?", "--match-count", "3", "--threshold", "0.0", "--no-hybrid", "--db", str(tmp_path / "x.duckdb")
        )

        config = args_to_config(args)

        assert config.retrieval.match_count == 3
        assert config.retrieval.similarity_threshold == 0.0
        assert config.retrieval.hybrid is False
        assert config.database.path == str(tmp_path / "x.duckdb")

    def test_llm_flags_to_config(self):
        args = parse(
            "ask", "How?",
            "--embedding-provider", "openai-compatible",
            "--chat-provider", "openai-compatible",
            "--base-url", "http://localhost:8080/v1",
            "--chat-model", "local-chat",
            "--embedding-model", "local-embed",
        )

        config = args_to_config(args)

        assert config.llm.embedding.provider == "openai-compatible"
        assert config.llm.chat.base_url == "http://localhost:8080/v1"
        assert config.llm.embedding.base_url == "http://localhost:8080/v1"
        assert config.llm.chat.model == "local-chat"
        assert config.llm.embedding.model == "local-embed"

    def test_mixed_vendor_flags_to_config(self):
        args = parse("ask", "How?", "--embedding-provider", "mistral", "--chat-provider", "anthropic")

        config = args_to_config(args)

        assert config.llm.embedding.provider == "mistral"
        assert config.llm.chat.provider == "anthropic"
        assert config.llm.embedding.model == "text-embedding-3-small"

    def test_embedding_provider_choices(self):
        with pytest.raises(SystemExit):
            parse("ask", "How?", "--embedding-provider", "anthropic")

    def test_ingest_flags_to_config(self):
        config = args_to_config(parse("ingest", "--source", "handbook", "--no-context", "--no-prune"))

        assert config.source.directory == "handbook"
        assert config.ingestion.generate_context is False
        assert config.ingestion.prune_missing is False


class TestFormatting:
    def test_ingestion_stats(self):
        stats = IngestionStats(processed_documents=2, upserted_chunks=3, pruned_documents=1)

        text = format_ingestion_stats(stats)

        assert "2 processed" in text
        assert "3 upserted" in text
        assert "1 documents pruned" in text

    def test_sources(self):
        sources = [
            SourceReference("a.md", 0, "Alpha", "https://docs/a"),
            SourceReference("b.md", 1, "", "b.md"),
        ]

        assert format_sources(sources) == "1. Alpha - https://docs/a\n2. b.md - b.md"


class TestCommands:
    @pytest.mark.asyncio
    async def test_ingest_ask_and_stats(self, offline, docs, tmp_path, capsys):
        db = str(tmp_path / "kb.duckdb")

        await ingest_module.ingest_command(parse("ingest", "--source", str(docs), "--db", db))
        assert "Ingestion complete: 2 processed" in capsys.readouterr().out

        await ask_module.ask_command(parse("ask", "How do I install?", "--db", db, "--json"))
        result = json.loads(capsys.readouterr().out)
        assert result["answer"].startswith("It works [1].")
        assert len(result["sources"]) == 1

        await stats_module.stats_command(parse("stats", "--db", db, "--json"))
        stats = json.loads(capsys.readouterr().out)
        assert stats["documents"] == 2
        assert stats["chunks"] == 2

    @pytest.mark.asyncio
    async def test_streamed_answer(self, offline, docs, tmp_path, capsys):
        db = str(tmp_path / "kb.duckdb")
        await ingest_module.ingest_command(parse("ingest", "--source", str(docs), "--db", db, "--no-context"))
        capsys.readouterr()

        await ask_module.ask_command(parse("ask", "How do I install?", "--db", db, "--stream"))

        out = capsys.readouterr().out
        assert out.startswith("It works [1].")
        assert "Sources:" in out

    @pytest.mark.asyncio
    async def test_streamed_answer_lists_sources_once(self, offline, docs, tmp_path, capsys, monkeypatch):
        monkeypatch.setattr(OfflineRegistry, "answer", "It works [1].\n\nSources:\n- [Made up](made-up.md)")
        db = str(tmp_path / "kb.duckdb")
        await ingest_module.ingest_command(parse("ingest", "--source", str(docs), "--db", db, "--no-context"))
        capsys.readouterr()

        await ask_module.ask_command(parse("ask", "How do I install?", "--db", db, "--stream"))

        out = capsys.readouterr().out
        assert out.startswith("It works [1].")
        assert out.count("Sources:") == 1
        assert "Made up" not in out

    @pytest.mark.asyncio
    async def test_missing_api_key_exits(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            await ask_module.ask_command(parse("ask", "How?", "--db", str(tmp_path / "kb.duckdb")))

        assert exc_info.value.code == 1
        assert "api_key" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_missing_source_directory_exits(self, offline, tmp_path, capsys):
        args = parse("ingest", "--source", str(tmp_path / "absent"), "--db", str(tmp_path / "kb.duckdb"))

        with pytest.raises(SystemExit) as exc_info:
            await ingest_module.ingest_command(args)

        assert exc_info.value.code == 1
        assert "Ingestion failed" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            await async_main([])

        assert exc_info.value.code == 1
        assert "usage: mimir" in capsys.readouterr().out
