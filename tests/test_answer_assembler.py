"""Tests for citation extraction and answer assembly."""

import pytest

from mimir.source_links import SourceLinkResolver
from services.answer_assembler import (
    CitationAssembler,
    SourcesBlockFilter,
    extract_citation_indexes,
    resolve_citations,
    strip_sources_block,
)
from tests.conftest import make_match


@pytest.fixture
def matches():
    return [
        make_match("guide/install.md", 0, title="Install"),
        make_match("guide/usage.md", 1, title="Usage"),
        make_match("reference/api.md", 3, title="API"),
    ]


class TestExtractCitationIndexes:
    def test_inline_markers_in_order(self):
        assert extract_citation_indexes("First [2], then [1, 3] and [2] again.") == [2, 1, 3]

    def test_semicolon_lists(self):
        assert extract_citation_indexes("See [4; 5].") == [4, 5]

    def test_markdown_links_are_not_citations(self):
        assert extract_citation_indexes("Read [1](https://example.com) first.") == []

    def test_code_is_ignored(self):
        answer = "Use `arr[0]` like this:\n```python\nvalues[1]\n```\nas shown [2]."

        assert extract_citation_indexes(answer) == [2]

    def test_sources_summary_line(self):
        assert extract_citation_indexes("The answer.\n\nSources: 3, 1") == [3, 1]

    def test_sources_line_with_prose_is_ignored(self):
        assert extract_citation_indexes("Done.\nSources: the installation guide") == []


class TestResolveCitations:
    def test_cited_matches_in_ranked_order(self, matches):
        cited = resolve_citations([3, 1], matches)

        assert [match.title for match in cited] == ["Install", "API"]

    def test_out_of_range_indexes_dropped(self, matches):
        cited = resolve_citations([2, 9, 0], matches)

        assert [match.title for match in cited] == ["Usage"]

    @pytest.mark.parametrize("indexes", [[], [7]])
    def test_nothing_resolved_cites_all(self, matches, indexes):
        assert resolve_citations(indexes, matches) == matches

    def test_duplicate_records_listed_once(self):
        same = [make_match("a.md", 0, title="A"), make_match("a.md", 0, title="A")]

        assert len(resolve_citations([1, 2], same)) == 1


class TestStripSourcesBlock:
    def test_trailing_block_removed(self):
        answer = "Body text [1].\n\n**Sources:**\n- one\n- two"

        assert strip_sources_block(answer) == "Body text [1]."

    def test_answer_without_block_unchanged(self):
        assert strip_sources_block("  Just text.  ") == "Just text."

    def test_sources_in_code_kept(self):
        answer = "Example:\n```\nSources:\n```"

        assert strip_sources_block(answer) == answer


def stream_through_filter(answer, size):
    sources_filter = SourcesBlockFilter()
    pieces = [sources_filter.feed(answer[i:i + size]) for i in range(0, len(answer), size)]
    return "".join(pieces) + sources_filter.flush()


class TestSourcesBlockFilter:
    @pytest.mark.parametrize("size", [1, 4, 1000])
    @pytest.mark.parametrize("answer", [
        "Body text [1].\n\n**Sources:**\n- one\n- two",
        "Example:\n```\nSources:\n```\nDone [1].",
        "Intro.\nSources: 1\nMore text.\n\nSources:\n- a",
        "Use `Sources:` wisely [2].\n\n## Sources\n1. made up",
        "No block here.\n\nSecond paragraph.",
    ])
    def test_streamed_text_matches_stripped_answer(self, answer, size):
        assert stream_through_filter(answer, size).rstrip() == strip_sources_block(answer)

    def test_ordinary_lines_are_released_before_newline(self):
        sources_filter = SourcesBlockFilter()

        assert sources_filter.feed("Run the ") == "Run the "
        assert sources_filter.feed("installer") == "installer"

    def test_possible_header_is_held_until_line_ends(self):
        sources_filter = SourcesBlockFilter()

        assert sources_filter.feed("Source") == ""
        assert sources_filter.feed(" code lives here.\n") == "Source code lives here.\n"

    def test_block_dropped_at_end_of_stream(self):
        sources_filter = SourcesBlockFilter()

        streamed = sources_filter.feed("Answer [1].\n\nSources:\n- [Fake](fake.md)")

        assert streamed + sources_filter.flush() == "Answer [1].\n"


class TestCitationAssembler:
    def test_appends_cited_sources(self, matches):
        result = CitationAssembler().assemble("Run the installer [1].", matches)

        assert result.answer == "Run the installer [1].\n\nSources:\n- [Install](guide/install.md)"
        assert [source.filepath for source in result.sources] == ["guide/install.md"]
        assert result.matches == matches

    def test_model_sources_block_replaced(self, matches):
        result = CitationAssembler().assemble("Use the API [3].\n\nSources:\n- made up link", matches)

        assert "made up link" not in result.answer
        assert result.answer.endswith("- [API](reference/api.md)")

    def test_links_use_resolver(self, matches):
        resolver = SourceLinkResolver(docs_base_url="https://docs.example.com", content_path="guide")

        result = CitationAssembler(resolver).assemble("Usage notes [2].", matches)

        assert result.sources[0].url == "https://docs.example.com/usage#usage"

    def test_uncited_answer_lists_all_matches(self, matches):
        result = CitationAssembler().assemble("An answer with no markers.", matches)

        assert len(result.sources) == 3

    def test_no_matches_no_sources(self):
        result = CitationAssembler().assemble("Nothing found.", [])

        assert result.answer == "Nothing found."
        assert result.sources == []
