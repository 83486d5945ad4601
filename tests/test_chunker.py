"""Tests for the markdown document chunker."""

import hashlib

import pytest

from mimir.chunker import DocumentChunker, extract_title, strip_wrapping_quotes


@pytest.fixture
def chunker():
    return DocumentChunker()


class TestSectionSplitting:
    def test_headings_start_sections(self, chunker):
        chunks = chunker.chunk("# Intro\nHello\n\n## Usage\nRun it")

        assert [chunk.title for chunk in chunks] == ["Intro", "Usage"]
        assert [chunk.position for chunk in chunks] == [0, 1]
        assert chunks[0].content == "# Intro\nHello\n"
        assert chunks[1].content == "## Usage\nRun it"

    def test_heading_without_body_merges_into_next_section(self, chunker):
        chunks = chunker.chunk("# Guide\n## Setup\nInstall the package")

        assert len(chunks) == 1
        assert chunks[0].title == "Setup"
        assert chunks[0].content == "# Guide\n## Setup\nInstall the package"

    def test_text_before_first_heading_is_untitled_section(self, chunker):
        chunks = chunker.chunk("Some preamble\n# Next\nmore")

        assert chunks[0].title == ""
        assert chunks[0].content == "Some preamble"
        assert chunks[1].title == "Next"

    def test_frontmatter_title_names_section(self, chunker):
        chunks = chunker.chunk("---\ntitle: 'Getting Started'\n---\nWelcome aboard")

        assert len(chunks) == 1
        assert chunks[0].title == "Getting Started"

    def test_toc_heading_is_plain_text(self, chunker):
        chunks = chunker.chunk("# Contents [!toc]\n- one\n- two")

        assert len(chunks) == 1
        assert chunks[0].title == ""

    def test_lines_are_trimmed_and_crlf_split(self, chunker):
        chunks = chunker.chunk("# Title  \r\n   body text   \r\n")

        assert chunks[0].content == "# Title\nbody text\n"

    @pytest.mark.parametrize("text", ["", "\n\n   \n", "# Only a heading", "# A\n## B\n"])
    def test_documents_without_content_yield_no_chunks(self, chunker, text):
        assert chunker.chunk(text) == []

    def test_checksum_is_sha256_of_content(self, chunker):
        chunks = chunker.chunk("# A\nsame\n# B\nsame")

        expected = hashlib.sha256(chunks[0].content.encode("utf-8")).hexdigest()
        assert chunks[0].checksum == expected
        assert chunks[0].checksum != chunks[1].checksum

    def test_identical_sections_share_checksum(self, chunker):
        chunks = chunker.chunk("# A\nbody\n\n# A\nbody\n")

        assert chunks[0].checksum == chunks[1].checksum
        assert [chunk.position for chunk in chunks] == [0, 1]


class TestTitles:
    @pytest.mark.parametrize("raw, expected", [
        ('"Quoted"', "Quoted"),
        ("'Single'", "Single"),
        ("[Bracketed]", "Bracketed"),
        ("“Smart”", "Smart"),
        ("Plain", "Plain"),
        ('"Unbalanced', '"Unbalanced'),
        ('"\'Nested\'"', "Nested"),
        ('[ "Spaced" ]', "Spaced"),
        ('""', ""),
    ])
    def test_strip_wrapping_quotes(self, raw, expected):
        assert strip_wrapping_quotes(raw) == expected

    def test_extract_heading_title(self):
        assert extract_title("### 'Deploying'") == "Deploying"

    def test_extract_frontmatter_title(self):
        assert extract_title('title: "Overview"', frontmatter=True) == "Overview"
        assert extract_title("titles are fun", frontmatter=True) == ""


class TestTokenLimit:
    def test_oversized_section_split_by_lines(self, tokenizer):
        chunker = DocumentChunker(tokenizer, token_limit=10)

        chunks = chunker.chunk("# T\naaaa\nbbbb\ncccc")

        assert [chunk.content for chunk in chunks] == ["# T\naaaa", "bbbb\ncccc"]
        assert [chunk.title for chunk in chunks] == ["T_1", "T_2"]
        assert [chunk.position for chunk in chunks] == [0, 1]

    def test_long_line_is_hard_split(self, tokenizer):
        chunker = DocumentChunker(tokenizer, token_limit=10)

        chunks = chunker.chunk("x" * 25)

        assert [len(chunk.content) for chunk in chunks] == [10, 10, 5]
        assert chunks[0].title == "chunk_1"

    def test_positions_stay_contiguous_after_split(self, tokenizer):
        chunker = DocumentChunker(tokenizer, token_limit=12)

        chunks = chunker.chunk("# A\nshort\n# B\n" + "word " * 5 + "\n# C\nend")

        assert [chunk.position for chunk in chunks] == list(range(len(chunks)))
        assert all(tokenizer.count_tokens(chunk.content) <= 12 for chunk in chunks)
        assert chunks[0].title == "A"
        assert chunks[-1].title == "C"

    def test_small_sections_untouched(self, tokenizer):
        chunker = DocumentChunker(tokenizer, token_limit=1000)

        assert chunker.chunk("# A\nbody") == DocumentChunker().chunk("# A\nbody")

    def test_limit_requires_tokenizer(self):
        chunker = DocumentChunker(token_limit=5)

        with pytest.raises(ValueError):
            chunker.chunk("# A\nmore than five characters")
