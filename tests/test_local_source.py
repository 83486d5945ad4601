"""Tests for the local filesystem document source."""

import pytest

from core.exceptions import ConfigurationError
from providers.source.local_source import LocalDocumentSource


@pytest.fixture
def docs_root(tmp_path):
    root = tmp_path / "docs"
    files = {
        "index.md": "# Home\nWelcome",
        "guide/setup.mdx": "# Setup\nSteps",
        "guide/deep/notes.markdown": "# Notes\nMore",
        ".hidden/secret.md": "# Secret\nHidden",
        "node_modules/pkg/readme.md": "# Package\nVendored",
        "assets/diagram.txt": "not markdown",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


class TestLocalDocumentSource:
    def test_lists_markdown_sorted_by_relative_path(self, docs_root):
        source = LocalDocumentSource(docs_root, exclude_patterns=["**/node_modules/**"])

        documents = source.list_documents()

        assert [document.path for document in documents] == [
            "guide/deep/notes.markdown",
            "guide/setup.mdx",
            "index.md",
        ]
        assert documents[-1].content == "# Home\nWelcome"

    def test_scope_limits_listing(self, docs_root):
        source = LocalDocumentSource(docs_root)

        paths = [document.path for document in source.list_documents("guide/deep")]

        assert paths == ["guide/deep/notes.markdown"]

    def test_scope_may_name_a_file(self, docs_root):
        source = LocalDocumentSource(docs_root)

        assert [document.path for document in source.list_documents("index.md")] == ["index.md"]

    def test_missing_scope_is_empty(self, docs_root):
        assert LocalDocumentSource(docs_root).list_documents("absent") == []

    def test_scope_outside_root_rejected(self, docs_root):
        with pytest.raises(ConfigurationError):
            LocalDocumentSource(docs_root).list_documents("../elsewhere")

    def test_missing_root_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            LocalDocumentSource(tmp_path / "nope").list_documents()

    def test_undecodable_file_skipped(self, docs_root):
        (docs_root / "guide" / "broken.md").write_bytes(b"# Broken\n\xff\xfe invalid utf-8 \x80")

        paths = [document.path for document in LocalDocumentSource(docs_root).list_documents("guide")]

        assert paths == ["guide/deep/notes.markdown", "guide/setup.mdx"]

    def test_custom_patterns(self, docs_root):
        source = LocalDocumentSource(docs_root, patterns=["*.md"])

        assert [document.path for document in source.list_documents()] == ["index.md"]
