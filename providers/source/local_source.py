"""Local document source for Mimir - lists markdown documents under a directory."""

from fnmatch import fnmatch
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from core.exceptions import ConfigurationError
from core.models import Document

DEFAULT_PATTERNS = ["**/*.md", "**/*.mdx", "**/*.markdown"]


class LocalDocumentSource:
    """Document source reading markdown files from the local filesystem."""

    def __init__(
        self,
        root: Union[str, Path],
        patterns: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
        encoding: str = "utf-8"
    ):
        """Initialize local document source.

        Args:
            root: Directory documents are read from; paths are relative to it
            patterns: Include glob patterns
            exclude_patterns: Glob patterns matched against relative paths to skip
            encoding: Text encoding of the documents
        """
        self._root = Path(root)
        self._patterns = patterns or list(DEFAULT_PATTERNS)
        self._exclude_patterns = exclude_patterns or []
        self._encoding = encoding

    @property
    def root(self) -> Path:
        return self._root

    def _resolve_scope(self, scope: Optional[str]) -> Path:
        if not scope or scope.strip() in ("", ".", "/"):
            return self._root

        directory = (self._root / scope.strip().strip("/")).resolve()
        root = self._root.resolve()
        if directory != root and root not in directory.parents:
            raise ConfigurationError("source.scope", scope, "Scope must stay inside the source directory")
        return directory

    def _is_excluded(self, relative: Path) -> bool:
        if any(part.startswith(".") for part in relative.parts[:-1]):
            return True
        rel_str = relative.as_posix()
        for pattern in self._exclude_patterns:
            # "**/" also matches at the root
            if fnmatch(rel_str, pattern) or (pattern.startswith("**/") and fnmatch(rel_str, pattern[3:])):
                return True
        return False

    def discover_files(self, scope: Optional[str] = None) -> List[Path]:
        """Matching files under the scope, sorted by relative path."""
        if not self._root.is_dir():
            raise ConfigurationError("source.directory", str(self._root), "Source directory does not exist")

        directory = self._resolve_scope(scope)
        if not directory.exists():
            logger.warning(f"Scope {scope} does not exist under {self._root}")
            return []
        if directory.is_file():
            return [directory]

        root = self._root.resolve()
        found = {}
        for pattern in self._patterns:
            for file_path in directory.glob(pattern):
                if not file_path.is_file():
                    continue
                relative = file_path.resolve().relative_to(root)
                if not self._is_excluded(relative):
                    found[relative.as_posix()] = file_path

        return [found[key] for key in sorted(found)]

    def list_documents(self, scope: Optional[str] = None) -> List[Document]:
        """Documents under an optional scope path, sorted by path."""
        root = self._root.resolve()
        documents = []
        for file_path in self.discover_files(scope):
            relative = file_path.resolve().relative_to(root).as_posix()
            try:
                content = file_path.read_text(encoding=self._encoding)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable document {relative}: {e}")
                continue
            documents.append(Document.from_content(relative, content))

        logger.info(f"Found {len(documents)} document{'s' if len(documents) != 1 else ''} under {self._root}")
        return documents
