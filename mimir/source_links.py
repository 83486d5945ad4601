"""Source link resolution for Mimir - repository and documentation URLs for cited chunks."""

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote, urlparse

from core.exceptions import ConfigurationError
from core.types import DocumentFormat
from mimir.chunker import strip_wrapping_quotes

DEFAULT_BRANCH = "main"
DEFAULT_CONTENT_PATH = "content/docs"

_SLUG_STRIP = re.compile(r"[^\w\- ]", re.UNICODE)
_MARKDOWN_EXTENSION = re.compile(r"\.(md|mdx)$", re.IGNORECASE)


@dataclass(frozen=True)
class GitHubTarget:
    """Repository coordinates parsed from a GitHub URL."""

    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    path: str = ""


def normalize_repo_path(repo_path: Optional[str]) -> str:
    """Collapse empty segments and reject relative segments in a repository path."""
    if not repo_path:
        return ""
    segments = [segment.strip() for segment in repo_path.split("/")]
    segments = [segment for segment in segments if segment]
    for segment in segments:
        if segment in (".", ".."):
            raise ConfigurationError(
                "source.github_url",
                repo_path,
                'Relative path segments ("." or "..") are not supported in repository paths',
            )
    return "/".join(segments)


def join_repo_paths(*parts: Optional[str]) -> str:
    """Join repository path fragments, skipping empty ones."""
    segments: List[str] = []
    for part in parts:
        normalized = normalize_repo_path(part)
        if normalized:
            segments.extend(normalized.split("/"))
    return "/".join(segments)


def encode_repo_path(repo_path: str) -> str:
    """URL-encode each segment of a slash-separated path."""
    if not repo_path:
        return ""
    return "/".join(quote(segment, safe="") for segment in repo_path.split("/"))


def parse_github_url(url: str, branch: Optional[str] = None) -> GitHubTarget:
    """Parse a GitHub repository URL.

    Supports plain repository URLs, a ``.git`` suffix and
    ``tree/<branch>/<path>`` or ``blob/<branch>/<path>`` forms.

    Args:
        url: Repository URL
        branch: Branch overriding the one in the URL

    Returns:
        Parsed repository coordinates

    Raises:
        ConfigurationError: If the URL is not a usable GitHub repository URL
    """
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError("source.github_url", url, "Invalid GitHub URL")
    if not parsed.hostname or not parsed.hostname.endswith("github.com"):
        raise ConfigurationError("source.github_url", url, "Unsupported GitHub host")

    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) < 2:
        raise ConfigurationError("source.github_url", url, "URL must include an owner and repository")

    owner, repo_segment, rest = segments[0], segments[1], segments[2:]
    repo = repo_segment[:-4] if repo_segment.endswith(".git") else repo_segment

    url_branch = DEFAULT_BRANCH
    repo_path = ""
    if rest:
        if rest[0] in ("tree", "blob"):
            url_branch = rest[1] if len(rest) > 1 else DEFAULT_BRANCH
            repo_path = "/".join(rest[2:])
        else:
            repo_path = "/".join(rest)

    return GitHubTarget(
        owner=owner,
        repo=repo,
        branch=branch or url_branch,
        path=normalize_repo_path(repo_path),
    )


def build_source_url(owner: str, repo: str, branch: str, file_path: str) -> str:
    """Blob URL of a file in a GitHub repository."""
    return f"https://github.com/{owner}/{repo}/blob/{quote(branch, safe='')}/{encode_repo_path(file_path)}"


def slugify_heading(title: Optional[str]) -> str:
    """GitHub-style anchor slug for a heading."""
    normalized = (title or "").strip().lower()
    if not normalized:
        return ""
    return _SLUG_STRIP.sub("", normalized).replace(" ", "-")


def append_fragment(url: Optional[str], slug: Optional[str]) -> Optional[str]:
    """Append `#slug` unless the URL already has a fragment."""
    if not url:
        return None
    if not slug or "#" in url:
        return url
    return f"{url}#{slug}"


class SourceLinkResolver:
    """Builds canonical links for stored chunks from repository and docs settings."""

    def __init__(
        self,
        github_url: Optional[str] = None,
        branch: Optional[str] = None,
        directory: Optional[str] = None,
        docs_base_url: Optional[str] = None,
        content_path: str = DEFAULT_CONTENT_PATH
    ):
        """Initialize source link resolver.

        Args:
            github_url: Repository URL used for source links
            branch: Branch overriding the URL's branch
            directory: Sub-directory of the repository the documents come from
            docs_base_url: Base URL of the rendered documentation site
            content_path: Content root stripped from paths for docs links
        """
        self._target = parse_github_url(github_url, branch) if github_url else None
        self._directory = normalize_repo_path(directory)
        self._docs_base_url = docs_base_url.rstrip("/") if docs_base_url else None
        self._content_path = normalize_repo_path(content_path)

    def repository_url(self, filepath: str) -> Optional[str]:
        """Source link on GitHub, or None without repository settings."""
        if self._target is None:
            return None
        scoped = join_repo_paths(self._target.path, self._directory)
        normalized = normalize_repo_path(filepath)
        if scoped and (normalized == scoped or normalized.startswith(f"{scoped}/")):
            repo_path = normalized
        else:
            repo_path = join_repo_paths(scoped, normalized)
        return build_source_url(self._target.owner, self._target.repo, self._target.branch, repo_path)

    def docs_url(self, filepath: str) -> Optional[str]:
        """Documentation site link for markdown files, or None."""
        if self._docs_base_url is None:
            return None
        if not DocumentFormat.from_file_extension(filepath).is_markdown:
            return None

        relative = filepath
        if self._content_path and relative.startswith(f"{self._content_path}/"):
            relative = relative[len(self._content_path) + 1:]
        relative = _MARKDOWN_EXTENSION.sub("", relative)
        if relative == "index":
            relative = ""
        elif relative.endswith("/index"):
            relative = relative[:-len("/index")]

        segments = [segment for segment in relative.split("/") if segment]
        if not segments:
            return self._docs_base_url or "/"
        encoded = "/".join(quote(segment, safe="") for segment in segments)
        return f"{self._docs_base_url}/{encoded}" if self._docs_base_url else f"/{encoded}"

    def resolve(self, filepath: str, title: Optional[str] = None) -> str:
        """Canonical link: docs link, else repository link, else the raw path."""
        clean_title = strip_wrapping_quotes(title or "")
        slug = slugify_heading(clean_title) if clean_title else ""

        docs = append_fragment(self.docs_url(filepath), slug)
        if docs:
            return docs
        repository = append_fragment(self.repository_url(filepath), slug)
        if repository:
            return repository
        return filepath
