"""Abstract base class for package registry adapters."""

import re
from abc import ABC, abstractmethod

import httpx

from osshealth.models.schemas import (
    Ecosystem,
    InstallStats,
    PackageMetadata,
    Platform,
    RepoRef,
)


class BaseAdapter(ABC):
    """Base class for package registry adapters.

    Each adapter normalizes data from a specific registry into a common
    schema for scoring.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 5.0) -> None:
        """Initialize the adapter.

        Args:
            client: Optional httpx client for making requests.
            timeout: Per-request timeout in seconds.
        """
        self._client = client
        self._timeout = timeout

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        """Return the ecosystem this adapter handles."""
        ...

    @abstractmethod
    async def get_package_metadata(self, name: str) -> PackageMetadata:
        """Fetch metadata for a single package.

        Raises:
            PackageNotFoundError: If the package doesn't exist.
        """
        ...

    @abstractmethod
    async def get_install_stats(self, name: str) -> InstallStats | None:
        """Fetch download statistics, or None if the registry has none."""
        ...

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _fetch_json(self, url: str, headers: dict | None = None) -> dict | list:
        """Fetch JSON from a URL."""
        client = await self._get_client()
        try:
            response = await client.get(url, headers=headers or {}, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        finally:
            if self._client is None:
                await client.aclose()

    async def _fetch_metadata_json(self, url: str, name: str) -> dict:
        """Fetch a package document, mapping 404 to PackageNotFoundError."""
        try:
            return await self._fetch_json(url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise PackageNotFoundError(self.ecosystem, name) from e
            raise

    def get_source_repo(self, metadata: PackageMetadata) -> RepoRef | None:
        """Extract source repository reference from metadata.

        Default implementation parses common URL patterns.
        Override for ecosystem-specific logic.
        """
        url = metadata.repository_url or metadata.homepage
        if not url:
            return None
        return parse_repo_url(url)


def parse_repo_url(url: str) -> RepoRef | None:
    """Parse a repository URL into a RepoRef.

    Supports GitHub, GitLab, and Bitbucket URLs.

    Args:
        url: Repository URL to parse.

    Returns:
        RepoRef if the URL can be parsed, None otherwise.
    """
    if not url:
        return None

    # GitHub patterns
    # https://github.com/owner/repo
    # https://github.com/owner/repo.git
    # https://github.com/owner/repo/tree/main/subpath
    # git://github.com/owner/repo.git
    # git@github.com:owner/repo.git
    github_patterns = [
        r"(?:https?://)?(?:www\.)?github\.com/([^/]+)/([^/\s#?]+?)(?:\.git)?(?:/tree/[^/]+/([^#?]+))?(?:[/#?].*)?$",
        r"git@github\.com:([^/]+)/([^/\s]+?)(?:\.git)?$",
        r"git://github\.com/([^/]+)/([^/\s]+?)(?:\.git)?$",
    ]

    for pattern in github_patterns:
        match = re.match(pattern, url)
        if match:
            groups = match.groups()
            return RepoRef(
                platform=Platform.GITHUB,
                owner=groups[0],
                repo=groups[1].rstrip("/"),
                subpath=groups[2] if len(groups) > 2 else None,
            )

    gitlab_patterns = [
        r"(?:https?://)?(?:www\.)?gitlab\.com/([^/]+)/([^/\s#?]+?)(?:\.git)?(?:[/#?].*)?$",
        r"git@gitlab\.com:([^/]+)/([^/\s]+?)(?:\.git)?$",
    ]

    for pattern in gitlab_patterns:
        match = re.match(pattern, url)
        if match:
            return RepoRef(
                platform=Platform.GITLAB,
                owner=match.group(1),
                repo=match.group(2).rstrip("/"),
            )

    bitbucket_patterns = [
        r"(?:https?://)?(?:www\.)?bitbucket\.org/([^/]+)/([^/\s#?]+?)(?:\.git)?(?:[/#?].*)?$",
        r"git@bitbucket\.org:([^/]+)/([^/\s]+?)(?:\.git)?$",
    ]

    for pattern in bitbucket_patterns:
        match = re.match(pattern, url)
        if match:
            return RepoRef(
                platform=Platform.BITBUCKET,
                owner=match.group(1),
                repo=match.group(2).rstrip("/"),
            )

    return None


def parse_repo_target(target: str) -> RepoRef | None:
    """Parse ``owner/repo`` shorthand or a full repository URL."""
    target = target.strip()
    shorthand = re.fullmatch(r"([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)", target)
    if shorthand:
        return RepoRef(
            platform=Platform.GITHUB,
            owner=shorthand.group(1),
            repo=shorthand.group(2),
        )
    return parse_repo_url(target)


class PackageNotFoundError(Exception):
    """Raised when a package cannot be found."""

    def __init__(self, ecosystem: Ecosystem, name: str) -> None:
        self.ecosystem = ecosystem
        self.name = name
        super().__init__(f"Package '{name}' not found in {ecosystem.value}")
