"""GitHub data fetcher for repository health analysis."""

import logging
import os
from datetime import datetime, timezone

import httpx

logger = logging.getLogger(__name__)


class RepositoryNotFoundError(Exception):
    """Raised when a repository does not exist or cannot be fetched."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo
        super().__init__(f"Repository '{owner}/{repo}' not found")


class RepositoryAccessDeniedError(Exception):
    """Raised when GitHub answers 403 for a repository (private or no scope)."""

    def __init__(self, owner: str, repo: str, message: str = "") -> None:
        self.owner = owner
        self.repo = repo
        detail = f": {message}" if message else ""
        super().__init__(f"Access to repository '{owner}/{repo}' denied{detail}")


class GitHubFetcher:
    """Fetches raw repository records from the GitHub REST API.

    Each ``get_*`` method performs an independent request and raises on
    failure; callers decide how to degrade. Pass a shared ``httpx.AsyncClient``
    to reuse connections across calls. Set GITHUB_TOKEN or pass ``token`` for
    higher rate limits.
    """

    BASE_URL = "https://api.github.com"
    LOW_RATE_LIMIT = 100

    def __init__(
        self,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_contributor_pages: int = 100,
    ) -> None:
        """Initialize the fetcher.

        Args:
            token: GitHub personal access token. If not provided, uses GITHUB_TOKEN env var.
            client: Optional httpx client. If not provided, one is created per request.
            timeout: Per-request timeout in seconds.
            max_contributor_pages: Safety cap on contributor pagination.
        """
        self._token = token or os.environ.get("GITHUB_TOKEN")
        self._client = client
        self._timeout = timeout
        self.max_contributor_pages = max_contributor_pages

        # Rate limit tracking
        self.rate_limit_remaining: int = 5000
        self.rate_limit_total: int = 5000
        self.rate_limit_reset: datetime | None = None

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "osshealth",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=self._timeout, headers=self._headers())

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Extract and store rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        limit = response.headers.get("X-RateLimit-Limit")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining is not None:
            self.rate_limit_remaining = int(remaining)
            if self.rate_limit_remaining < self.LOW_RATE_LIMIT:
                logger.warning(
                    f"GitHub rate limit low: {self.rate_limit_remaining} requests remaining"
                )
        if limit is not None:
            self.rate_limit_total = int(limit)
        if reset is not None:
            self.rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

    async def _request(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET a path and return the response after rate-limit bookkeeping.

        Raises for any status >= 400 except 404, which is returned as-is.
        """
        client = await self._get_client()
        url = f"{self.BASE_URL}{path}"

        try:
            response = await client.get(
                url, params=params, headers=self._headers(), timeout=self._timeout
            )
            self._update_rate_limits(response)
            if response.status_code == 404:
                logger.debug(f"GitHub 404 for {path}")
                return response
            if response.status_code == 403:
                logger.error(f"GitHub 403 for {path}: {_error_message(response)}")
            response.raise_for_status()
            return response
        finally:
            if self._client is None:
                await client.aclose()

    async def _fetch(self, path: str, params: dict | None = None) -> dict | list | None:
        """Fetch JSON from GitHub API.

        Returns None if 404, raises on other errors.
        """
        response = await self._request(path, params)
        if response.status_code == 404:
            return None
        return response.json()

    async def _fetch_list(self, path: str, params: dict | None = None) -> list:
        data = await self._fetch(path, params)
        if not isinstance(data, list):
            return []
        return data

    async def _fetch_all_pages(
        self,
        path: str,
        params: dict | None = None,
        max_pages: int = 10,
    ) -> list:
        """Fetch all pages from a paginated endpoint."""
        params = dict(params or {})
        params.setdefault("per_page", 100)

        results = []
        page = 1

        while page <= max_pages:
            params["page"] = page
            data = await self._fetch(path, params)
            if not data:
                break

            results.extend(data)

            # Short page means this was the last one
            if len(data) < params["per_page"]:
                break
            page += 1
        else:
            logger.info(
                f"Stopped paginating {path} after {max_pages} pages ({len(results)} items)"
            )

        return results

    async def get_repository(self, owner: str, repo: str) -> dict:
        """Fetch the repository payload.

        Raises:
            RepositoryNotFoundError: If GitHub answers 404.
            RepositoryAccessDeniedError: If GitHub answers 403.
        """
        try:
            data = await self._fetch(f"/repos/{owner}/{repo}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 403:
                raise RepositoryAccessDeniedError(owner, repo, _error_message(e.response)) from e
            raise
        if data is None:
            raise RepositoryNotFoundError(owner, repo)
        return data

    async def get_contributors(self, owner: str, repo: str) -> list[dict]:
        """Fetch every contributor, anonymous ones included."""
        contributors = await self._fetch_all_pages(
            f"/repos/{owner}/{repo}/contributors",
            params={"anon": "true"},
            max_pages=self.max_contributor_pages,
        )
        logger.debug(f"Fetched {len(contributors)} contributors for {owner}/{repo}")
        return contributors

    async def get_contributor_stats(self, owner: str, repo: str) -> list[dict]:
        """Fetch per-contributor weekly commit statistics.

        GitHub computes these lazily and answers 202 until they are ready; an
        empty list is returned in that case.
        """
        response = await self._request(f"/repos/{owner}/{repo}/stats/contributors")
        if response.status_code in (202, 204, 404):
            logger.info(f"Contributor stats not ready for {owner}/{repo}")
            return []
        data = response.json()
        return data if isinstance(data, list) else []

    async def get_issues(self, owner: str, repo: str) -> list[dict]:
        """Fetch the 100 most recently updated issues, pull requests excluded."""
        issues = await self._fetch_list(
            f"/repos/{owner}/{repo}/issues",
            params={"state": "all", "per_page": 100, "sort": "updated", "direction": "desc"},
        )
        # The issues endpoint also returns pull requests
        return [i for i in issues if "pull_request" not in i]

    async def get_pull_requests(self, owner: str, repo: str) -> list[dict]:
        """Fetch the 100 most recently updated pull requests."""
        return await self._fetch_list(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "all", "per_page": 100, "sort": "updated", "direction": "desc"},
        )

    async def get_releases(self, owner: str, repo: str) -> list[dict]:
        """Fetch the 30 most recent releases."""
        return await self._fetch_list(
            f"/repos/{owner}/{repo}/releases",
            params={"per_page": 30},
        )

    async def get_security_advisories(self, owner: str, repo: str) -> list[dict]:
        """Fetch repository security advisories (empty when none are published)."""
        return await self._fetch_list(f"/repos/{owner}/{repo}/security-advisories")

    async def get_trending(self, language: str | None = None, limit: int = 10) -> list[dict]:
        """Fetch the most-starred repositories, optionally for one language."""
        query = f"language:{language}" if language else "stars:>1"
        data = await self._fetch(
            "/search/repositories",
            params={"q": query, "sort": "stars", "order": "desc", "per_page": limit},
        )
        if not isinstance(data, dict):
            return []
        return data.get("items", [])


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("message", "")
    return ""
