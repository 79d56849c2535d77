"""End-to-end analysis pipeline for repositories."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from osshealth.adapters.npm import NpmAdapter
from osshealth.adapters.pypi import PyPiAdapter
from osshealth.adapters.resolver import PackageResolver
from osshealth.analyzers.github import (
    GitHubFetcher,
    RepositoryAccessDeniedError,
    RepositoryNotFoundError,
)
from osshealth.analyzers.scorer import Clock, Scorer, utc_now
from osshealth.cache import ResultCache, cache_key
from osshealth.config import Settings
from osshealth.models.schemas import AnalysisResult, RawBundle

logger = logging.getLogger(__name__)


class SourceStatus(str, Enum):
    FETCHED = "fetched"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one upstream fetch: its data, or a default plus the error."""

    name: str
    status: SourceStatus
    data: Any
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is SourceStatus.FETCHED

    @classmethod
    def settle(cls, name: str, outcome: Any, default: Any) -> "SourceResult":
        """Wrap a value returned by ``asyncio.gather(..., return_exceptions=True)``."""
        if isinstance(outcome, Exception):
            return cls(name, SourceStatus.DEGRADED, default, outcome)
        if isinstance(outcome, BaseException):
            # Cancellation and interpreter exits are not data-source failures
            raise outcome
        return cls(name, SourceStatus.FETCHED, outcome)


class AnalysisPipeline:
    """Orchestrates fetching, scoring and caching for one repository at a time.

    Pipeline stages:
    1. Serve from the response cache if a fresh entry exists
    2. Fetch every upstream source concurrently, degrading failed ones
    3. Assemble the RawBundle (repository is mandatory)
    4. Calculate scores
    5. Cache and return the AnalysisResult
    """

    def __init__(
        self,
        github: GitHubFetcher,
        packages: PackageResolver,
        scorer: Scorer | None = None,
        cache: ResultCache[AnalysisResult] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the pipeline.

        Args:
            github: GitHub client.
            packages: npm / PyPI package resolver.
            scorer: Score calculator. Defaults to one sharing ``clock``.
            cache: Response cache. Pass None to disable caching.
            clock: Source of "now" for scoring windows and ``lastUpdated``.
        """
        self.github = github
        self.packages = packages
        self.scorer = scorer or Scorer(clock=clock)
        self.cache = cache
        self._clock = clock
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ) -> "AnalysisPipeline":
        """Wire up collaborators from settings around one shared HTTP client.

        If no client is given, one is created and closed by ``aclose``.
        """
        owned = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=settings.github_timeout, follow_redirects=True)

        pipeline = cls(
            github=GitHubFetcher(
                token=settings.github_token,
                client=client,
                timeout=settings.github_timeout,
                max_contributor_pages=settings.max_contributor_pages,
            ),
            packages=PackageResolver(
                npm=NpmAdapter(client=client, timeout=settings.registry_timeout),
                pypi=PyPiAdapter(client=client, timeout=settings.registry_timeout),
            ),
            cache=ResultCache(ttl_seconds=settings.cache_ttl_seconds),
        )
        if owned:
            pipeline._http_client = client
        return pipeline

    async def __aenter__(self) -> "AnalysisPipeline":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this pipeline created it."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_sources(self, owner: str, repo: str) -> dict[str, SourceResult]:
        """Fetch all sources concurrently and settle each one independently."""
        fetches = {
            "repository": (self.github.get_repository(owner, repo), None),
            "contributors": (self.github.get_contributors(owner, repo), []),
            "contributor_stats": (self.github.get_contributor_stats(owner, repo), []),
            "issues": (self.github.get_issues(owner, repo), []),
            "pull_requests": (self.github.get_pull_requests(owner, repo), []),
            "releases": (self.github.get_releases(owner, repo), []),
            "security": (self.github.get_security_advisories(owner, repo), []),
            "package_info": (self.packages.get_package_info(owner, repo), None),
        }
        outcomes = await asyncio.gather(
            *(coro for coro, _ in fetches.values()), return_exceptions=True
        )

        results = {}
        for (name, (_, default)), outcome in zip(fetches.items(), outcomes):
            result = SourceResult.settle(name, outcome, default)
            if not result.ok:
                logger.warning(f"{owner}/{repo}: {name} unavailable ({result.error!r})")
            results[name] = result
        return results

    async def fetch_bundle(self, owner: str, repo: str) -> RawBundle:
        """Fetch and assemble the RawBundle for a repository.

        Raises:
            RepositoryNotFoundError: If the repository could not be fetched.
            RepositoryAccessDeniedError: If GitHub denied access to it.
            pydantic.ValidationError: If an upstream record is malformed.
        """
        sources = await self.fetch_sources(owner, repo)

        repository = sources["repository"]
        if not repository.ok:
            if isinstance(repository.error, (RepositoryAccessDeniedError, RepositoryNotFoundError)):
                raise repository.error
            raise RepositoryNotFoundError(owner, repo) from repository.error

        return RawBundle.model_validate({name: result.data for name, result in sources.items()})

    async def analyze(self, owner: str, repo: str, use_cache: bool = True) -> AnalysisResult:
        """Run full analysis on a single repository.

        Args:
            owner: Repository owner login.
            repo: Repository name.
            use_cache: Serve a fresh cached result if there is one.

        Returns:
            Complete AnalysisResult.
        """
        key = cache_key(owner, repo)
        if use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Serving cached result for {key}")
                return cached

        logger.info(f"Analyzing repository: {key}")
        bundle = await self.fetch_bundle(owner, repo)
        metrics = self.scorer.calculate_scores(bundle)

        result = AnalysisResult(
            repository=bundle.repository,
            metrics=metrics,
            last_updated=self._clock(),
        )

        if self.cache is not None:
            self.cache.set(key, result)

        return result

    async def compare(
        self, targets: list[tuple[str, str]], use_cache: bool = True
    ) -> list[AnalysisResult]:
        """Analyze several repositories, returning results in input order."""
        results = []
        for owner, repo in targets:
            results.append(await self.analyze(owner, repo, use_cache=use_cache))
        return results

    async def trending(self, language: str | None = None) -> list[dict]:
        """Most-starred repositories, for suggestions."""
        return await self.github.get_trending(language)
