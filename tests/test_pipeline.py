"""Tests for the fetch orchestrator."""

import asyncio

import httpx
import pytest
from pydantic import ValidationError

from conftest import NOW, fixed_clock, issue, repository_payload
from osshealth.analyzers.github import (
    GitHubFetcher,
    RepositoryAccessDeniedError,
    RepositoryNotFoundError,
)
from osshealth.analyzers.pipeline import AnalysisPipeline, SourceResult, SourceStatus
from osshealth.cache import ResultCache
from osshealth.config import Settings
from osshealth.models.schemas import PackageDownloads, PackageInfo


class StubPackages:
    """Package resolver returning a fixed answer."""

    def __init__(self, info=None, error=None):
        self.info = info
        self.error = error

    async def get_package_info(self, owner, repo):
        if self.error:
            raise self.error
        return self.info


class GitHubStub:
    """Routes GitHub API paths to canned responses and counts requests."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)


def _pipeline(routes: dict, packages=None, cache=None):
    stub = GitHubStub(routes)
    github = GitHubFetcher(
        token="test-token", client=httpx.AsyncClient(transport=httpx.MockTransport(stub))
    )
    pipeline = AnalysisPipeline(
        github=github,
        packages=packages or StubPackages(),
        cache=cache,
        clock=fixed_clock,
    )
    return pipeline, stub


REPO_ROUTES = {
    "/repos/octo/widget": repository_payload(stargazers_count=10000),
    "/repos/octo/widget/contributors": [
        {"login": "octo", "contributions": 30},
        {"login": "alice", "contributions": 12},
    ],
    "/repos/octo/widget/issues": [
        issue("closed", created=5),
        issue("open", created=3),
        {**issue("open"), "pull_request": {"url": "x"}},
    ],
}


class TestSourceResult:
    def test_value_is_fetched(self):
        result = SourceResult.settle("issues", [1, 2], [])
        assert result.status is SourceStatus.FETCHED
        assert result.ok
        assert result.data == [1, 2]
        assert result.error is None

    def test_exception_degrades_to_default(self):
        error = httpx.ConnectError("boom")
        result = SourceResult.settle("issues", error, [])
        assert result.status is SourceStatus.DEGRADED
        assert result.data == []
        assert result.error is error

    def test_cancellation_is_reraised(self):
        with pytest.raises(asyncio.CancelledError):
            SourceResult.settle("issues", asyncio.CancelledError(), [])


class TestAnalyze:
    def test_full_analysis(self):
        info = PackageInfo(downloads=PackageDownloads(npm=100000, total=100000))
        pipeline, _ = _pipeline(REPO_ROUTES, packages=StubPackages(info))

        result = asyncio.run(pipeline.analyze("octo", "widget"))

        assert result.repository.full_name == "octo/widget"
        assert result.last_updated == NOW
        assert result.metrics.popularity.metrics.downloads == 100000
        assert result.metrics.popularity.score == 35
        assert result.metrics.community.metrics.total_contributors == 2
        assert result.metrics.maintenance.metrics.open_issues == 1
        assert result.metrics.maintenance.metrics.closed_issues == 1
        assert result.metrics.activity.metrics.recent_issues == 2

    def test_unknown_repository_fields_are_kept(self):
        routes = {"/repos/octo/widget": repository_payload(default_branch="main")}
        pipeline, _ = _pipeline(routes)
        payload = asyncio.run(pipeline.analyze("octo", "widget")).to_json_dict()
        assert payload["repository"]["default_branch"] == "main"
        assert "lastUpdated" in payload

    def test_failed_source_degrades(self, caplog):
        routes = {**REPO_ROUTES, "/repos/octo/widget/issues": httpx.Response(500)}
        pipeline, _ = _pipeline(routes, packages=StubPackages(error=RuntimeError("registry down")))

        with caplog.at_level("WARNING"):
            result = asyncio.run(pipeline.analyze("octo", "widget"))

        assert result.metrics.maintenance.score == 40
        assert result.metrics.popularity.metrics.downloads == 0
        assert "issues unavailable" in caplog.text
        assert "package_info unavailable" in caplog.text

    def test_fetch_sources_reports_status(self):
        routes = {**REPO_ROUTES, "/repos/octo/widget/releases": httpx.Response(500)}
        pipeline, _ = _pipeline(routes)

        sources = asyncio.run(pipeline.fetch_sources("octo", "widget"))

        assert sources["repository"].ok
        assert sources["releases"].status is SourceStatus.DEGRADED
        assert sources["releases"].data == []
        assert isinstance(sources["releases"].error, httpx.HTTPStatusError)

    def test_missing_repository(self):
        pipeline, _ = _pipeline({})
        with pytest.raises(RepositoryNotFoundError):
            asyncio.run(pipeline.analyze("octo", "missing"))

    def test_access_denied(self):
        routes = {"/repos/octo/secret": httpx.Response(403, json={"message": "Forbidden"})}
        pipeline, _ = _pipeline(routes)
        with pytest.raises(RepositoryAccessDeniedError):
            asyncio.run(pipeline.analyze("octo", "secret"))

    def test_repository_outage_maps_to_not_found(self):
        routes = {"/repos/octo/widget": httpx.Response(500)}
        pipeline, _ = _pipeline(routes)
        with pytest.raises(RepositoryNotFoundError) as exc_info:
            asyncio.run(pipeline.analyze("octo", "widget"))
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)


class TestCaching:
    def test_second_request_is_served_from_cache(self):
        pipeline, stub = _pipeline(REPO_ROUTES, cache=ResultCache())

        first = asyncio.run(pipeline.analyze("octo", "widget"))
        calls = len(stub.calls)
        second = asyncio.run(pipeline.analyze("octo", "widget"))

        assert second is first
        assert len(stub.calls) == calls

    def test_cached_result_is_immutable(self):
        pipeline, _ = _pipeline(REPO_ROUTES, cache=ResultCache())

        first = asyncio.run(pipeline.analyze("octo", "widget"))
        with pytest.raises(ValidationError):
            first.metrics.overall = 0
        with pytest.raises(ValidationError):
            first.last_updated = NOW
        with pytest.raises(ValidationError):
            first.repository.stargazers_count = 0

    def test_bypass_cache(self):
        pipeline, stub = _pipeline(REPO_ROUTES, cache=ResultCache())

        asyncio.run(pipeline.analyze("octo", "widget"))
        calls = len(stub.calls)
        asyncio.run(pipeline.analyze("octo", "widget", use_cache=False))

        assert len(stub.calls) == 2 * calls

    def test_failures_are_not_cached(self):
        cache = ResultCache()
        pipeline, _ = _pipeline({}, cache=cache)
        with pytest.raises(RepositoryNotFoundError):
            asyncio.run(pipeline.analyze("octo", "widget"))
        assert len(cache) == 0


def test_compare_keeps_order():
    routes = {
        **REPO_ROUTES,
        "/repos/octo/other": repository_payload(name="other", full_name="octo/other"),
    }
    pipeline, _ = _pipeline(routes)

    results = asyncio.run(pipeline.compare([("octo", "other"), ("octo", "widget")]))

    assert [r.repository.full_name for r in results] == ["octo/other", "octo/widget"]


def test_trending_delegates_to_github():
    routes = {"/search/repositories": {"items": [{"full_name": "a/b"}]}}
    pipeline, _ = _pipeline(routes)
    assert asyncio.run(pipeline.trending("go")) == [{"full_name": "a/b"}]


class TestLifecycle:
    def test_owned_client_is_closed(self):
        async def run():
            async with AnalysisPipeline.from_settings(Settings()) as pipeline:
                client = pipeline._http_client
                assert client is not None
                assert pipeline.cache.ttl_seconds == 600
            return client

        assert asyncio.run(run()).is_closed

    def test_injected_client_is_left_open(self):
        async def run():
            client = httpx.AsyncClient()
            async with AnalysisPipeline.from_settings(Settings(), client=client):
                pass
            closed = client.is_closed
            await client.aclose()
            return closed

        assert asyncio.run(run()) is False
