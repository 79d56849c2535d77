"""Tests for the npm / PyPI adapters and package resolution."""

import asyncio

import httpx
import pytest

from osshealth.adapters.base import PackageNotFoundError, parse_repo_target, parse_repo_url
from osshealth.adapters.npm import NpmAdapter
from osshealth.adapters.pypi import PyPiAdapter
from osshealth.adapters.resolver import PackageResolver
from osshealth.models.schemas import InstallStats, Platform


def _client(routes: dict[str, httpx.Response | dict]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url not in routes:
            return httpx.Response(404, json={"error": "Not found"})
        route = routes[url]
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


NPM_LEFTPAD = {
    "name": "widget",
    "description": "Pads widgets",
    "dist-tags": {"latest": "1.3.0"},
    "versions": {"1.3.0": {"license": "WTFPL"}},
    "repository": {"type": "git", "url": "git+https://github.com/octo/widget.git"},
    "maintainers": [{"name": "octo"}],
    "keywords": ["pad"],
}

PYPI_WIDGET = {
    "info": {
        "name": "widget",
        "summary": "Widgets for Python",
        "version": "2.0.1",
        "author": "Octo Cat",
        "license": "",
        "classifiers": ["License :: OSI Approved :: MIT License"],
        "keywords": "widgets, ui",
        "project_urls": {"Source": "https://github.com/octo/widget"},
    }
}


class TestParseRepoUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/octo/widget",
            "https://github.com/octo/widget.git",
            "https://github.com/octo/widget/issues",
            "git@github.com:octo/widget.git",
            "git://github.com/octo/widget.git",
            "github.com/octo/widget#readme",
        ],
    )
    def test_github_forms(self, url):
        ref = parse_repo_url(url)
        assert ref.platform is Platform.GITHUB
        assert (ref.owner, ref.repo) == ("octo", "widget")

    def test_dotted_repo_name(self):
        assert parse_repo_url("https://github.com/vercel/next.js").repo == "next.js"

    def test_tree_subpath(self):
        ref = parse_repo_url("https://github.com/octo/mono/tree/main/packages/widget")
        assert ref.repo == "mono"
        assert ref.subpath == "packages/widget"

    def test_other_hosts(self):
        assert parse_repo_url("https://gitlab.com/g/p").platform is Platform.GITLAB
        assert parse_repo_url("https://bitbucket.org/t/r").platform is Platform.BITBUCKET
        assert parse_repo_url("https://example.com/x") is None

    def test_targets(self):
        assert parse_repo_target("octo/widget").full_name == "octo/widget"
        assert parse_repo_target("https://github.com/octo/widget").full_name == "octo/widget"
        assert parse_repo_target("widget") is None


class TestNpmAdapter:
    def test_metadata(self):
        adapter = NpmAdapter(client=_client({"https://registry.npmjs.org/widget": NPM_LEFTPAD}))
        metadata = asyncio.run(adapter.get_package_metadata("widget"))

        assert metadata.version == "1.3.0"
        assert metadata.license == "WTFPL"
        assert metadata.repository_url == "https://github.com/octo/widget"
        assert metadata.maintainers == ["octo"]
        assert adapter.get_source_repo(metadata).full_name == "octo/widget"

    def test_scoped_package_is_encoded(self):
        adapter = NpmAdapter(
            client=_client({"https://registry.npmjs.org/@octo%2Fwidget": {**NPM_LEFTPAD, "name": "@octo/widget"}})
        )
        metadata = asyncio.run(adapter.get_package_metadata("@octo/widget"))
        assert metadata.name == "@octo/widget"

    def test_missing_package(self):
        adapter = NpmAdapter(client=_client({}))
        with pytest.raises(PackageNotFoundError):
            asyncio.run(adapter.get_package_metadata("nope"))

    def test_github_shorthand(self):
        adapter = NpmAdapter(client=_client({}))
        assert adapter._extract_repo_url("github:octo/widget") == "https://github.com/octo/widget"

    def test_install_stats(self):
        adapter = NpmAdapter(
            client=_client(
                {"https://api.npmjs.org/downloads/point/last-month/widget": {"downloads": 4000}}
            )
        )
        stats = asyncio.run(adapter.get_install_stats("widget"))
        assert stats == InstallStats(downloads_last_30d=4000)

    def test_install_stats_unavailable(self):
        adapter = NpmAdapter(client=_client({}))
        assert asyncio.run(adapter.get_install_stats("widget")) is None


class TestPyPiAdapter:
    def test_metadata(self):
        adapter = PyPiAdapter(client=_client({"https://pypi.org/pypi/widget/json": PYPI_WIDGET}))
        metadata = asyncio.run(adapter.get_package_metadata("Widget"))

        assert metadata.version == "2.0.1"
        assert metadata.license == "MIT License"
        assert metadata.keywords == ["widgets", "ui"]
        assert metadata.maintainers == ["Octo Cat"]
        assert adapter.get_source_repo(metadata).full_name == "octo/widget"

    def test_install_stats(self):
        adapter = PyPiAdapter(
            client=_client(
                {
                    "https://pypistats.org/api/packages/widget/recent": {
                        "data": {"last_day": 10, "last_week": 70, "last_month": 300}
                    }
                }
            )
        )
        stats = asyncio.run(adapter.get_install_stats("widget"))
        assert stats == InstallStats(downloads_last_30d=300)


class TestPackageResolver:
    def _resolver(self, routes):
        client = _client(routes)
        return PackageResolver(npm=NpmAdapter(client=client), pypi=PyPiAdapter(client=client))

    def test_combines_registries(self):
        resolver = self._resolver(
            {
                "https://registry.npmjs.org/widget": NPM_LEFTPAD,
                "https://api.npmjs.org/downloads/point/last-month/widget": {"downloads": 4000},
                "https://pypi.org/pypi/widget/json": PYPI_WIDGET,
                "https://pypistats.org/api/packages/widget/recent": {
                    "data": {"last_month": 300}
                },
            }
        )
        info = asyncio.run(resolver.get_package_info("octo", "widget"))

        assert info.npm.name == "widget"
        assert info.pypi.name == "widget"
        assert info.downloads.npm == 4000
        assert info.downloads.pypi == 300
        assert info.downloads.total == 4300

    def test_no_packages(self):
        assert asyncio.run(self._resolver({}).get_package_info("octo", "widget")) is None

    def test_rejects_package_from_another_repository(self):
        resolver = self._resolver({"https://pypi.org/pypi/widget/json": PYPI_WIDGET})
        assert asyncio.run(resolver.get_package_info("someone-else", "widget")) is None

    def test_failing_downloads_count_as_zero(self):
        resolver = self._resolver(
            {
                "https://registry.npmjs.org/widget": NPM_LEFTPAD,
                "https://api.npmjs.org/downloads/point/last-month/widget": httpx.Response(500),
            }
        )
        info = asyncio.run(resolver.get_package_info("octo", "widget"))
        assert info.npm is not None
        assert info.pypi is None
        assert info.downloads.total == 0

    def test_registry_outage_is_not_fatal(self):
        resolver = self._resolver(
            {
                "https://registry.npmjs.org/widget": httpx.Response(503),
                "https://pypi.org/pypi/widget/json": PYPI_WIDGET,
            }
        )
        info = asyncio.run(resolver.get_package_info("octo", "widget"))
        assert info.npm is None
        assert info.pypi is not None
