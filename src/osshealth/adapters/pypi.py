"""PyPI package registry adapter."""

import logging
import re

import httpx

from osshealth.adapters.base import BaseAdapter, parse_repo_url
from osshealth.models.schemas import Ecosystem, InstallStats, PackageMetadata, RepoRef

logger = logging.getLogger(__name__)

_REPO_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")


class PyPiAdapter(BaseAdapter):
    """Adapter for Python Package Index (PyPI).

    Data sources:
    - Package metadata: https://pypi.org/pypi/{package}/json
    - Download stats: https://pypistats.org/api/packages/{package}/recent
    """

    PYPI_URL = "https://pypi.org/pypi"
    STATS_URL = "https://pypistats.org/api"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.PYPI

    async def get_package_metadata(self, name: str) -> PackageMetadata:
        """Fetch metadata for a PyPI package.

        Raises:
            PackageNotFoundError: If the package doesn't exist.
        """
        normalized_name = self._normalize_name(name)
        data = await self._fetch_metadata_json(f"{self.PYPI_URL}/{normalized_name}/json", name)

        info = data.get("info", {})
        maintainers = [
            person for person in (info.get("author"), info.get("maintainer")) if person
        ]

        return PackageMetadata(
            ecosystem=Ecosystem.PYPI,
            name=info.get("name", name),
            description=info.get("summary", "") or "",
            version=info.get("version", ""),
            homepage=info.get("home_page") or info.get("project_url"),
            repository_url=self._extract_repo_url(info),
            license=self._extract_license(info),
            keywords=self._parse_keywords(info),
            maintainers=maintainers,
        )

    def _normalize_name(self, name: str) -> str:
        """Normalize a PyPI package name.

        PyPI package names are case-insensitive and treat underscores,
        hyphens, and periods as equivalent.
        """
        return re.sub(r"[-_.]+", "-", name).lower()

    def _extract_repo_url(self, info: dict) -> str | None:
        """Extract repository URL from PyPI info.

        Checks project_urls for common keys like Source, Repository, GitHub.
        """
        project_urls = info.get("project_urls") or {}

        repo_keys = [
            "Source", "Source Code", "Repository", "GitHub",
            "Code", "Homepage", "Home", "source", "repository",
            "github", "Git", "git",
        ]

        for key in repo_keys:
            url = project_urls.get(key)
            if url and any(host in url for host in _REPO_HOSTS):
                return url

        homepage = info.get("home_page") or ""
        if any(host in homepage for host in _REPO_HOSTS):
            return homepage

        for url in project_urls.values():
            if url and any(host in url for host in _REPO_HOSTS):
                return url

        return None

    def _extract_license(self, info: dict) -> str | None:
        """Extract license from the license field or trove classifiers."""
        license_str = info.get("license")
        if license_str and license_str.strip() and license_str.upper() != "UNKNOWN":
            # Some packages put the full license text here
            if len(license_str) > 100:
                return None
            return license_str.strip()

        for classifier in info.get("classifiers", []):
            if classifier.startswith("License :: OSI Approved :: "):
                return classifier.replace("License :: OSI Approved :: ", "")

        return None

    def _parse_keywords(self, info: dict) -> list[str]:
        """Keywords can be a comma-separated string or already a list."""
        keywords = info.get("keywords")
        if not keywords:
            return []

        if isinstance(keywords, list):
            return keywords

        return [k.strip() for k in keywords.split(",") if k.strip()]

    async def get_install_stats(self, name: str) -> InstallStats | None:
        """Fetch recent download counts from pypistats.org.

        Returns None if pypistats has no data for the package.
        """
        normalized_name = self._normalize_name(name)

        try:
            data = await self._fetch_json(f"{self.STATS_URL}/packages/{normalized_name}/recent")
        except httpx.HTTPError as e:
            logger.info(f"Could not fetch PyPI downloads for {name}: {e}")
            return None

        # {"data": {"last_day": N, "last_week": N, "last_month": N}}
        stats_data = data.get("data", {})
        return InstallStats(downloads_last_30d=stats_data.get("last_month", 0))

    def get_source_repo(self, metadata: PackageMetadata) -> RepoRef | None:
        """Extract source repository reference, dropping tree/blob suffixes."""
        url = metadata.repository_url or metadata.homepage

        if not url:
            return None

        url = re.sub(r"/tree/[^/]+/?$", "", url)
        url = re.sub(r"/blob/[^/]+/?$", "", url)

        return parse_repo_url(url)
