"""NPM package registry adapter."""

import logging

import httpx

from osshealth.adapters.base import BaseAdapter, parse_repo_url
from osshealth.models.schemas import Ecosystem, InstallStats, PackageMetadata, Platform, RepoRef

logger = logging.getLogger(__name__)


class NpmAdapter(BaseAdapter):
    """Adapter for NPM package registry.

    Data sources:
    - Package metadata: https://registry.npmjs.org/{package}
    - Download stats: https://api.npmjs.org/downloads/point/last-month/{package}
    """

    REGISTRY_URL = "https://registry.npmjs.org"
    DOWNLOADS_URL = "https://api.npmjs.org/downloads"

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.NPM

    async def get_package_metadata(self, name: str) -> PackageMetadata:
        """Fetch metadata for an NPM package.

        Args:
            name: Package name (supports scoped packages like @org/pkg).

        Raises:
            PackageNotFoundError: If the package doesn't exist.
        """
        # URL-encode scoped package names
        encoded_name = name.replace("/", "%2F")
        data = await self._fetch_metadata_json(f"{self.REGISTRY_URL}/{encoded_name}", name)

        dist_tags = data.get("dist-tags", {})
        latest_version = dist_tags.get("latest", "")
        version_data = data.get("versions", {}).get(latest_version, {})

        repository = data.get("repository") or version_data.get("repository")

        maintainers = data.get("maintainers", [])
        maintainer_names = [m.get("name", "") for m in maintainers if isinstance(m, dict)]

        return PackageMetadata(
            ecosystem=Ecosystem.NPM,
            name=data.get("name", name),
            description=data.get("description", "") or version_data.get("description", "") or "",
            version=latest_version,
            homepage=data.get("homepage") or version_data.get("homepage"),
            repository_url=self._extract_repo_url(repository),
            license=self._extract_license(data, version_data),
            keywords=data.get("keywords", []) or version_data.get("keywords", []) or [],
            maintainers=maintainer_names,
        )

    def _extract_repo_url(self, repository: dict | str | None) -> str | None:
        """Extract repository URL from npm repository field.

        Handles various formats:
        - {"type": "git", "url": "git+https://github.com/owner/repo.git"}
        - "github:owner/repo"
        - "https://github.com/owner/repo"
        """
        if not repository:
            return None

        if isinstance(repository, str):
            url = repository
        elif isinstance(repository, dict):
            url = repository.get("url", "")
        else:
            return None

        if not url:
            return None

        url = url.replace("git+", "").replace("git://", "https://")
        url = url.removesuffix(".git")

        if url.startswith("github:"):
            url = f"https://github.com/{url[7:]}"

        return url or None

    def _extract_license(self, data: dict, version_data: dict) -> str | None:
        """Extract license from npm package data."""
        license_info = data.get("license") or version_data.get("license")

        if isinstance(license_info, str):
            return license_info
        elif isinstance(license_info, dict):
            return license_info.get("type") or license_info.get("name")
        elif isinstance(license_info, list) and license_info:
            first = license_info[0]
            if isinstance(first, str):
                return first
            elif isinstance(first, dict):
                return first.get("type") or first.get("name")

        return None

    async def get_install_stats(self, name: str) -> InstallStats | None:
        """Fetch the last-month download count.

        Returns None if the downloads API cannot be reached.
        """
        encoded_name = name.replace("/", "%2F")

        try:
            month_data = await self._fetch_json(
                f"{self.DOWNLOADS_URL}/point/last-month/{encoded_name}"
            )
        except httpx.HTTPError as e:
            logger.info(f"Could not fetch npm downloads for {name}: {e}")
            return None

        return InstallStats(downloads_last_30d=month_data.get("downloads", 0))

    def get_source_repo(self, metadata: PackageMetadata) -> RepoRef | None:
        """Extract source repository reference from metadata.

        Extends base implementation with npm-specific URL handling.
        """
        url = metadata.repository_url or metadata.homepage

        if not url:
            return None

        url = url.replace("git+", "").replace("git://", "https://")
        url = url.removesuffix(".git")

        # GitHub shorthand: github:owner/repo
        if url.startswith("github:"):
            parts = url[7:].split("/")
            if len(parts) >= 2:
                return RepoRef(platform=Platform.GITHUB, owner=parts[0], repo=parts[1])

        # GitLab shorthand: gitlab:owner/repo
        if url.startswith("gitlab:"):
            parts = url[7:].split("/")
            if len(parts) >= 2:
                return RepoRef(platform=Platform.GITLAB, owner=parts[0], repo=parts[1])

        return parse_repo_url(url)
