"""Match a GitHub repository to its npm / PyPI packages."""

import asyncio
import logging

import httpx

from osshealth.adapters.base import BaseAdapter, PackageNotFoundError
from osshealth.adapters.npm import NpmAdapter
from osshealth.adapters.pypi import PyPiAdapter
from osshealth.models.schemas import PackageDownloads, PackageInfo, PackageMetadata

logger = logging.getLogger(__name__)


class PackageResolver:
    """Looks a repository's name up in the npm and PyPI registries.

    A registry package is accepted unless it declares a source repository
    that is a different ``owner/repo``; packages that declare none are
    accepted on name alone.
    """

    def __init__(self, npm: NpmAdapter | None = None, pypi: PyPiAdapter | None = None) -> None:
        self.npm = npm or NpmAdapter()
        self.pypi = pypi or PyPiAdapter()

    async def get_package_info(self, owner: str, repo: str) -> PackageInfo | None:
        """Return matched packages with their monthly downloads, or None."""
        (npm_meta, npm_downloads), (pypi_meta, pypi_downloads) = await asyncio.gather(
            self._lookup(self.npm, owner, repo),
            self._lookup(self.pypi, owner, repo),
        )

        if npm_meta is None and pypi_meta is None:
            return None

        return PackageInfo(
            npm=npm_meta,
            pypi=pypi_meta,
            downloads=PackageDownloads(
                npm=npm_downloads,
                pypi=pypi_downloads,
                total=npm_downloads + pypi_downloads,
            ),
        )

    async def _lookup(
        self, adapter: BaseAdapter, owner: str, repo: str
    ) -> tuple[PackageMetadata | None, int]:
        ecosystem = adapter.ecosystem.value
        try:
            metadata = await adapter.get_package_metadata(repo)
        except PackageNotFoundError:
            logger.debug(f"No {ecosystem} package named {repo}")
            return None, 0
        except httpx.HTTPError as e:
            logger.info(f"{ecosystem} lookup for {repo} failed: {e}")
            return None, 0

        if not self._matches(adapter, metadata, owner, repo):
            logger.debug(f"{ecosystem} package {metadata.name} belongs to another repository")
            return None, 0

        stats = await adapter.get_install_stats(repo)
        downloads = (stats.downloads_last_30d or 0) if stats else 0
        return metadata, downloads

    @staticmethod
    def _matches(adapter: BaseAdapter, metadata: PackageMetadata, owner: str, repo: str) -> bool:
        source = adapter.get_source_repo(metadata)
        if source is None:
            return True
        return source.owner.lower() == owner.lower() and source.repo.lower() == repo.lower()
