"""Package registry adapters."""

from osshealth.adapters.base import BaseAdapter
from osshealth.adapters.npm import NpmAdapter
from osshealth.adapters.pypi import PyPiAdapter
from osshealth.adapters.resolver import PackageResolver

__all__ = ["BaseAdapter", "NpmAdapter", "PyPiAdapter", "PackageResolver"]
