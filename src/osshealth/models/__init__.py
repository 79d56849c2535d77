"""Data models and schemas."""

from osshealth.models.schemas import (
    AnalysisResult,
    PackageInfo,
    RawBundle,
    RepoRef,
    ScoredResult,
)

__all__ = ["AnalysisResult", "PackageInfo", "RawBundle", "RepoRef", "ScoredResult"]
