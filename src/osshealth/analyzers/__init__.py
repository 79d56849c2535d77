"""Analyzers for fetching, scoring and interpreting repository data."""

from osshealth.analyzers.github import GitHubFetcher
from osshealth.analyzers.pipeline import AnalysisPipeline
from osshealth.analyzers.scorer import Scorer

__all__ = ["GitHubFetcher", "AnalysisPipeline", "Scorer"]
