"""JSON report and CSV comparison export."""

import csv
import json
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from osshealth.models.schemas import AnalysisResult

GENERATED_BY = "osshealth"

CSV_HEADER = [
    "Repository",
    "Overall Score",
    "Popularity",
    "Activity",
    "Maintenance",
    "Security",
    "Community",
    "Stars",
    "Forks",
    "Contributors",
    "Language",
    "License",
]


def build_json_report(result: AnalysisResult) -> dict:
    """Flatten an analysis into the shareable health report layout."""
    repo = result.repository
    m = result.metrics

    def iso(value):
        return value.isoformat() if value is not None else None

    return {
        "repository": {
            "name": repo.full_name,
            "description": repo.description,
            "url": repo.html_url,
            "stars": repo.stargazers_count,
            "forks": repo.forks_count,
            "language": repo.language,
            "license": repo.license.name if repo.license else None,
            "created_at": iso(repo.created_at),
            "updated_at": iso(repo.updated_at),
        },
        "health_metrics": {
            "overall_score": m.overall,
            "popularity": {
                "score": m.popularity.score,
                "stars": m.popularity.metrics.stars,
                "forks": m.popularity.metrics.forks,
                "downloads": m.popularity.metrics.downloads,
            },
            "activity": {
                "score": m.activity.score,
                "recent_issues": m.activity.metrics.recent_issues,
                "recent_prs": m.activity.metrics.recent_prs,
                "recent_releases": m.activity.metrics.recent_releases,
                "days_since_last_push": m.activity.metrics.days_since_last_push,
            },
            "maintenance": {
                "score": m.maintenance.score,
                "open_issues": m.maintenance.metrics.open_issues,
                "issue_close_ratio": m.maintenance.metrics.issue_close_ratio,
                "stale_issues": m.maintenance.metrics.stale_issues,
            },
            "security": {
                "score": m.security.score,
                "has_security_policy": m.security.metrics.has_security_policy,
                "has_dependabot": m.security.metrics.has_dependabot,
                "security_advisories": m.security.metrics.security_advisories,
            },
            "community": {
                "score": m.community.score,
                "total_contributors": m.community.metrics.total_contributors,
                "external_contributors": m.community.metrics.external_contributors,
                "total_comments": m.community.metrics.total_comments,
            },
        },
        "analysis_date": result.last_updated.isoformat(),
        "generated_by": GENERATED_BY,
    }


def report_filename(result: AnalysisResult) -> str:
    name = result.repository.full_name or result.repository.name
    return f"{name.replace('/', '_')}_health_report.json"


def write_json_report(result: AnalysisResult, path: Path) -> None:
    path.write_text(json.dumps(build_json_report(result), indent=2))


def csv_row(result: AnalysisResult) -> list:
    repo = result.repository
    m = result.metrics
    return [
        repo.full_name,
        m.overall,
        m.popularity.score,
        m.activity.score,
        m.maintenance.score,
        m.security.score,
        m.community.score,
        repo.stargazers_count,
        repo.forks_count,
        m.community.metrics.total_contributors,
        repo.language or "N/A",
        (repo.license.name if repo.license else None) or "N/A",
    ]


def write_csv(results: Iterable[AnalysisResult], stream: TextIO) -> None:
    """Write a comparison table, one row per analysis, every field quoted."""
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for result in results:
        writer.writerow(csv_row(result))
