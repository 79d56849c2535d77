"""Shared test helpers: a fixed clock and builders for GitHub-shaped payloads."""

from datetime import datetime, timedelta, timezone

from osshealth.analyzers.scorer import Scorer
from osshealth.models.schemas import AnalysisResult, RawBundle

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def days_ago(days: float) -> str:
    return iso(NOW - timedelta(days=days))


def repository_payload(**overrides) -> dict:
    payload = {
        "name": "widget",
        "full_name": "octo/widget",
        "description": "A widget library",
        "html_url": "https://github.com/octo/widget",
        "owner": {"login": "octo"},
        "stargazers_count": 0,
        "forks_count": 0,
        "watchers_count": 0,
        "open_issues_count": 0,
        "created_at": days_ago(1000),
        "updated_at": days_ago(1),
        "pushed_at": days_ago(1),
        "has_wiki": False,
        "has_discussions": False,
        "license": {"key": "mit", "name": "MIT License", "spdx_id": "MIT"},
        "language": "Python",
    }
    payload.update(overrides)
    return payload


def issue(state: str = "open", created: float = 100, updated: float = 1, comments: int = 0) -> dict:
    return {
        "state": state,
        "created_at": days_ago(created),
        "updated_at": days_ago(updated),
        "comments": comments,
    }


def make_bundle(repository: dict | None = None, **fields) -> RawBundle:
    return RawBundle.model_validate(
        {"repository": repository or repository_payload(), **fields}
    )


def make_result(bundle: RawBundle | None = None) -> AnalysisResult:
    bundle = bundle or make_bundle()
    return AnalysisResult(
        repository=bundle.repository,
        metrics=Scorer(clock=fixed_clock).calculate_scores(bundle),
        last_updated=NOW,
    )
