"""Human-readable health insights derived from a scored analysis."""

from dataclasses import dataclass
from enum import Enum

from osshealth.models.schemas import AnalysisResult


class InsightType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Insight:
    type: InsightType
    category: str
    message: str


def health_status(score: int) -> str:
    """Label for a 0-100 score."""
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def generate_insights(result: AnalysisResult) -> list[Insight]:
    """Generate insights from an analysis, in category order.

    Each category contributes at most one insight, except Maintenance which
    can flag both stale issues and a low close ratio.
    """
    metrics = result.metrics
    repository = result.repository
    insights: list[Insight] = []

    if metrics.popularity.score >= 80:
        insights.append(
            Insight(
                InsightType.SUCCESS,
                "Popularity",
                "Excellent popularity with strong community adoption",
            )
        )
    elif metrics.popularity.score < 40:
        insights.append(
            Insight(
                InsightType.WARNING,
                "Popularity",
                "Low popularity - consider improving documentation and outreach",
            )
        )

    days_since_push = metrics.activity.metrics.days_since_last_push
    if days_since_push > 90:
        insights.append(
            Insight(
                InsightType.WARNING,
                "Activity",
                f"No recent activity ({days_since_push} days since last push)",
            )
        )
    elif metrics.activity.score >= 70:
        insights.append(
            Insight(InsightType.SUCCESS, "Activity", "Active development with regular updates")
        )

    maintenance = metrics.maintenance.metrics
    if maintenance.stale_issues > 20:
        insights.append(
            Insight(
                InsightType.WARNING,
                "Maintenance",
                f"High number of stale issues ({maintenance.stale_issues}) - needs attention",
            )
        )
    if maintenance.issue_close_ratio < 0.5:
        insights.append(
            Insight(
                InsightType.INFO,
                "Maintenance",
                "Low issue close ratio - consider improving issue triage",
            )
        )

    security = metrics.security.metrics
    if security.has_security_policy and security.has_dependabot:
        insights.append(
            Insight(
                InsightType.SUCCESS,
                "Security",
                "Good security practices with secret scanning and automated updates",
            )
        )
    else:
        insights.append(
            Insight(
                InsightType.INFO,
                "Security",
                "Consider enabling secret scanning and Dependabot security updates",
            )
        )

    community = metrics.community.metrics
    if community.total_contributors == 1:
        insights.append(
            Insight(
                InsightType.WARNING,
                "Community",
                "Single contributor - project is at risk if the maintainer becomes unavailable",
            )
        )
    elif community.external_contributors > 10:
        insights.append(
            Insight(
                InsightType.SUCCESS,
                "Community",
                "Strong external contributor base indicates a healthy community",
            )
        )

    if repository.license is None:
        insights.append(
            Insight(
                InsightType.WARNING,
                "Legal",
                "No license specified - may limit adoption and contributions",
            )
        )

    if not repository.has_wiki and not repository.description:
        insights.append(
            Insight(
                InsightType.INFO,
                "Documentation",
                "Consider adding documentation and a project description",
            )
        )

    return insights
