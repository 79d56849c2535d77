"""Score calculator for repository health metrics."""

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from osshealth.models.schemas import (
    ActivityBreakdown,
    ActivityMetrics,
    ActivityScore,
    CommunityBreakdown,
    CommunityMetrics,
    CommunityScore,
    ContributorDataSource,
    IssueState,
    MaintenanceBreakdown,
    MaintenanceMetrics,
    MaintenanceScore,
    PopularityBreakdown,
    PopularityMetrics,
    PopularityScore,
    RawBundle,
    ScoredResult,
    SecurityBreakdown,
    SecurityMetrics,
    SecurityScore,
    WorkItem,
    ensure_utc,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MetricsComputationError(Exception):
    """Raised when upstream data is too broken to score (e.g. no push date)."""


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up."""
    return math.floor(value + 0.5)


def round_to_cents(value: float) -> float:
    """Round to two decimals with .005 going up."""
    return round_half_up(value * 100) / 100


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(value, high))


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier.

    The day is clamped to the last day of the target month.
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    if month == 12:
        next_month = datetime(year + 1, 1, 1)
    else:
        next_month = datetime(year, month + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


@dataclass(frozen=True)
class ContributorSummary:
    """Contributor counts normalized from either data source."""

    source: ContributorDataSource
    total: int
    core: int
    external: int
    active: int
    total_commits: int = 0


def _is_external(login: str | None, owner_login: str) -> bool:
    return bool(login) and login.lower() != owner_login.lower()


class Scorer:
    """Calculates health scores from a RawBundle.

    Scoring weights (total 100%):
    - Popularity: 20%
    - Activity: 25%
    - Maintenance: 25%
    - Security: 15%
    - Community: 15%

    All time windows are measured against ``clock()``, read once per
    ``calculate_scores`` call. Inject a fixed clock for reproducible results.
    """

    WEIGHTS = {
        "popularity": 20,
        "activity": 25,
        "maintenance": 25,
        "security": 15,
        "community": 15,
    }

    RECENT_WORK_DAYS = 30
    RECENT_RELEASE_DAYS = 90
    STALE_DAYS = 30
    RECENT_ADVISORY_DAYS = 180
    ACTIVE_CONTRIBUTOR_MONTHS = 6
    CORE_CONTRIBUTOR_MIN = 10
    # Share of contributors assumed active when no weekly stats are available
    ESTIMATED_ACTIVE_SHARE = 0.3

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock

    def calculate_scores(self, bundle: RawBundle) -> ScoredResult:
        """Calculate all five sub-scores and the overall score.

        Raises:
            MetricsComputationError: If the repository has no push timestamp.
        """
        now = ensure_utc(self._clock())

        popularity = self.calculate_popularity_score(bundle)
        activity = self.calculate_activity_score(bundle, now)
        maintenance = self.calculate_maintenance_score(bundle, now)
        security = self.calculate_security_score(bundle, now)
        community = self.calculate_community_score(bundle, now)

        overall = self.calculate_overall_score(
            popularity=popularity.score,
            activity=activity.score,
            maintenance=maintenance.score,
            security=security.score,
            community=community.score,
        )

        return ScoredResult(
            popularity=popularity,
            activity=activity,
            maintenance=maintenance,
            security=security,
            community=community,
            overall=overall,
        )

    def calculate_overall_score(
        self,
        popularity: int,
        activity: int,
        maintenance: int,
        security: int,
        community: int,
    ) -> int:
        """Weighted sum of the sub-scores, rounded half up.

        Weights are integer percents summing to 100, so the sum stays in
        integer arithmetic and needs no clamp.
        """
        weighted = (
            popularity * self.WEIGHTS["popularity"]
            + activity * self.WEIGHTS["activity"]
            + maintenance * self.WEIGHTS["maintenance"]
            + security * self.WEIGHTS["security"]
            + community * self.WEIGHTS["community"]
        )
        return (weighted + 50) // 100

    def calculate_popularity_score(self, bundle: RawBundle) -> PopularityScore:
        repo = bundle.repository
        package_info = bundle.package_info
        metrics = PopularityMetrics(
            stars=repo.stargazers_count or 0,
            forks=repo.forks_count or 0,
            watchers=repo.watchers_count or 0,
            downloads=package_info.downloads.total if package_info else 0,
        )

        star_points = min(metrics.stars / 1000, 10) * 2  # max 20
        fork_points = min(metrics.forks / 200, 10) * 1.5  # max 15
        watcher_points = min(metrics.watchers / 100, 10) * 1  # max 10
        download_points = min(metrics.downloads / 10000, 10) * 1.5  # max 15

        score = min(star_points + fork_points + watcher_points + download_points, 100)

        return PopularityScore(
            score=round_half_up(score),
            metrics=metrics,
            breakdown=PopularityBreakdown(
                stars=round_half_up(star_points),
                forks=round_half_up(fork_points),
                watchers=round_half_up(watcher_points),
                downloads=round_half_up(download_points),
            ),
        )

    def calculate_activity_score(self, bundle: RawBundle, now: datetime) -> ActivityScore:
        pushed_at = bundle.repository.pushed_at
        if pushed_at is None:
            raise MetricsComputationError(
                f"Repository {bundle.repository.full_name or bundle.repository.name!r} "
                "has no pushed_at timestamp"
            )

        recent_cutoff = now - timedelta(days=self.RECENT_WORK_DAYS)
        release_cutoff = now - timedelta(days=self.RECENT_RELEASE_DAYS)

        recent_issues = sum(1 for i in bundle.issues if i.created_at > recent_cutoff)
        recent_prs = sum(1 for pr in bundle.pull_requests if pr.created_at > recent_cutoff)
        recent_releases = sum(1 for r in bundle.releases if r.created_at > release_cutoff)
        days_since_push = math.floor((now - pushed_at).total_seconds() / 86400)

        issue_points = min(recent_issues * 2, 25)
        pr_points = min(recent_prs * 3, 30)
        release_points = min(recent_releases * 10, 25)
        recency_points = self._recency_points(days_since_push)

        score = min(issue_points + pr_points + release_points + recency_points, 100)

        return ActivityScore(
            score=round_half_up(score),
            metrics=ActivityMetrics(
                recent_issues=recent_issues,
                recent_prs=recent_prs,
                recent_releases=recent_releases,
                days_since_last_push=days_since_push,
                last_push=pushed_at,
            ),
            breakdown=ActivityBreakdown(
                issues=issue_points,
                pull_requests=pr_points,
                releases=release_points,
                recency=recency_points,
            ),
        )

    def _recency_points(self, days_since_push: int) -> int:
        # Thresholds are "greater than": exactly 30 days still earns 20.
        if days_since_push > 180:
            return 0
        if days_since_push > 90:
            return 5
        if days_since_push > 30:
            return 10
        return 20

    def calculate_maintenance_score(
        self, bundle: RawBundle, now: datetime
    ) -> MaintenanceScore:
        stale_cutoff = now - timedelta(days=self.STALE_DAYS)

        open_issues, closed_issues = self._partition(bundle.issues)
        open_prs, closed_prs = self._partition(bundle.pull_requests)

        stale_issues = sum(1 for i in open_issues if i.updated_at < stale_cutoff)
        stale_prs = sum(1 for pr in open_prs if pr.updated_at < stale_cutoff)

        issue_close_ratio = self._ratio(len(closed_issues), len(closed_issues) + len(open_issues))
        pr_close_ratio = self._ratio(len(closed_prs), len(closed_prs) + len(open_prs))

        issue_points = issue_close_ratio * 30
        pr_points = pr_close_ratio * 30
        stale_issue_penalty = min(stale_issues * 2, 20)
        stale_pr_penalty = min(stale_prs * 3, 20)

        # 40 is the baseline for a repository with no issues or PRs at all
        score = clamp(issue_points + pr_points - stale_issue_penalty - stale_pr_penalty + 40)

        return MaintenanceScore(
            score=round_half_up(score),
            metrics=MaintenanceMetrics(
                open_issues=len(open_issues),
                closed_issues=len(closed_issues),
                open_prs=len(open_prs),
                closed_prs=len(closed_prs),
                stale_issues=stale_issues,
                stale_prs=stale_prs,
                issue_close_ratio=issue_close_ratio,
                pr_close_ratio=pr_close_ratio,
            ),
            breakdown=MaintenanceBreakdown(
                issue_management=round_half_up(issue_points),
                pr_management=round_half_up(pr_points),
                stale_penalty=stale_issue_penalty + stale_pr_penalty,
            ),
        )

    @staticmethod
    def _partition(items: list[WorkItem]) -> tuple[list[WorkItem], list[WorkItem]]:
        open_items = [i for i in items if i.state == IssueState.OPEN]
        closed_items = [i for i in items if i.state == IssueState.CLOSED]
        return open_items, closed_items

    @staticmethod
    def _ratio(part: int | float, whole: int | float) -> float:
        """Division defined as 0 for an empty whole."""
        if whole <= 0:
            return 0.0
        return part / whole

    def calculate_security_score(self, bundle: RawBundle, now: datetime) -> SecurityScore:
        repo = bundle.repository
        advisories = bundle.security
        has_security_policy = repo.has_secret_scanning
        has_dependabot = repo.has_dependabot_updates

        feature_points = (15 if has_security_policy else 0) + (15 if has_dependabot else 0)
        advisory_penalty = min(len(advisories) * 5, 30)

        recent_cutoff = now - timedelta(days=self.RECENT_ADVISORY_DAYS)
        recent_advisories = [
            a for a in advisories if a.published_at is not None and a.published_at > recent_cutoff
        ]
        # Rewards handling a recent advisory; impossible with no advisories
        responsiveness_bonus = 10 if recent_advisories and advisories else 0

        score = clamp(60 + feature_points - advisory_penalty + responsiveness_bonus)

        return SecurityScore(
            score=round_half_up(score),
            metrics=SecurityMetrics(
                security_advisories=len(advisories),
                has_security_policy=has_security_policy,
                has_dependabot=has_dependabot,
            ),
            breakdown=SecurityBreakdown(
                security_features=feature_points,
                advisory_penalty=advisory_penalty,
                responsiveness_bonus=responsiveness_bonus,
            ),
        )

    def summarize_contributors(self, bundle: RawBundle, now: datetime) -> ContributorSummary:
        """Normalize whichever contributor data the bundle carries."""
        if bundle.contributor_source is ContributorDataSource.DETAILED:
            return self._summarize_detailed(bundle, now)
        return self._summarize_basic(bundle)

    def _summarize_detailed(self, bundle: RawBundle, now: datetime) -> ContributorSummary:
        owner = bundle.repository.owner_login
        active_cutoff = months_before(now, self.ACTIVE_CONTRIBUTOR_MONTHS)
        stats = bundle.contributor_stats

        active = sum(
            1
            for stat in stats
            if any(w.week_start > active_cutoff and w.has_activity for w in stat.weeks)
        )
        return ContributorSummary(
            source=ContributorDataSource.DETAILED,
            total=len(stats),
            core=sum(1 for stat in stats if stat.total >= self.CORE_CONTRIBUTOR_MIN),
            external=sum(1 for stat in stats if _is_external(stat.login, owner)),
            active=active,
            total_commits=sum(stat.total for stat in stats),
        )

    def _summarize_basic(self, bundle: RawBundle) -> ContributorSummary:
        owner = bundle.repository.owner_login
        contributors = bundle.contributors
        total = len(contributors)
        return ContributorSummary(
            source=ContributorDataSource.BASIC,
            total=total,
            core=sum(1 for c in contributors if c.contributions >= self.CORE_CONTRIBUTOR_MIN),
            external=sum(1 for c in contributors if _is_external(c.login, owner)),
            active=math.floor(total * self.ESTIMATED_ACTIVE_SHARE),
        )

    def calculate_community_score(self, bundle: RawBundle, now: datetime) -> CommunityScore:
        repo = bundle.repository
        contributors = self.summarize_contributors(bundle, now)

        total_comments = sum(i.comments for i in bundle.issues) + sum(
            pr.comments for pr in bundle.pull_requests
        )
        diversity = (
            self._ratio(contributors.external, contributors.total)
            if contributors.total > 1
            else 0.0
        )
        activity_ratio = self._ratio(contributors.active, contributors.total)

        # Logarithmic so very large projects do not run away with the score
        contributor_points = min(math.log10(contributors.total + 1) * 15, 25)
        core_points = min(contributors.core * 3, 20)
        diversity_points = diversity * 20
        activity_points = activity_ratio * 15
        engagement_points = min(total_comments / 20, 10)
        feature_points = (5 if repo.has_wiki else 0) + (5 if repo.has_discussions else 0)

        score = min(
            contributor_points
            + core_points
            + diversity_points
            + activity_points
            + engagement_points
            + feature_points,
            100,
        )

        avg_comments = (
            round_to_cents(total_comments / len(bundle.issues)) if bundle.issues else 0.0
        )

        return CommunityScore(
            score=round_half_up(score),
            metrics=CommunityMetrics(
                total_contributors=contributors.total,
                core_contributors=contributors.core,
                external_contributors=contributors.external,
                active_contributors=contributors.active,
                total_comments=total_comments,
                total_commits=contributors.total_commits,
                contributor_diversity=round_to_cents(diversity),
                activity_ratio=round_to_cents(activity_ratio),
                avg_comments_per_issue=avg_comments,
                has_wiki=repo.has_wiki,
                has_discussions=repo.has_discussions,
                data_source=contributors.source,
            ),
            breakdown=CommunityBreakdown(
                contributors=round_half_up(contributor_points),
                core_contributors=core_points,
                diversity=round_half_up(diversity_points),
                activity=round_half_up(activity_points),
                engagement=round_half_up(engagement_points),
                features=feature_points,
            ),
        )


def calculate_scores(bundle: RawBundle, now: datetime | None = None) -> ScoredResult:
    """Score a bundle, optionally against a fixed ``now``."""
    clock = (lambda: now) if now is not None else utc_now
    return Scorer(clock=clock).calculate_scores(bundle)
