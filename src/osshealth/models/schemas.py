"""Pydantic models for repository data and health scores."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel


def ensure_utc(value: datetime) -> datetime:
    """Read naive timestamps as UTC so window comparisons never mix kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

# Upstream payloads send explicit nulls for counts and flags they do not track
Count = Annotated[int, BeforeValidator(lambda v: 0 if v is None else v)]
Flag = Annotated[bool, BeforeValidator(lambda v: False if v is None else v)]


class Platform(str, Enum):
    """Source code hosting platforms."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


class Ecosystem(str, Enum):
    """Package ecosystems."""

    NPM = "npm"
    PYPI = "pypi"


class ContributorDataSource(str, Enum):
    """Which contributor data the community score is computed from."""

    DETAILED = "detailed"  # /stats/contributors with weekly buckets
    BASIC = "basic"  # /contributors list only


class IssueState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class RepoRef(BaseModel):
    """Reference to a source code repository."""

    platform: Platform
    owner: str
    repo: str
    subpath: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


# --- Package registry models ---


class PackageMetadata(BaseModel):
    """Core package metadata from any ecosystem."""

    ecosystem: Ecosystem
    name: str
    description: str = ""
    version: str
    homepage: str | None = None
    repository_url: str | None = None
    license: str | None = None
    keywords: list[str] = Field(default_factory=list)
    maintainers: list[str] = Field(default_factory=list)


class InstallStats(BaseModel):
    """Installation/download statistics."""

    downloads_last_30d: int | None = None


class PackageDownloads(BaseModel):
    """Download counts per registry, summed into ``total``."""

    npm: Count = 0
    pypi: Count = 0
    total: Count = 0


class PackageInfo(BaseModel):
    """Registry packages matched to a repository."""

    npm: PackageMetadata | None = None
    pypi: PackageMetadata | None = None
    downloads: PackageDownloads = Field(default_factory=PackageDownloads)


# --- GitHub records ---


class RepositoryOwner(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    login: str = ""


class FeatureStatus(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    status: str | None = None

    @property
    def enabled(self) -> bool:
        return self.status == "enabled"


class SecurityAndAnalysis(BaseModel):
    """The ``security_and_analysis`` block of a GitHub repository."""

    model_config = ConfigDict(extra="allow", frozen=True)

    secret_scanning: FeatureStatus | None = None
    dependabot_security_updates: FeatureStatus | None = None


class RepositoryLicense(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    key: str | None = None
    name: str | None = None
    spdx_id: str | None = None


class RepositoryRecord(BaseModel):
    """GitHub repository payload.

    Field names follow the GitHub REST API. Fields not modelled here are kept
    so the full payload can be handed back to API clients.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = ""
    full_name: str = ""
    description: str | None = None
    html_url: str | None = None
    owner: RepositoryOwner | None = None
    stargazers_count: Count = 0
    forks_count: Count = 0
    watchers_count: Count = 0
    open_issues_count: Count = 0
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
    pushed_at: UtcDatetime | None = None
    has_wiki: Flag = False
    has_discussions: Flag = False
    license: RepositoryLicense | None = None
    language: str | None = None
    topics: list[str] = Field(default_factory=list)
    security_and_analysis: SecurityAndAnalysis | None = None

    @property
    def owner_login(self) -> str:
        return self.owner.login if self.owner else ""

    @property
    def has_secret_scanning(self) -> bool:
        sa = self.security_and_analysis
        return bool(sa and sa.secret_scanning and sa.secret_scanning.enabled)

    @property
    def has_dependabot_updates(self) -> bool:
        sa = self.security_and_analysis
        return bool(
            sa and sa.dependabot_security_updates and sa.dependabot_security_updates.enabled
        )


class Contributor(BaseModel):
    """Entry of the ``/contributors`` list (anonymous entries have no login)."""

    model_config = ConfigDict(frozen=True)

    login: str | None = None
    contributions: Count = 0


class ContributorWeek(BaseModel):
    """Weekly bucket from ``/stats/contributors`` (GitHub keys w/c/a/d)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    week: int = Field(alias="w")  # unix seconds, start of week
    commits: Count = Field(default=0, alias="c")
    additions: Count = Field(default=0, alias="a")
    deletions: Count = Field(default=0, alias="d")

    @property
    def week_start(self) -> datetime:
        return datetime.fromtimestamp(self.week, tz=timezone.utc)

    @property
    def has_activity(self) -> bool:
        return self.commits > 0 or self.additions > 0 or self.deletions > 0


class ContributorAuthor(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: str | None = None


class ContributorStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: ContributorAuthor | None = None
    total: Count = 0
    weeks: list[ContributorWeek] = Field(default_factory=list)

    @property
    def login(self) -> str | None:
        return self.author.login if self.author else None


class WorkItem(BaseModel):
    """Fields shared by issues and pull requests."""

    model_config = ConfigDict(frozen=True)

    state: IssueState
    created_at: UtcDatetime
    updated_at: UtcDatetime
    comments: Count = 0


class IssueRecord(WorkItem):
    pass


class PullRequestRecord(WorkItem):
    pass


class ReleaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    created_at: UtcDatetime
    tag_name: str | None = None


class AdvisoryRecord(BaseModel):
    """Repository security advisory. Drafts may have no ``published_at``."""

    model_config = ConfigDict(frozen=True)

    ghsa_id: str | None = None
    severity: str | None = None
    published_at: UtcDatetime | None = None


class RawBundle(BaseModel):
    """Everything fetched for one repository, handed to the calculator.

    ``repository`` is mandatory; every other source may be empty.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    repository: RepositoryRecord
    contributors: list[Contributor] = Field(default_factory=list)
    contributor_stats: list[ContributorStat] = Field(default_factory=list)
    issues: list[IssueRecord] = Field(default_factory=list)
    pull_requests: list[PullRequestRecord] = Field(default_factory=list)
    releases: list[ReleaseRecord] = Field(default_factory=list)
    security: list[AdvisoryRecord] = Field(default_factory=list)
    package_info: PackageInfo | None = None

    _contributor_source: ContributorDataSource = PrivateAttr(
        default=ContributorDataSource.BASIC
    )

    def model_post_init(self, __context) -> None:
        if self.contributor_stats:
            self._contributor_source = ContributorDataSource.DETAILED
        else:
            self._contributor_source = ContributorDataSource.BASIC

    @property
    def contributor_source(self) -> ContributorDataSource:
        return self._contributor_source


# --- Scoring models ---


class _CamelModel(BaseModel):
    """Serialized with the camelCase names the dashboard and exports read."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class PopularityMetrics(_CamelModel):
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    downloads: int = 0


class PopularityBreakdown(_CamelModel):
    stars: int = Field(default=0, ge=0)
    forks: int = Field(default=0, ge=0)
    watchers: int = Field(default=0, ge=0)
    downloads: int = Field(default=0, ge=0)


class PopularityScore(_CamelModel):
    score: int = Field(ge=0, le=100)
    metrics: PopularityMetrics
    breakdown: PopularityBreakdown


class ActivityMetrics(_CamelModel):
    recent_issues: int = 0
    recent_prs: int = Field(default=0, alias="recentPRs")
    recent_releases: int = 0
    days_since_last_push: int = 0
    last_push: datetime | None = None


class ActivityBreakdown(_CamelModel):
    issues: int = Field(default=0, ge=0)
    pull_requests: int = Field(default=0, ge=0)
    releases: int = Field(default=0, ge=0)
    recency: int = Field(default=0, ge=0)


class ActivityScore(_CamelModel):
    score: int = Field(ge=0, le=100)
    metrics: ActivityMetrics
    breakdown: ActivityBreakdown


class MaintenanceMetrics(_CamelModel):
    open_issues: int = 0
    closed_issues: int = 0
    open_prs: int = Field(default=0, alias="openPRs")
    closed_prs: int = Field(default=0, alias="closedPRs")
    stale_issues: int = 0
    stale_prs: int = Field(default=0, alias="stalePRs")
    issue_close_ratio: float = 0.0
    pr_close_ratio: float = Field(default=0.0, alias="prCloseRatio")


class MaintenanceBreakdown(_CamelModel):
    issue_management: int = Field(default=0, ge=0)
    pr_management: int = Field(default=0, ge=0, alias="prManagement")
    stale_penalty: int = Field(default=0, ge=0)


class MaintenanceScore(_CamelModel):
    score: int = Field(ge=0, le=100)
    metrics: MaintenanceMetrics
    breakdown: MaintenanceBreakdown


class SecurityMetrics(_CamelModel):
    security_advisories: int = 0
    has_security_policy: bool = False
    has_dependabot: bool = False
    vulnerability_alerts: int = 0  # needs admin scope, never fetched


class SecurityBreakdown(_CamelModel):
    security_features: int = Field(default=0, ge=0)
    advisory_penalty: int = Field(default=0, ge=0)
    responsiveness_bonus: int = Field(default=0, ge=0)


class SecurityScore(_CamelModel):
    score: int = Field(ge=0, le=100)
    metrics: SecurityMetrics
    breakdown: SecurityBreakdown


class CommunityMetrics(_CamelModel):
    total_contributors: int = 0
    core_contributors: int = 0
    external_contributors: int = 0
    active_contributors: int = 0
    total_comments: int = 0
    total_commits: int = 0
    contributor_diversity: float = 0.0
    activity_ratio: float = 0.0
    avg_comments_per_issue: float = 0.0
    has_wiki: bool = False
    has_discussions: bool = False
    data_source: ContributorDataSource = ContributorDataSource.BASIC


class CommunityBreakdown(_CamelModel):
    contributors: int = Field(default=0, ge=0)
    core_contributors: int = Field(default=0, ge=0)
    diversity: int = Field(default=0, ge=0)
    activity: int = Field(default=0, ge=0)
    engagement: int = Field(default=0, ge=0)
    features: int = Field(default=0, ge=0)


class CommunityScore(_CamelModel):
    score: int = Field(ge=0, le=100)
    metrics: CommunityMetrics
    breakdown: CommunityBreakdown


class ScoredResult(_CamelModel):
    """All five sub-scores plus the weighted overall score."""

    popularity: PopularityScore
    activity: ActivityScore
    maintenance: MaintenanceScore
    security: SecurityScore
    community: CommunityScore
    overall: int = Field(ge=0, le=100)

    def sub_scores(self) -> dict[str, int]:
        """Map of category name to its 0-100 score, in weight order."""
        return {
            "popularity": self.popularity.score,
            "activity": self.activity.score,
            "maintenance": self.maintenance.score,
            "security": self.security.score,
            "community": self.community.score,
        }


# --- Final analysis ---


class AnalysisResult(_CamelModel):
    """What the API returns and the response cache stores."""

    repository: RepositoryRecord
    metrics: ScoredResult
    last_updated: datetime

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
