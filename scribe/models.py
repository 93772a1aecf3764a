"""Core data models for the article pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass
class RawItem:
    """A single collected signal from any source."""

    source: str
    title: str
    body: str = ""
    url: str | None = None
    author: str = ""
    collected_at: datetime = field(default_factory=datetime.utcnow)
    processed: bool = False
    trend_score: float | None = None
    id: int | None = None


@dataclass
class TopicCluster:
    """Ephemeral group of raw items sharing salient terms."""

    keyword: str
    members: list[RawItem] = field(default_factory=list)
    aggregate_score: float = 0.0
    sources: set[str] = field(default_factory=set)
    is_candidate: bool = False
    top_terms: list[str] = field(default_factory=list)


@dataclass
class Draft:
    """Unscored generated article content."""

    title: str
    body_text: str
    summary: str = ""
    keywords: list[str] = field(default_factory=list)
    estimated_reading_minutes: int = 1


@dataclass
class ScoreReport:
    """Multi-axis quality evaluation of a draft (all axes 0-100)."""

    total: float
    seo: float = 0.0
    readability: float = 0.0
    accuracy: float = 0.0
    originality: float = 0.0
    engagement: float = 0.0
    improvements: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"
    NEEDS_IMPROVEMENT = "needs_improvement"


# Allowed lifecycle moves. The gate drives the draft -> * edges; the rest
# belong to the human review action.
TRANSITIONS: dict[ArticleStatus, set[ArticleStatus]] = {
    ArticleStatus.DRAFT: {
        ArticleStatus.NEEDS_IMPROVEMENT,
        ArticleStatus.PENDING_REVIEW,
        ArticleStatus.APPROVED,
    },
    ArticleStatus.APPROVED: {
        ArticleStatus.PUBLISHED,
        ArticleStatus.PENDING_REVIEW,
    },
    ArticleStatus.PENDING_REVIEW: {
        ArticleStatus.PUBLISHED,
        ArticleStatus.REJECTED,
        ArticleStatus.NEEDS_IMPROVEMENT,
    },
    ArticleStatus.NEEDS_IMPROVEMENT: {
        ArticleStatus.PENDING_REVIEW,
        ArticleStatus.REJECTED,
    },
    ArticleStatus.PUBLISHED: set(),
    ArticleStatus.REJECTED: set(),
}


class InvalidTransition(ValueError):
    """Raised when an article is moved along an edge the lifecycle forbids."""


@dataclass
class Article:
    """A persisted article and its lifecycle state."""

    title: str
    slug: str
    content: str
    score_report: ScoreReport
    summary: str = ""
    keywords: list[str] = field(default_factory=list)
    keyword: str = ""
    source_item_ids: list[int] = field(default_factory=list)
    status: ArticleStatus = ArticleStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.utcnow)
    published_at: datetime | None = None
    view_count: int = 0
    avg_time_on_page: float = 0.0
    bounce_rate: float = 100.0
    social_shares: dict[str, int] = field(default_factory=dict)
    id: int | None = None

    def transition_to(self, status: ArticleStatus, when: datetime | None = None) -> None:
        """Move to ``status``, keeping published_at in step with the status."""
        if status not in TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"{self.status.value} -> {status.value} is not allowed"
            )
        self.status = status
        if status == ArticleStatus.PUBLISHED:
            self.published_at = when or datetime.utcnow()
        else:
            self.published_at = None


@dataclass
class PromptTemplate:
    """Versioned prompt text consumed by the synthesizer."""

    type: str  # generation, evaluation
    template: str
    performance_score: float = 0.0
    usage_count: int = 0
    is_active: bool = True
    version: int = 1
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: int | None = None


@dataclass
class SchedulerConfig:
    """Intervals and thresholds for the control loop."""

    collect_interval_minutes: float = 30
    generate_interval_hours: float = 3
    learning_interval_hours: float = 24
    articles_per_run: int = 10
    min_data_points: int = 5
    burst_threshold: int = 50
    learning_trigger_score: float = 75
    quality_threshold: float = 80
    auto_publish_threshold: float = 90


@dataclass
class SchedulerState:
    """Process-wide, in-memory control loop state."""

    config: SchedulerConfig = field(default_factory=SchedulerConfig)
    is_running: bool = False
    last_collection_run: datetime | None = None
    last_generation_run: datetime | None = None
    last_learning_run: datetime | None = None


@dataclass
class CollectionResult:
    """Outcome of one collection run."""

    total_fetched: int = 0
    total_new: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class GenerationResult:
    """Outcome of one generation run."""

    status: str = "completed"  # completed, skipped, failed
    items_considered: int = 0
    clusters_formed: int = 0
    candidates: int = 0
    duplicates_skipped: int = 0
    articles: list[Article] = field(default_factory=list)

    @property
    def articles_generated(self) -> int:
        return len(self.articles)

    @property
    def articles_published(self) -> int:
        return sum(1 for a in self.articles if a.status == ArticleStatus.PUBLISHED)

    @property
    def average_score(self) -> float | None:
        if not self.articles:
            return None
        return sum(a.score_report.total for a in self.articles) / len(self.articles)


@dataclass
class PerformanceMetrics:
    """Reader metrics for one published article."""

    article_id: int
    title: str
    view_count: int
    avg_time_on_page: float
    bounce_rate: float
    social_shares: int
    quality_score: float
    published_at: datetime | None = None


@dataclass
class LearningAnalysis:
    """Patterns and template rewrites extracted from performance data."""

    title_patterns: list[str] = field(default_factory=list)
    content_patterns: list[str] = field(default_factory=list)
    optimal_length: int = 0
    best_posting_time: str = ""
    failure_patterns: list[str] = field(default_factory=list)
    generation_template: str = ""
    evaluation_template: str = ""
    improvement_score: float | None = None


@dataclass
class LearningResult:
    """Outcome of one learning cycle."""

    analysis_id: int
    analysis: LearningAnalysis
    articles_analyzed: int
    templates_updated: int
    improvement_score: float
    applied: bool = False


@dataclass
class PipelineStats:
    """Record of a single collection, generation, or learning run."""

    kind: str  # collection, generation, learning
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    status: str = "running"  # running, completed, skipped, failed
    items_collected: int = 0
    items_considered: int = 0
    clusters_formed: int = 0
    articles_generated: int = 0
    articles_published: int = 0
    average_score: float | None = None
    llm_tokens_used: int = 0
    llm_cost_usd: float = 0.0
    id: int | None = None
