"""SQLite database schema and query helpers."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from scribe.llm.prompts import DEFAULT_TEMPLATES
from scribe.models import (
    Article,
    ArticleStatus,
    LearningAnalysis,
    PipelineStats,
    PromptTemplate,
    RawItem,
    ScoreReport,
)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS collected_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL,
    title TEXT NOT NULL,
    body TEXT NOT NULL DEFAULT '',
    url TEXT UNIQUE,
    author TEXT NOT NULL DEFAULT '',
    collected_at TEXT NOT NULL,
    processed INTEGER NOT NULL DEFAULT 0,
    trend_score REAL
);

CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    slug TEXT NOT NULL,
    content TEXT NOT NULL,
    summary TEXT NOT NULL DEFAULT '',
    keywords TEXT NOT NULL DEFAULT '[]',
    keyword TEXT NOT NULL DEFAULT '',
    source_item_ids TEXT NOT NULL DEFAULT '[]',
    quality_score REAL NOT NULL DEFAULT 0,
    score_report TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'draft',
    created_at TEXT NOT NULL,
    published_at TEXT,
    view_count INTEGER NOT NULL DEFAULT 0,
    avg_time_on_page REAL NOT NULL DEFAULT 0,
    bounce_rate REAL NOT NULL DEFAULT 100,
    social_shares TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS review_queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    article_id INTEGER NOT NULL,
    priority INTEGER NOT NULL DEFAULT 5,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL,
    FOREIGN KEY (article_id) REFERENCES articles(id)
);

CREATE TABLE IF NOT EXISTS prompt_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    template TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    performance_score REAL NOT NULL DEFAULT 0,
    usage_count INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS learning_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    articles_analyzed INTEGER NOT NULL DEFAULT 0,
    patterns TEXT NOT NULL DEFAULT '{}',
    improvement_score REAL NOT NULL DEFAULT 0,
    applied INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS system_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    log_level TEXT NOT NULL,
    component TEXT NOT NULL,
    message TEXT NOT NULL,
    details TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pipeline_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    items_collected INTEGER NOT NULL DEFAULT 0,
    items_considered INTEGER NOT NULL DEFAULT 0,
    clusters_formed INTEGER NOT NULL DEFAULT 0,
    articles_generated INTEGER NOT NULL DEFAULT 0,
    articles_published INTEGER NOT NULL DEFAULT 0,
    average_score REAL,
    llm_tokens_used INTEGER NOT NULL DEFAULT 0,
    llm_cost_usd REAL NOT NULL DEFAULT 0.0
);

CREATE INDEX IF NOT EXISTS idx_items_processed ON collected_items(processed);
CREATE INDEX IF NOT EXISTS idx_articles_status ON articles(status);
CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles(published_at);
CREATE INDEX IF NOT EXISTS idx_templates_type_active ON prompt_templates(type, is_active);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables, set schema version, and seed default templates."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        for template_type, text in DEFAULT_TEMPLATES.items():
            if get_active_template(conn, template_type) is None:
                conn.execute(
                    "INSERT INTO prompt_templates (type, template, created_at)"
                    " VALUES (?, ?, ?)",
                    (template_type, text, _dt_str(datetime.utcnow())),
                )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


# --- Collected item helpers ---


def insert_raw_item(conn: sqlite3.Connection, item: RawItem) -> tuple[int, bool]:
    """Insert a collected item. Returns (id, created); re-collected URLs are skipped."""
    try:
        cur = conn.execute(
            """INSERT INTO collected_items
               (source, title, body, url, author, collected_at, processed, trend_score)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                item.source,
                item.title,
                item.body or "",
                item.url,
                item.author,
                _dt_str(item.collected_at),
                int(item.processed),
                item.trend_score,
            ),
        )
        conn.commit()
        return cur.lastrowid, True
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        # anything other than a URL collision is a malformed item
        if "collected_items.url" not in str(exc):
            raise
        row = conn.execute(
            "SELECT id FROM collected_items WHERE url = ?", (item.url,)
        ).fetchone()
        return row["id"], False


def get_unprocessed_items(conn: sqlite3.Connection, limit: int = 200) -> list[RawItem]:
    """Fetch the newest unprocessed items."""
    rows = conn.execute(
        """SELECT * FROM collected_items WHERE processed = 0
           ORDER BY collected_at DESC, id DESC LIMIT ?""",
        (limit,),
    ).fetchall()
    return [_row_to_item(row) for row in rows]


def count_unprocessed(conn: sqlite3.Connection) -> int:
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM collected_items WHERE processed = 0"
    ).fetchone()
    return row["n"]


def mark_items_processed(conn: sqlite3.Connection, item_ids: list[int]) -> None:
    """Flip the processed flag on the given items."""
    conn.executemany(
        "UPDATE collected_items SET processed = 1 WHERE id = ?",
        [(item_id,) for item_id in item_ids],
    )
    conn.commit()


def _row_to_item(row: sqlite3.Row) -> RawItem:
    return RawItem(
        id=row["id"],
        source=row["source"],
        title=row["title"],
        body=row["body"],
        url=row["url"],
        author=row["author"],
        collected_at=_parse_dt(row["collected_at"]),
        processed=bool(row["processed"]),
        trend_score=row["trend_score"],
    )


# --- Article helpers ---


def insert_article(conn: sqlite3.Connection, article: Article) -> int:
    """Insert an article, returning its ID."""
    cur = conn.execute(
        """INSERT INTO articles
           (title, slug, content, summary, keywords, keyword, source_item_ids,
            quality_score, score_report, status, created_at, published_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            article.title,
            article.slug,
            article.content,
            article.summary,
            json.dumps(article.keywords),
            article.keyword,
            json.dumps(article.source_item_ids),
            article.score_report.total,
            json.dumps(asdict(article.score_report)),
            article.status.value,
            _dt_str(article.created_at),
            _dt_str(article.published_at),
        ),
    )
    conn.commit()
    return cur.lastrowid


def update_article_status(conn: sqlite3.Connection, article: Article) -> None:
    """Persist an article's status and publication timestamp."""
    conn.execute(
        "UPDATE articles SET status = ?, published_at = ? WHERE id = ?",
        (article.status.value, _dt_str(article.published_at), article.id),
    )
    conn.commit()


def update_article_metrics(
    conn: sqlite3.Connection,
    article_id: int,
    view_count: int,
    avg_time_on_page: float,
    bounce_rate: float,
    social_shares: dict[str, int] | None = None,
) -> None:
    """Record reader metrics reported by the analytics side."""
    conn.execute(
        """UPDATE articles SET view_count = ?, avg_time_on_page = ?,
           bounce_rate = ?, social_shares = ? WHERE id = ?""",
        (
            view_count,
            avg_time_on_page,
            bounce_rate,
            json.dumps(social_shares or {}),
            article_id,
        ),
    )
    conn.commit()


def get_article(conn: sqlite3.Connection, article_id: int) -> Article | None:
    row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
    return _row_to_article(row) if row else None


def get_published_titles(
    conn: sqlite3.Connection, since: datetime | None = None,
) -> list[str]:
    """Titles of published articles, optionally only those published after ``since``."""
    if since is None:
        rows = conn.execute(
            "SELECT title FROM articles WHERE status = ?",
            (ArticleStatus.PUBLISHED.value,),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT title FROM articles WHERE status = ? AND published_at >= ?",
            (ArticleStatus.PUBLISHED.value, _dt_str(since)),
        ).fetchall()
    return [row["title"] for row in rows]


def get_published_articles(conn: sqlite3.Connection, since: datetime) -> list[Article]:
    """Published articles since a point in time, most viewed first."""
    rows = conn.execute(
        """SELECT * FROM articles WHERE status = ? AND published_at >= ?
           ORDER BY view_count DESC""",
        (ArticleStatus.PUBLISHED.value, _dt_str(since)),
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def get_articles_created_since(conn: sqlite3.Connection, since: datetime) -> list[Article]:
    rows = conn.execute(
        "SELECT * FROM articles WHERE created_at >= ? ORDER BY created_at DESC",
        (_dt_str(since),),
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def _row_to_article(row: sqlite3.Row) -> Article:
    report = json.loads(row["score_report"]) or {"total": row["quality_score"]}
    return Article(
        id=row["id"],
        title=row["title"],
        slug=row["slug"],
        content=row["content"],
        summary=row["summary"],
        keywords=json.loads(row["keywords"]),
        keyword=row["keyword"],
        source_item_ids=json.loads(row["source_item_ids"]),
        score_report=ScoreReport(**report),
        status=ArticleStatus(row["status"]),
        created_at=_parse_dt(row["created_at"]),
        published_at=_parse_dt(row["published_at"]),
        view_count=row["view_count"],
        avg_time_on_page=row["avg_time_on_page"],
        bounce_rate=row["bounce_rate"],
        social_shares=json.loads(row["social_shares"]),
    )


def enqueue_review(conn: sqlite3.Connection, article_id: int, priority: int) -> int:
    cur = conn.execute(
        "INSERT INTO review_queue (article_id, priority, created_at) VALUES (?, ?, ?)",
        (article_id, priority, _dt_str(datetime.utcnow())),
    )
    conn.commit()
    return cur.lastrowid


def close_review(conn: sqlite3.Connection, article_id: int, status: str) -> None:
    conn.execute(
        "UPDATE review_queue SET status = ? WHERE article_id = ? AND status = 'pending'",
        (status, article_id),
    )
    conn.commit()


def get_pending_reviews(conn: sqlite3.Connection) -> list[dict]:
    rows = conn.execute(
        """SELECT r.article_id, r.priority, a.title, a.quality_score
           FROM review_queue r JOIN articles a ON r.article_id = a.id
           WHERE r.status = 'pending' ORDER BY r.priority DESC, r.id"""
    ).fetchall()
    return [dict(row) for row in rows]


# --- Prompt template helpers ---


def get_active_template(conn: sqlite3.Connection, template_type: str) -> PromptTemplate | None:
    row = conn.execute(
        """SELECT * FROM prompt_templates WHERE type = ? AND is_active = 1
           ORDER BY version DESC LIMIT 1""",
        (template_type,),
    ).fetchone()
    return _row_to_template(row) if row else None


def get_template_history(conn: sqlite3.Connection, template_type: str) -> list[PromptTemplate]:
    rows = conn.execute(
        "SELECT * FROM prompt_templates WHERE type = ? ORDER BY version",
        (template_type,),
    ).fetchall()
    return [_row_to_template(row) for row in rows]


def increment_template_usage(conn: sqlite3.Connection, template_id: int) -> None:
    conn.execute(
        "UPDATE prompt_templates SET usage_count = usage_count + 1 WHERE id = ?",
        (template_id,),
    )
    conn.commit()


def replace_active_template(
    conn: sqlite3.Connection, template_type: str, text: str,
) -> PromptTemplate:
    """Store ``text`` as the new active version for a template type.

    The previous active version is deactivated in the same transaction so there
    is exactly one active template per type.
    """
    now = datetime.utcnow()
    with conn:
        row = conn.execute(
            "SELECT COALESCE(MAX(version), 0) AS v FROM prompt_templates WHERE type = ?",
            (template_type,),
        ).fetchone()
        version = row["v"] + 1
        conn.execute(
            "UPDATE prompt_templates SET is_active = 0 WHERE type = ? AND is_active = 1",
            (template_type,),
        )
        cur = conn.execute(
            """INSERT INTO prompt_templates
               (type, template, version, performance_score, usage_count, is_active, created_at)
               VALUES (?, ?, ?, 0, 0, 1, ?)""",
            (template_type, text, version, _dt_str(now)),
        )
    return PromptTemplate(
        id=cur.lastrowid,
        type=template_type,
        template=text,
        version=version,
        created_at=now,
    )


def _row_to_template(row: sqlite3.Row) -> PromptTemplate:
    return PromptTemplate(
        id=row["id"],
        type=row["type"],
        template=row["template"],
        version=row["version"],
        performance_score=row["performance_score"],
        usage_count=row["usage_count"],
        is_active=bool(row["is_active"]),
        created_at=_parse_dt(row["created_at"]),
    )


# --- Learning helpers ---


def insert_learning_data(
    conn: sqlite3.Connection,
    analysis: LearningAnalysis,
    articles_analyzed: int,
    improvement_score: float,
) -> int:
    cur = conn.execute(
        """INSERT INTO learning_data
           (articles_analyzed, patterns, improvement_score, applied, created_at)
           VALUES (?, ?, ?, 0, ?)""",
        (
            articles_analyzed,
            json.dumps(asdict(analysis)),
            improvement_score,
            _dt_str(datetime.utcnow()),
        ),
    )
    conn.commit()
    return cur.lastrowid


def mark_learning_applied(conn: sqlite3.Connection, learning_id: int) -> bool:
    cur = conn.execute(
        "UPDATE learning_data SET applied = 1 WHERE id = ?", (learning_id,)
    )
    conn.commit()
    return cur.rowcount > 0


def get_learning_data(conn: sqlite3.Connection, learning_id: int) -> dict | None:
    row = conn.execute(
        "SELECT * FROM learning_data WHERE id = ?", (learning_id,)
    ).fetchone()
    return dict(row) if row else None


# --- System log helpers ---


def insert_log(
    conn: sqlite3.Connection,
    level: str,
    component: str,
    message: str,
    details: dict | None = None,
) -> None:
    conn.execute(
        """INSERT INTO system_logs (log_level, component, message, details, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (
            level,
            component,
            message,
            json.dumps(details, default=str) if details is not None else None,
            _dt_str(datetime.utcnow()),
        ),
    )
    conn.commit()


def get_recent_logs(conn: sqlite3.Connection, limit: int = 50) -> list[dict]:
    rows = conn.execute(
        "SELECT * FROM system_logs ORDER BY id DESC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(row) for row in rows]


# --- Pipeline stats helpers ---


def insert_stats(conn: sqlite3.Connection, stats: PipelineStats) -> int:
    cur = conn.execute(
        "INSERT INTO pipeline_stats (kind, started_at, status) VALUES (?, ?, ?)",
        (stats.kind, _dt_str(stats.started_at), stats.status),
    )
    conn.commit()
    return cur.lastrowid


def finish_stats(conn: sqlite3.Connection, stats_id: int, stats: PipelineStats) -> None:
    conn.execute(
        """UPDATE pipeline_stats SET
           finished_at = ?, status = ?, items_collected = ?, items_considered = ?,
           clusters_formed = ?, articles_generated = ?, articles_published = ?,
           average_score = ?, llm_tokens_used = ?, llm_cost_usd = ?
           WHERE id = ?""",
        (
            _dt_str(stats.finished_at),
            stats.status,
            stats.items_collected,
            stats.items_considered,
            stats.clusters_formed,
            stats.articles_generated,
            stats.articles_published,
            stats.average_score,
            stats.llm_tokens_used,
            stats.llm_cost_usd,
            stats_id,
        ),
    )
    conn.commit()


def get_recent_stats(conn: sqlite3.Connection, limit: int = 10) -> list[dict]:
    """Fetch recent run records for stats display."""
    rows = conn.execute(
        "SELECT * FROM pipeline_stats ORDER BY started_at DESC, id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [dict(row) for row in rows]
