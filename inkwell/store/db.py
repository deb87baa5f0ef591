import json
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Optional

from inkwell.config import settings
from inkwell.errors import PersistenceFailure
from inkwell.schemas import FinalArticle, Outline, TopicCandidate

SCHEMA = """
CREATE TABLE IF NOT EXISTS topics (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    summary TEXT DEFAULT '',
    angle TEXT DEFAULT '',
    relevance_score REAL DEFAULT 0,
    sources TEXT DEFAULT '[]',
    status TEXT DEFAULT 'pending',
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS outlines (
    id TEXT PRIMARY KEY,
    topic_id TEXT NOT NULL REFERENCES topics(id),
    structure TEXT NOT NULL,
    approved INTEGER DEFAULT 0,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    outline_id TEXT REFERENCES outlines(id),
    title TEXT DEFAULT '',
    content TEXT DEFAULT '',
    status TEXT DEFAULT 'draft',
    word_count INTEGER DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE IF NOT EXISTS article_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    article_id TEXT NOT NULL REFERENCES articles(id),
    content TEXT NOT NULL,
    edited_by TEXT DEFAULT 'user',
    change_summary TEXT,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS article_links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_article_id TEXT NOT NULL REFERENCES articles(id),
    target_article_id TEXT NOT NULL,
    anchor_text TEXT NOT NULL,
    context TEXT DEFAULT '',
    created_at TEXT
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteStore:
    """Topics, outlines and articles in one sqlite file. One connection per call."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or settings.database_path

    def _get_conn(self) -> sqlite3.Connection:
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.executescript(SCHEMA)
        return conn

    # --- Topics ---

    def save_topic(self, topic: TopicCandidate) -> TopicCandidate:
        """Persist ``topic``; a temporary id is replaced by a durable one."""
        durable = topic if topic.is_durable else topic.model_copy(update={"id": str(uuid.uuid4())})
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO topics (id, title, summary, angle, relevance_score, sources, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    durable.id, durable.title, durable.summary, durable.angle, durable.relevance_score,
                    json.dumps([s.model_dump() for s in durable.sources]), durable.status, _now(),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        return durable

    def get_topic(self, topic_id: str) -> Optional[TopicCandidate]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM topics WHERE id = ?", (topic_id,)).fetchone()
        conn.close()
        if row is None:
            return None
        return TopicCandidate(
            id=row["id"],
            title=row["title"],
            summary=row["summary"] or "",
            angle=row["angle"] or "",
            relevance_score=row["relevance_score"],
            sources=json.loads(row["sources"] or "[]"),
            status=row["status"],
        )

    def set_topic_status(self, topic_id: str, status: str) -> None:
        conn = self._get_conn()
        conn.execute("UPDATE topics SET status = ? WHERE id = ?", (status, topic_id))
        conn.commit()
        conn.close()

    # --- Outlines ---

    def save_outline(self, outline: Outline) -> Outline:
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO outlines (id, topic_id, structure, approved, created_at) VALUES (?, ?, ?, ?, ?)",
            (outline.id, outline.topic_id, outline.model_dump_json(), int(outline.approved), _now()),
        )
        conn.commit()
        conn.close()
        return outline

    def get_outline(self, outline_id: str) -> Optional[Outline]:
        conn = self._get_conn()
        row = conn.execute("SELECT structure, approved FROM outlines WHERE id = ?", (outline_id,)).fetchone()
        conn.close()
        if row is None:
            return None
        outline = Outline.model_validate_json(row["structure"])
        return outline.model_copy(update={"approved": bool(row["approved"])})

    def approve_outline(self, outline_id: str) -> None:
        conn = self._get_conn()
        conn.execute("UPDATE outlines SET approved = 1 WHERE id = ?", (outline_id,))
        conn.commit()
        conn.close()

    # --- Articles ---

    def create_article(self, outline_id: Optional[str], title: str) -> FinalArticle:
        article = FinalArticle(id=str(uuid.uuid4()), title=title, outline_id=outline_id)
        now = _now()
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO articles (id, outline_id, title, content, status, word_count, created_at, updated_at) "
            "VALUES (?, ?, ?, '', 'draft', 0, ?, ?)",
            (article.id, outline_id, title, now, now),
        )
        conn.commit()
        conn.close()
        return article

    def get_article(self, article_id: str) -> Optional[FinalArticle]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
        conn.close()
        if row is None:
            return None
        return FinalArticle(
            id=row["id"],
            title=row["title"] or "",
            content=row["content"] or "",
            status=row["status"],
            outline_id=row["outline_id"],
            word_count=row["word_count"] or 0,
        )

    def save_article(
        self,
        article_id: str,
        content: str,
        *,
        snapshot: bool = False,
        edited_by: str = "user",
        change_summary: Optional[str] = None,
    ) -> FinalArticle:
        """Write the full text; with ``snapshot`` also record a version row.

        Returns the canonical stored article.
        """
        try:
            conn = self._get_conn()
            try:
                cursor = conn.execute(
                    "UPDATE articles SET content = ?, word_count = ?, updated_at = ? WHERE id = ?",
                    (content, len(content.split()), _now(), article_id),
                )
                if cursor.rowcount == 0:
                    raise PersistenceFailure(f"Article {article_id} does not exist")
                if snapshot:
                    conn.execute(
                        "INSERT INTO article_versions (article_id, content, edited_by, change_summary, created_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (article_id, content, edited_by, change_summary, _now()),
                    )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Saving article {article_id} failed: {exc}") from exc
        article = self.get_article(article_id)
        assert article is not None
        return article

    def list_versions(self, article_id: str, limit: int = 10) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT id, edited_by, change_summary, created_at FROM article_versions "
            "WHERE article_id = ? ORDER BY id DESC LIMIT ?",
            (article_id, limit),
        ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    def record_links(self, source_article_id: str, links: list[dict]) -> int:
        """Store applied cross-references: dicts with target_id, anchor_text, context."""
        conn = self._get_conn()
        now = _now()
        conn.executemany(
            "INSERT INTO article_links (source_article_id, target_article_id, anchor_text, context, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            [(source_article_id, l["target_id"], l["anchor_text"], l.get("context", ""), now) for l in links],
        )
        conn.commit()
        conn.close()
        return len(links)

    def publish_article(self, article_id: str) -> Optional[FinalArticle]:
        conn = self._get_conn()
        conn.execute("UPDATE articles SET status = 'published', updated_at = ? WHERE id = ?", (_now(), article_id))
        conn.commit()
        conn.close()
        return self.get_article(article_id)
