"""Async facade over SqliteStore and the Chroma collections.

sqlite and Chroma calls are blocking; each runs in a worker thread so the
event loop keeps serving streams while a write is in progress.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from inkwell.schemas import FinalArticle, Outline, TopicCandidate
from inkwell.store import chroma
from inkwell.store.db import SqliteStore

logger = logging.getLogger(__name__)


class Repository:
    def __init__(self, store: Optional[SqliteStore] = None, *, index: bool = True) -> None:
        self.store = store or SqliteStore()
        self._index = index

    async def save_topic(self, topic: TopicCandidate) -> TopicCandidate:
        durable = await asyncio.to_thread(self.store.save_topic, topic)
        if self._index:
            await asyncio.to_thread(chroma.add_topic, durable.id, durable.title, durable.summary)
        logger.info("Topic %r persisted as %s", durable.title, durable.id)
        return durable

    async def get_topic(self, topic_id: str) -> Optional[TopicCandidate]:
        return await asyncio.to_thread(self.store.get_topic, topic_id)

    async def reject_topic(self, topic_id: str) -> None:
        await asyncio.to_thread(self.store.set_topic_status, topic_id, "rejected")

    async def save_outline(self, outline: Outline) -> Outline:
        return await asyncio.to_thread(self.store.save_outline, outline)

    async def approve_outline(self, outline_id: str) -> None:
        await asyncio.to_thread(self.store.approve_outline, outline_id)

    async def create_article(self, outline_id: Optional[str], title: str) -> FinalArticle:
        return await asyncio.to_thread(self.store.create_article, outline_id, title)

    async def get_article(self, article_id: str) -> Optional[FinalArticle]:
        return await asyncio.to_thread(self.store.get_article, article_id)

    async def save_article(
        self,
        article_id: str,
        content: str,
        *,
        snapshot: bool = False,
        edited_by: str = "user",
        change_summary: Optional[str] = None,
    ) -> FinalArticle:
        return await asyncio.to_thread(
            self.store.save_article,
            article_id,
            content,
            snapshot=snapshot,
            edited_by=edited_by,
            change_summary=change_summary,
        )

    async def record_links(self, source_article_id: str, links: list[dict]) -> int:
        return await asyncio.to_thread(self.store.record_links, source_article_id, links)

    async def publish_article(self, article_id: str, url: str) -> Optional[FinalArticle]:
        """Mark the article published and make it a link target for later articles."""
        article = await asyncio.to_thread(self.store.publish_article, article_id)
        if article is not None and self._index:
            await asyncio.to_thread(chroma.add_article, article.id, article.title, url, article.content[:1000])
        return article

    async def get_outline(self, outline_id: str) -> Optional[Outline]:
        return await asyncio.to_thread(self.store.get_outline, outline_id)

    async def list_versions(self, article_id: str, limit: int = 10) -> list[dict]:
        return await asyncio.to_thread(self.store.list_versions, article_id, limit)
