"""Tests for store/db.py and store/repository.py."""

from __future__ import annotations

import pytest

from inkwell.errors import PersistenceFailure
from inkwell.store.db import SqliteStore
from inkwell.store.repository import Repository
from tests.helpers import make_outline, make_topic


@pytest.fixture
def store(tmp_path) -> SqliteStore:
    return SqliteStore(str(tmp_path / "inkwell.db"))


def test_save_topic_replaces_temporary_id(store):
    durable = store.save_topic(make_topic("temp-abc"))

    assert durable.is_durable
    assert durable.id != "temp-abc"
    assert store.get_topic(durable.id).title == "Why AI safety matters"


def test_durable_topic_keeps_its_id(store):
    assert store.save_topic(make_topic("topic-1")).id == "topic-1"


def test_outline_round_trip_and_approval(store):
    topic = store.save_topic(make_topic("temp-x"))
    outline = store.save_outline(make_outline(topic.id))

    store.approve_outline(outline.id)
    loaded = store.get_outline(outline.id)

    assert loaded.approved
    assert [s.heading for s in loaded.sections] == ["Part 1", "Part 2", "Part 3"]


def test_save_article_returns_canonical_article_and_snapshots(store):
    article = store.create_article(None, "Title")

    saved = store.save_article(article.id, "one two three")
    store.save_article(article.id, "one two three four", snapshot=True, edited_by="ai", change_summary="draft")

    assert saved.content == "one two three"
    assert saved.word_count == 3
    assert store.get_article(article.id).word_count == 4
    versions = store.list_versions(article.id)
    assert len(versions) == 1
    assert versions[0]["edited_by"] == "ai"


def test_save_missing_article_is_a_persistence_failure(store):
    with pytest.raises(PersistenceFailure):
        store.save_article("missing", "text")


def test_record_links_and_publish(store):
    article = store.create_article(None, "Title")
    count = store.record_links(article.id, [{"target_id": "t1", "anchor_text": "evals", "context": "..."}])

    assert count == 1
    assert store.publish_article(article.id).status == "published"


@pytest.mark.asyncio
async def test_repository_runs_store_calls_off_the_loop(store):
    repository = Repository(store, index=False)

    topic = await repository.save_topic(make_topic("temp-r"))
    article = await repository.create_article(None, "T")
    saved = await repository.save_article(article.id, "hello world", snapshot=True)

    assert topic.is_durable
    assert saved.word_count == 2
    assert (await repository.get_article(article.id)).content == "hello world"
    assert await repository.get_article("missing") is None
