"""API routes exercised through ApiClient over an in-process ASGI transport."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from inkwell.api import deps
from inkwell.api.main import app
from inkwell.api.routes import agents as agents_routes
from inkwell.client import ApiClient
from inkwell.editor.document import TextDocument
from inkwell.editor.mutation import DocumentMutationEngine, EditStatus
from inkwell.errors import PersistenceFailure, ProviderFailure, ValidationError
from inkwell.pipeline.commands import ApproveOutline, DiscoverTopics, SelectTopic
from inkwell.pipeline.controller import PipelineController
from inkwell.pipeline.session import GenerationSession, Stage
from inkwell.schemas import GenerationConfig, LinkSuggestion
from inkwell.store.db import SqliteStore
from inkwell.store.repository import Repository
from inkwell.stream.frames import encode_frame
from tests.helpers import make_outline, make_topic


class StaticEditProvider:
    def __init__(self, *parts: str) -> None:
        self.parts = parts

    async def stream_edit(self, prompt: str):
        for part in self.parts:
            yield part


async def fake_article_frames(outline, config, repository):
    article = await repository.create_article(outline.id, outline.title)
    yield encode_frame({"type": "article_created", "article_id": article.id})
    yield encode_frame({"type": "progress", "stage": "hook", "message": "Writing introduction...", "progress": 5})
    yield encode_frame({"type": "token", "stage": "hook", "content": "Evals keep models honest."})
    saved = await repository.save_article(article.id, "Evals keep models honest.", snapshot=True, edited_by="ai")
    yield encode_frame({"type": "complete", "article": saved.model_dump()})


@pytest.fixture
def repository(tmp_path) -> Repository:
    return Repository(SqliteStore(str(tmp_path / "api.db")), index=False)


@pytest_asyncio.fixture
async def client(repository, fake_agents, monkeypatch):
    app.state.repository = repository
    app.dependency_overrides[deps.get_agents] = lambda: fake_agents
    app.dependency_overrides[deps.get_edit_provider] = lambda: StaticEditProvider("Shorter ", "text.")
    monkeypatch.setattr(agents_routes, "stream_article_frames", fake_article_frames)

    transport = httpx.ASGITransport(app=app)
    async with ApiClient("http://test", transport=transport) as api:
        yield api
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_saved_topic_gets_durable_id(client, repository):
    topic = await client.save_topic(make_topic("temp-abc"))

    assert topic.is_durable
    assert (await repository.get_topic(topic.id)).title == topic.title


@pytest.mark.asyncio
async def test_research_requires_selection_criteria(client):
    with pytest.raises(ValidationError):
        await client.discover_topics(GenerationConfig())


@pytest.mark.asyncio
async def test_outline_for_unknown_topic_fails(client):
    with pytest.raises(ProviderFailure, match="404"):
        await client.generate_outline(make_topic("topic-missing"), GenerationConfig())


@pytest.mark.asyncio
async def test_missing_article_reads_as_none(client):
    assert await client.get_article("nope") is None
    with pytest.raises(PersistenceFailure):
        await client.save_article("nope", "text")


@pytest.mark.asyncio
async def test_edit_stream_returns_plain_text(client):
    chunks = [chunk async for chunk in client.stream_edit("make it shorter")]
    assert "".join(chunks) == "Shorter text."


@pytest.mark.asyncio
async def test_edit_through_remote_provider(client):
    document = TextDocument("Long winded sentence here.")
    engine = DocumentMutationEngine(client)

    op = await engine.wait(engine.request_edit(document, (0, 20), "simplify"))

    assert op.status is EditStatus.DONE
    assert document.text == "Shorter text. here."


@pytest.mark.asyncio
async def test_pipeline_runs_against_the_api(client, repository, keywords_config):
    controller = PipelineController(client, client)

    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))
    assert session.stage is Stage.TOPICS

    session = await controller.advance(session, SelectTopic(topic_id=session.topic_candidates[0].id))
    assert session.stage is Stage.OUTLINE
    assert session.selected_topic.is_durable
    assert (await repository.get_outline(session.outline.id)) is not None

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.DONE
    assert session.final_article.content == "Evals keep models honest."
    assert (await repository.get_outline(session.outline.id)).approved
    assert len(await repository.list_versions(session.final_article.id)) == 1


@pytest.mark.asyncio
async def test_apply_links_saves_snapshot(client, repository):
    topic = await repository.save_topic(make_topic("temp-1"))
    outline = await repository.save_outline(make_outline(topic.id))
    article = await repository.create_article(outline.id, outline.title)
    await repository.save_article(article.id, "Read about model evaluation today.")
    suggestion = LinkSuggestion(id="s1", anchor_text="model evaluation", target_id="other", target_url="/evals")

    resp = await client._client.put(
        "/api/articles/links",
        json={"article_id": article.id, "suggestions": [suggestion.model_dump()], "selected_ids": ["s1"]},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["applied_count"] == 1
    assert body["article"]["content"] == "Read about [model evaluation](/evals) today."
    assert len(await repository.list_versions(article.id)) == 1
