"""Tests for pipeline/controller.py and pipeline/session.py."""

from __future__ import annotations

import asyncio

import pydantic
import pytest

from inkwell.errors import InvalidTransitionError, ValidationError
from inkwell.pipeline.commands import (
    ApplyLinks,
    ApproveOutline,
    DiscoverTopics,
    GoBack,
    RejectTopic,
    ReviseOutline,
    SelectTopic,
    SkipLinks,
    parse_command,
)
from inkwell.pipeline import controller as controller_module
from inkwell.pipeline.controller import PipelineController
from inkwell.pipeline.session import GenerationSession, Stage
from inkwell.schemas import FinalArticle, GenerationConfig, LinkSuggestion
from inkwell.stream.frames import encode_frame
from tests.helpers import FakeAgents, make_outline, make_topic, writer_events


def _links() -> list[LinkSuggestion]:
    return [
        LinkSuggestion(id="s1", anchor_text="alignment research", target_id="t1",
                       target_url="/posts/alignment", relevance_score=0.9),
        LinkSuggestion(id="s2", anchor_text="model evaluation", target_id="t2",
                       target_url="/posts/evals", relevance_score=0.8),
        LinkSuggestion(id="s3", anchor_text="not in the text", target_id="t3",
                       target_url="/posts/other", relevance_score=0.5),
    ]


async def _at_outline(controller: PipelineController, config: GenerationConfig) -> GenerationSession:
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=config))
    return await controller.advance(session, SelectTopic(topic_id=session.topic_candidates[0].id))


# -----------------------------------------------------------------------------
# Config → Topics
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_keywords_produce_scored_topic_candidates(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    start = GenerationSession()

    session = await controller.advance(start, DiscoverTopics(config=keywords_config))

    assert session.stage is Stage.TOPICS
    assert len(session.topic_candidates) >= 1
    assert all(0.0 <= t.relevance_score <= 1.0 for t in session.topic_candidates)
    assert session.research_metadata["duplicates_filtered"] == 1
    assert start.stage is Stage.CONFIG        # input session untouched


@pytest.mark.asyncio
async def test_missing_selection_criteria_is_a_validation_error(fake_agents, fake_store):
    controller = PipelineController(fake_agents, fake_store)

    with pytest.raises(ValidationError):
        await controller.advance(GenerationSession(), DiscoverTopics(config=GenerationConfig(keywords=["  "])))

    assert fake_agents.discover_calls == []


@pytest.mark.asyncio
async def test_direct_topic_query_counts_for_tutorials(fake_agents, fake_store):
    controller = PipelineController(fake_agents, fake_store)
    config = GenerationConfig(article_type="tutorial", topic_mode="direct", topic_query="Set up pytest")

    session = await controller.advance(GenerationSession(), DiscoverTopics(config=config))

    assert session.stage is Stage.TOPICS


@pytest.mark.asyncio
async def test_direct_topic_query_does_not_count_for_blog_posts(fake_agents, fake_store):
    controller = PipelineController(fake_agents, fake_store)
    config = GenerationConfig(article_type="blog", topic_query="Set up pytest")

    with pytest.raises(ValidationError):
        await controller.advance(GenerationSession(), DiscoverTopics(config=config))


# -----------------------------------------------------------------------------
# Topics → Outline
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_temporary_topic_is_persisted_before_outline(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))
    assert session.topic_candidates[0].id.startswith("temp-")

    session = await controller.advance(session, SelectTopic(topic_id=session.topic_candidates[0].id))

    assert fake_store.events == ["save_topic:topic-1"]
    assert fake_agents.outline_calls[0]["topic_id"] == "topic-1"
    assert session.stage is Stage.OUTLINE
    assert session.selected_topic.id == "topic-1"
    assert session.outline.topic_id == "topic-1"
    assert session.outline.id in fake_store.outlines


@pytest.mark.asyncio
async def test_durable_topic_is_not_persisted_again(fake_store, keywords_config):
    agents = FakeAgents(topics=[make_topic("topic-42")])
    controller = PipelineController(agents, fake_store)

    session = await _at_outline(controller, keywords_config)

    assert fake_store.events == []
    assert session.selected_topic.id == "topic-42"


@pytest.mark.asyncio
async def test_retried_selection_reuses_the_persisted_topic(fake_store, keywords_config):
    class FlakyAgents(FakeAgents):
        failures = 1

        async def generate_outline(self, topic, config, feedback=None, previous=None):
            if self.failures:
                self.failures -= 1
                raise RuntimeError("outline model timeout")
            return await super().generate_outline(topic, config, feedback, previous)

    controller = PipelineController(FlakyAgents(), fake_store)
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))
    command = SelectTopic(topic_id=session.topic_candidates[0].id)

    with pytest.raises(RuntimeError):
        await controller.advance(session, command)
    session = await controller.advance(session, command)

    assert fake_store.events == ["save_topic:topic-1"]
    assert session.stage is Stage.OUTLINE


@pytest.mark.asyncio
async def test_unknown_topic_is_rejected(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))

    with pytest.raises(ValidationError):
        await controller.advance(session, SelectTopic(topic_id="nope"))


@pytest.mark.asyncio
async def test_reject_topic_removes_candidate(fake_store, keywords_config):
    agents = FakeAgents(topics=[make_topic("temp-a", "A"), make_topic("topic-9", "B")])
    controller = PipelineController(agents, fake_store)
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))

    session = await controller.advance(session, RejectTopic(topic_id="topic-9"))
    session = await controller.advance(session, RejectTopic(topic_id="temp-a"))

    assert session.topic_candidates == []
    assert session.stage is Stage.TOPICS
    assert fake_store.rejected == ["topic-9"]


# -----------------------------------------------------------------------------
# Outline
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_revise_outline_with_feedback_stays_at_outline(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await _at_outline(controller, keywords_config)
    previous = session.outline

    session = await controller.advance(session, ReviseOutline(feedback="Add a section on evals"))

    assert session.stage is Stage.OUTLINE
    assert session.outline.title.endswith("(revised)")
    assert fake_agents.outline_calls[-1]["feedback"] == "Add a section on evals"
    assert fake_agents.outline_calls[-1]["previous"] == previous


@pytest.mark.asyncio
async def test_revise_outline_with_edited_structure_keeps_id(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await _at_outline(controller, keywords_config)
    edited = make_outline("someone-else", title="Edited", sections=2)

    revised = await controller.advance(session, ReviseOutline(outline=edited))

    assert revised.outline.id == session.outline.id
    assert revised.outline.topic_id == session.selected_topic.id
    assert revised.outline.title == "Edited"
    assert len(fake_agents.outline_calls) == 1


def test_revise_outline_needs_exactly_one_input():
    with pytest.raises(pydantic.ValidationError):
        ReviseOutline()
    with pytest.raises(pydantic.ValidationError):
        ReviseOutline(feedback="x", outline=make_outline("t"))


# -----------------------------------------------------------------------------
# Outline → Content → Linking / Done
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_content_stage_is_entered_before_the_stream_starts(fake_agents, fake_store, keywords_config):
    seen = []
    controller = PipelineController(
        fake_agents, fake_store,
        on_transition=lambda s: seen.append((s.stage, fake_agents.stream_calls)),
    )
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert (Stage.CONTENT, 0) in seen
    assert seen[-1][0] is Stage.DONE
    assert session.stage is Stage.DONE
    assert session.final_article.id == "article-1"
    assert session.streamed_content.hook == "AI is everywhere."
    assert session.streamed_content.sections == ["## Part 1\nAlignment is hard."]
    assert session.outline.approved
    assert fake_store.approved == [session.outline.id]


@pytest.mark.asyncio
async def test_progress_listener_receives_live_snapshots(fake_agents, fake_store, keywords_config):
    snapshots = []
    controller = PipelineController(fake_agents, fake_store, on_progress=lambda p, c: snapshots.append(p))
    session = await _at_outline(controller, keywords_config)

    await controller.advance(session, ApproveOutline())

    assert snapshots[0].stage == "hook"
    assert any(p.stage == "section" and p.section == 1 and p.total == 1 for p in snapshots)
    assert snapshots[-1].stage == "complete"


@pytest.mark.asyncio
async def test_suggestions_lead_to_linking_then_apply(fake_store, keywords_config):
    agents = FakeAgents(suggestions=_links())
    controller = PipelineController(agents, fake_store)
    session = await _at_outline(controller, keywords_config)
    session = await controller.advance(session, ApproveOutline())
    assert session.stage is Stage.LINKING

    session = await controller.advance(session, ApplyLinks(selected_ids=["s1", "s3"]))

    assert session.stage is Stage.DONE
    assert session.applied_link_count == 1
    assert session.skipped_links == {"s3": "not_found"}
    assert "[alignment research](/posts/alignment)" in session.final_article.content
    assert fake_store.saves[-1]["snapshot"] is True
    assert fake_store.links == [{
        "target_id": "t1",
        "anchor_text": "alignment research",
        "context": fake_store.links[0]["context"],
    }]


@pytest.mark.asyncio
async def test_skip_links_finishes_without_changes(fake_store, keywords_config):
    controller = PipelineController(FakeAgents(suggestions=_links()), fake_store)
    session = await _at_outline(controller, keywords_config)
    session = await controller.advance(session, ApproveOutline())

    done = await controller.advance(session, SkipLinks())

    assert done.stage is Stage.DONE
    assert done.final_article == session.final_article
    assert fake_store.saves == []


@pytest.mark.asyncio
async def test_failed_suggestions_skip_to_done(fake_store, keywords_config):
    controller = PipelineController(FakeAgents(links_error=RuntimeError("index offline")), fake_store)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.DONE
    assert session.link_suggestions == []


@pytest.mark.asyncio
async def test_error_frame_rolls_back_to_outline(fake_store, keywords_config):
    events = [{"type": "article_created", "article_id": "a1"}, {"type": "error", "message": "quota exceeded"}]
    controller = PipelineController(FakeAgents(events=events), fake_store)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.OUTLINE
    assert "quota exceeded" in session.error
    assert session.streamed_content is None
    assert session.final_article is None


@pytest.mark.asyncio
async def test_incomplete_stream_recovers_from_store(fake_store, keywords_config):
    agents = FakeAgents(events=writer_events("a7")[:-1])
    fake_store.articles["a7"] = FinalArticle(id="a7", content="Persisted article body")
    controller = PipelineController(agents, fake_store, refetch_delay=0)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.DONE
    assert session.final_article.content == "Persisted article body"


@pytest.mark.asyncio
async def test_incomplete_stream_without_saved_article_rolls_back(fake_store, keywords_config):
    controller = PipelineController(FakeAgents(events=writer_events("a8")[:-1]), fake_store, refetch_delay=0)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.OUTLINE
    assert session.error


@pytest.mark.asyncio
async def test_cancel_during_stream_returns_to_outline(fake_store, keywords_config):
    class HangingAgents(FakeAgents):
        def __init__(self):
            super().__init__()
            self.started = asyncio.Event()

        async def stream_article(self, outline, config):
            yield encode_frame({"type": "article_created", "article_id": "a1"})
            self.started.set()
            await asyncio.Event().wait()
            yield b""  # pragma: no cover

    agents = HangingAgents()
    controller = PipelineController(agents, fake_store)
    session = await _at_outline(controller, keywords_config)

    task = asyncio.create_task(controller.advance(session, ApproveOutline()))
    await agents.started.wait()
    controller.cancel()
    session = await task

    assert session.stage is Stage.OUTLINE
    assert session.error is None
    assert session.streamed_content is None


@pytest.mark.asyncio
async def test_failed_stream_reopens_the_outline_for_approval(fake_store, keywords_config):
    events = [{"type": "article_created", "article_id": "a1"}, {"type": "error", "message": "quota exceeded"}]
    controller = PipelineController(FakeAgents(events=events), fake_store)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert fake_store.approved == [session.outline.id]
    assert session.outline.approved is False
    assert fake_store.outlines[session.outline.id].approved is False


@pytest.mark.asyncio
async def test_wrongly_typed_frames_do_not_break_the_stream(fake_store, keywords_config):
    events = writer_events("a4")
    events.insert(2, {"type": "token", "stage": "hook", "content": None})
    events.insert(3, {"type": "progress", "stage": "section", "section": "x", "progress": "high"})
    controller = PipelineController(FakeAgents(events=events), fake_store)
    session = await _at_outline(controller, keywords_config)

    session = await controller.advance(session, ApproveOutline())

    assert session.stage is Stage.DONE
    assert session.streamed_content.hook == "AI is everywhere."
    assert session.final_article.id == "a4"


@pytest.mark.asyncio
async def test_cancel_during_refetch_delay_returns_to_outline(fake_store, keywords_config, monkeypatch):
    refetch_started = asyncio.Event()
    real_recover = controller_module.recover_incomplete

    async def watched_recover(*args):
        refetch_started.set()
        return await real_recover(*args)

    monkeypatch.setattr(controller_module, "recover_incomplete", watched_recover)
    fake_store.articles["a7"] = FinalArticle(id="a7", content="Persisted article body")
    controller = PipelineController(FakeAgents(events=writer_events("a7")[:-1]), fake_store, refetch_delay=30)
    session = await _at_outline(controller, keywords_config)

    task = asyncio.create_task(controller.advance(session, ApproveOutline()))
    await refetch_started.wait()
    controller.cancel()
    session = await asyncio.wait_for(task, timeout=5)

    assert session.stage is Stage.OUTLINE
    assert session.error is None
    assert session.final_article is None


# -----------------------------------------------------------------------------
# Transitions and going back
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_approval_gate_cannot_be_skipped(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await controller.advance(GenerationSession(), DiscoverTopics(config=keywords_config))

    with pytest.raises(InvalidTransitionError):
        await controller.advance(session, ApproveOutline())
    with pytest.raises(InvalidTransitionError):
        await controller.advance(session, ApplyLinks(selected_ids=[]))


@pytest.mark.asyncio
async def test_go_back_discards_downstream_state(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await _at_outline(controller, keywords_config)
    session = await controller.advance(session, ApproveOutline())
    assert session.stage is Stage.DONE

    to_outline = await controller.advance(session, GoBack(stage=Stage.OUTLINE))
    assert to_outline.stage is Stage.OUTLINE
    assert to_outline.final_article is None
    assert to_outline.streamed_content is None
    assert not to_outline.outline.approved

    to_topics = await controller.advance(to_outline, GoBack(stage=Stage.TOPICS))
    assert to_topics.outline is None
    assert to_topics.selected_topic is None
    assert to_topics.topic_candidates == session.topic_candidates

    to_config = await controller.advance(to_topics, GoBack(stage=Stage.CONFIG))
    assert to_config.topic_candidates == []
    assert to_config.config == keywords_config


@pytest.mark.asyncio
async def test_go_back_only_moves_backwards(fake_agents, fake_store, keywords_config):
    controller = PipelineController(fake_agents, fake_store)
    session = await _at_outline(controller, keywords_config)

    with pytest.raises(InvalidTransitionError):
        await controller.advance(session, GoBack(stage=Stage.OUTLINE))
    with pytest.raises(InvalidTransitionError):
        await controller.advance(session, GoBack(stage=Stage.DONE))


def test_session_invariants_are_enforced():
    outline = make_outline("topic-1")
    with pytest.raises(pydantic.ValidationError):
        GenerationSession(stage=Stage.OUTLINE, outline=outline)
    with pytest.raises(pydantic.ValidationError):
        GenerationSession(stage=Stage.CONTENT, final_article=FinalArticle(id="a"))


def test_parse_command_dispatches_on_action():
    command = parse_command({"action": "go_back", "stage": "topics"})
    assert isinstance(command, GoBack)
    assert command.stage is Stage.TOPICS
