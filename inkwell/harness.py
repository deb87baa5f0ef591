"""
inkwell/harness.py — CLI harness for the generation pipeline

Usage:
    # Approve-all smoke run, models called in-process
    python -m inkwell.harness --keywords "ai safety,alignment"

    # Interactive mode (prompts at topic selection, outline approval and linking)
    python -m inkwell.harness --interactive

    # Drive a running API server instead of in-process agents
    python -m inkwell.harness --api http://localhost:8000
"""

import argparse
import asyncio
import logging
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Must be before inkwell imports so settings see the env vars

from inkwell.agents.local import GraphAgents
from inkwell.client import ApiClient
from inkwell.graph.graph import compile_graphs
from inkwell.pipeline.commands import ApplyLinks, ApproveOutline, DiscoverTopics, ReviseOutline, SelectTopic, SkipLinks
from inkwell.pipeline.controller import PipelineController
from inkwell.pipeline.session import GenerationSession, Stage
from inkwell.schemas import GenerationConfig, StreamedContent, StreamProgress
from inkwell.store.repository import Repository


def _print_progress(progress: StreamProgress, content: StreamedContent) -> None:
    if progress.stage == "section" and progress.section:
        label = f"section {progress.section}/{progress.total or '?'}"
    else:
        label = progress.stage
    print(f"\r[{progress.progress:3d}%] {label:<16} {progress.message[:50]:<50}", end="", flush=True)
    if progress.stage == "complete":
        print()


def _choose_topic(session: GenerationSession, interactive: bool) -> str:
    print(f"\n{'='*60}\nTOPICS\n{'='*60}")
    for i, topic in enumerate(session.topic_candidates, start=1):
        print(f"{i}. {topic.title}  (relevance {topic.relevance_score:.2f})")
        for warning in topic.similar_topics:
            print(f"   ! similar to {warning.title!r} ({warning.similarity:.0%})")
    filtered = session.research_metadata.get("duplicates_filtered", 0)
    if filtered:
        print(f"({filtered} near-duplicate topic(s) filtered out)")

    if not interactive:
        print("\n[AUTO] Selecting topic 1.")
        return session.topic_candidates[0].id
    choice = input("\nTopic number: ").strip() or "1"
    return session.topic_candidates[int(choice) - 1].id


def _review_outline(session: GenerationSession, interactive: bool) -> Optional[str]:
    """Return None to approve, or a note asking for changes."""
    outline = session.outline
    print(f"\n{'='*60}\nOUTLINE: {outline.title}\n{'='*60}")
    print(f"Hook: {outline.hook}")
    for section in outline.sections:
        print(f"## {section.heading} (~{section.word_target} words)")
        for point in section.key_points:
            print(f"   - {point}")
    if not interactive:
        print("\n[AUTO] Approving outline.")
        return None
    if input("\nApprove? [y/n]: ").strip().lower() == "y":
        return None
    return input("What should change?\n").strip() or None


async def run_pipeline(
    config: GenerationConfig,
    agents,
    store,
    interactive: bool = False,
) -> GenerationSession:
    controller = PipelineController(agents, store, on_progress=_print_progress)
    session = GenerationSession()

    print("\nInkwell pipeline")
    print(f"Keywords: {config.keywords}  Industry: {config.industry or '-'}")
    print(f"Type: {config.article_type}  Length: {config.target_length}  Tone: {config.tone}")
    print(f"Mode: {'Interactive' if interactive else 'Auto-approve'}")

    session = await controller.advance(session, DiscoverTopics(config=config))
    session = await controller.advance(session, SelectTopic(topic_id=_choose_topic(session, interactive)))

    while True:
        note = _review_outline(session, interactive)
        if note is None:
            break
        session = await controller.advance(session, ReviseOutline(feedback=note))

    while session.stage is Stage.OUTLINE:
        session = await controller.advance(session, ApproveOutline())
        if session.stage is Stage.OUTLINE:
            print(f"\n[ERROR] Content generation failed: {session.error}")
            if not interactive or input("Retry? [y/n]: ").strip().lower() != "y":
                return session

    if session.stage is Stage.LINKING:
        print(f"\n{'='*60}\nLINK SUGGESTIONS\n{'='*60}")
        for s in session.link_suggestions:
            print(f"- {s.anchor_text!r} -> {s.target_title or s.target_url} ({s.relevance_score:.2f}) {s.reason}")
        if interactive and input("\nApply all? [y/n]: ").strip().lower() != "y":
            session = await controller.advance(session, SkipLinks())
        else:
            ids = [s.id for s in session.link_suggestions]
            session = await controller.advance(session, ApplyLinks(selected_ids=ids))

    article = session.final_article
    print(f"\n{'='*60}")
    print("PIPELINE COMPLETE")
    print(f"{'='*60}")
    print(f"Article id: {article.id}")
    print(f"Word count: {article.word_count}")
    print(f"Links applied: {session.applied_link_count}")
    print(f"\nPreview (first 300 chars):\n{article.content[:300]}...")
    return session


async def main(args: argparse.Namespace) -> GenerationSession:
    config = GenerationConfig(
        industry=args.industry,
        keywords=[k.strip() for k in args.keywords.split(",") if k.strip()],
        article_type=args.article_type,
        target_length=args.length,
        tone=args.tone,
        topic_mode="direct" if args.topic else "discover",
        topic_query=args.topic or "",
    )
    if args.api:
        async with ApiClient(args.api) as client:
            return await run_pipeline(config, client, client, interactive=args.interactive)

    repository = Repository()
    async with compile_graphs() as graphs:
        return await run_pipeline(config, GraphAgents(graphs, repository), repository, interactive=args.interactive)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Inkwell generation pipeline harness")
    parser.add_argument("--keywords", default="ai safety")
    parser.add_argument("--industry", default="")
    parser.add_argument("--article-type", default="blog")
    parser.add_argument("--length", default="medium", choices=["short", "medium", "long"])
    parser.add_argument("--tone", default="professional")
    parser.add_argument("--topic", default=None, help="direct topic (tutorial/affiliate/personal types)")
    parser.add_argument("--api", default=None, help="base URL of a running Inkwell API")
    parser.add_argument("--interactive", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main(args))
