import os
from contextlib import asynccontextmanager
from typing import Any, NamedTuple

from langgraph.checkpoint.sqlite.aio import AsyncSqliteSaver
from langgraph.graph import END, START, StateGraph

from inkwell.config import settings
from inkwell.graph.nodes.duplicate_check import duplicate_check_node
from inkwell.graph.nodes.outline import outline_node
from inkwell.graph.nodes.research import research_node
from inkwell.graph.state import DiscoveryState, OutlineState


class CompiledGraphs(NamedTuple):
    discovery: Any
    outline: Any


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def _route_after_research(state: DiscoveryState) -> str:
    """Nothing to compare when research came back empty."""
    if not state.get("raw_topics"):
        return END
    return "duplicate_check"


# ---------------------------------------------------------------------------
# Graph builders
# ---------------------------------------------------------------------------

def build_discovery_graph() -> StateGraph:
    builder = StateGraph(DiscoveryState)
    builder.add_node("research", research_node)
    builder.add_node("duplicate_check", duplicate_check_node)

    builder.add_edge(START, "research")
    builder.add_conditional_edges(
        "research",
        _route_after_research,
        {"duplicate_check": "duplicate_check", END: END},
    )
    builder.add_edge("duplicate_check", END)
    return builder


def build_outline_graph() -> StateGraph:
    builder = StateGraph(OutlineState)
    builder.add_node("outline", outline_node)
    builder.add_edge(START, "outline")
    builder.add_edge("outline", END)
    return builder


@asynccontextmanager
async def compile_graphs():
    """Async context manager yielding both graphs on one AsyncSqliteSaver.

    The outline graph runs with thread_id = topic id, so a revision finds the
    previous outline in its checkpoint.
    """
    os.makedirs(os.path.dirname(os.path.abspath(settings.checkpoint_db_path)), exist_ok=True)
    async with AsyncSqliteSaver.from_conn_string(settings.checkpoint_db_path) as checkpointer:
        yield CompiledGraphs(
            discovery=build_discovery_graph().compile(),
            outline=build_outline_graph().compile(checkpointer=checkpointer),
        )
