import logging

from inkwell.config import settings
from inkwell.graph.state import DiscoveryState
from inkwell.store.chroma import get_or_create_topic_collection, query_similar

logger = logging.getLogger(__name__)

_NEIGHBOURS = 3


def duplicate_check_node(state: DiscoveryState) -> dict:
    """
    Compare every proposed topic with topics already in use.

    similarity >= duplicate_threshold          → dropped, recorded in ``duplicates``
    similarity >= similarity_warning_threshold → kept, with a similarity warning
    """
    collection = get_or_create_topic_collection()
    topics: list[dict] = []
    duplicates: list[dict] = []

    for raw in state.get("raw_topics", []):
        text = f"{raw['title']}\n{raw.get('summary', '')}".strip()
        matches = query_similar(collection, text, _NEIGHBOURS)

        best = matches[0] if matches else None
        if best is not None and best["similarity"] >= settings.duplicate_threshold:
            duplicates.append({
                "title": raw["title"],
                "similar_to": best.get("title", "Unknown"),
                "similarity": best["similarity"],
            })
            continue

        warnings = [
            {"title": m.get("title", "Unknown"), "similarity": m["similarity"]}
            for m in matches
            if m["similarity"] >= settings.similarity_warning_threshold
        ]
        topics.append({**raw, "similar_topics": warnings, "status": "pending"})

    if duplicates:
        logger.info("Filtered %d near-duplicate topic(s)", len(duplicates))
    return {"topics": topics, "duplicates": duplicates}
