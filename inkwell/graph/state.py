from typing import Optional, TypedDict


class DiscoveryState(TypedDict):
    # --- Input ---
    config: dict                        # GenerationConfig.model_dump()

    # --- Research ---
    raw_topics: list[dict]              # LLM proposals before similarity filtering

    # --- Duplicate detection ---
    topics: list[dict]                  # TopicCandidate dicts with temp- ids and similar_topics
    duplicates: list[dict]              # {"title": str, "similar_to": str, "similarity": float}


class OutlineState(TypedDict):
    # --- Input ---
    topic: dict                         # TopicCandidate.model_dump()
    config: dict

    # --- Revision loop ---
    feedback: Optional[str]             # user note when regenerating
    previous_outline: Optional[dict]

    # --- Output ---
    outline: Optional[dict]             # Outline.model_dump()
