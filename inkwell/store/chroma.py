from typing import Any

import chromadb
from chromadb.utils.embedding_functions import SentenceTransformerEmbeddingFunction

from inkwell.config import settings

EMBEDDING_MODEL = "all-MiniLM-L6-v2"

_client: Any = None
_topic_collection: Any = None
_article_collection: Any = None


def get_chroma_client() -> chromadb.PersistentClient:
    global _client
    if _client is None:
        _client = chromadb.PersistentClient(path=settings.chroma_path)
    return _client


def _embedding_function() -> SentenceTransformerEmbeddingFunction:
    return SentenceTransformerEmbeddingFunction(model_name=EMBEDDING_MODEL, device="cpu")


def get_or_create_topic_collection():
    """Collection of previously discovered/used topic titles, for similarity warnings."""
    global _topic_collection
    if _topic_collection is None:
        _topic_collection = get_chroma_client().get_or_create_collection(
            name="inkwell_topics_v1",
            embedding_function=_embedding_function(),
            metadata={"hnsw:space": "cosine"},
        )
    return _topic_collection


def get_or_create_article_collection():
    """Collection of published articles, searched for cross-link candidates."""
    global _article_collection
    if _article_collection is None:
        _article_collection = get_chroma_client().get_or_create_collection(
            name="inkwell_articles_v1",
            embedding_function=_embedding_function(),
            metadata={"hnsw:space": "cosine"},
        )
    return _article_collection


def add_topic(topic_id: str, title: str, summary: str = "") -> None:
    """Record a persisted topic so later discoveries can be checked against it."""
    get_or_create_topic_collection().upsert(
        ids=[topic_id],
        documents=[f"{title}\n{summary}".strip()],
        metadatas=[{"title": title}],
    )


def add_article(article_id: str, title: str, url: str, excerpt: str) -> None:
    get_or_create_article_collection().upsert(
        ids=[article_id],
        documents=[f"{title}\n{excerpt}".strip()],
        metadatas=[{"title": title, "url": url, "excerpt": excerpt[:500]}],
    )


def query_similar(collection, text: str, n_results: int) -> list[dict]:
    """Nearest neighbours of ``text`` as dicts with id, similarity and metadata."""
    if collection.count() == 0:
        return []
    results = collection.query(
        query_texts=[text],
        n_results=min(n_results, collection.count()),
        include=["metadatas", "distances"],
    )
    output = []
    for item_id, meta, dist in zip(results["ids"][0], results["metadatas"][0], results["distances"][0]):
        # ChromaDB returns cosine DISTANCE; convert to similarity
        output.append({"id": item_id, "similarity": round(max(0.0, 1.0 - dist), 3), **(meta or {})})
    return output
