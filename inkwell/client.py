"""HTTP client for the Inkwell API.

ApiClient implements the Agents and PipelineStore protocols and the
EditProvider protocol against a running server, so a PipelineController
or a DocumentMutationEngine can run in a separate process from the models.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from inkwell.config import settings
from inkwell.errors import InkwellError, PersistenceFailure, ProviderFailure, ValidationError
from inkwell.pipeline.ports import DiscoveryResult
from inkwell.schemas import FinalArticle, GenerationConfig, LinkSuggestion, Outline, TopicCandidate

logger = logging.getLogger(__name__)


def _detail(resp: httpx.Response) -> str:
    try:
        return str(resp.json().get("detail", resp.text))
    except ValueError:
        return resp.text


def _raise_for_status(resp: httpx.Response, failure: type[InkwellError]) -> None:
    if resp.status_code < 400:
        return
    if resp.status_code == 422:
        raise ValidationError(_detail(resp))
    raise failure(f"{resp.request.method} {resp.request.url.path} -> {resp.status_code}: {_detail(resp)}")


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.http_timeout_seconds if timeout is None else timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        failure: type[InkwellError] = ProviderFailure,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise failure(f"{method} {path} failed: {exc}") from exc
        _raise_for_status(resp, failure)
        return resp

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def discover_topics(self, config: GenerationConfig) -> DiscoveryResult:
        resp = await self._request("POST", "/api/agents/research", json=config.model_dump(mode="json"))
        return DiscoveryResult.model_validate(resp.json())

    async def generate_outline(
        self,
        topic: TopicCandidate,
        config: GenerationConfig,
        feedback: Optional[str] = None,
        previous: Optional[Outline] = None,
    ) -> Outline:
        payload = {
            "topic_id": topic.id,
            "config": config.model_dump(mode="json"),
            "feedback": feedback,
            "previous_outline": previous.model_dump(mode="json") if previous else None,
        }
        resp = await self._request("POST", "/api/agents/outline", json=payload)
        return Outline.model_validate(resp.json())

    async def stream_article(self, outline: Outline, config: GenerationConfig) -> AsyncIterator[bytes]:
        payload = {"outline_id": outline.id, "config": config.model_dump(mode="json")}
        try:
            async with self._client.stream("PUT", "/api/agents/writer", json=payload) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    _raise_for_status(resp, ProviderFailure)
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            # The consumer sees a body that ended early and reports it as incomplete.
            logger.warning("Writer stream interrupted: %s", exc)

    async def suggest_links(self, article: FinalArticle) -> list[LinkSuggestion]:
        payload = {"article_id": article.id, "title": article.title, "content": article.content}
        resp = await self._request("POST", "/api/articles/links", json=payload)
        return [LinkSuggestion.model_validate(item) for item in resp.json()]

    async def stream_edit(self, prompt: str) -> AsyncIterator[str]:
        try:
            async with self._client.stream("POST", "/api/ai/edit", json={"prompt": prompt}) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    _raise_for_status(resp, ProviderFailure)
                async for text in resp.aiter_text():
                    yield text
        except httpx.HTTPError as exc:
            raise ProviderFailure(f"Edit request failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    async def save_topic(self, topic: TopicCandidate) -> TopicCandidate:
        resp = await self._request("POST", "/api/topics", PersistenceFailure, json=topic.model_dump(mode="json"))
        return TopicCandidate.model_validate(resp.json())

    async def reject_topic(self, topic_id: str) -> None:
        await self._request("POST", f"/api/topics/{topic_id}/reject", PersistenceFailure)

    async def save_outline(self, outline: Outline) -> Outline:
        resp = await self._request("PUT", "/api/outlines", PersistenceFailure, json=outline.model_dump(mode="json"))
        return Outline.model_validate(resp.json())

    async def approve_outline(self, outline_id: str) -> None:
        await self._request("POST", f"/api/outlines/{outline_id}/approve", PersistenceFailure)

    async def get_article(self, article_id: str) -> Optional[FinalArticle]:
        try:
            resp = await self._client.get(f"/api/articles/{article_id}")
        except httpx.HTTPError as exc:
            raise PersistenceFailure(f"Fetching article {article_id} failed: {exc}") from exc
        if resp.status_code == 404:
            return None
        _raise_for_status(resp, PersistenceFailure)
        return FinalArticle.model_validate(resp.json())

    async def save_article(
        self,
        article_id: str,
        content: str,
        *,
        snapshot: bool = False,
        edited_by: str = "user",
        change_summary: Optional[str] = None,
    ) -> FinalArticle:
        payload = {
            "article_id": article_id,
            "content": content,
            "snapshot": snapshot,
            "edited_by": edited_by,
            "change_summary": change_summary,
        }
        resp = await self._request("PUT", "/api/articles", PersistenceFailure, json=payload)
        return FinalArticle.model_validate(resp.json())

    async def record_links(self, source_article_id: str, links: list[dict]) -> int:
        resp = await self._request(
            "POST", f"/api/articles/{source_article_id}/links", PersistenceFailure, json={"links": links}
        )
        return resp.json()["recorded"]
