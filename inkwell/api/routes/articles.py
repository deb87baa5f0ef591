from fastapi import APIRouter, Depends, HTTPException

from inkwell.agents.local import GraphAgents
from inkwell.api.deps import get_agents, get_repository
from inkwell.api.models import (
    ArticleSaveRequest,
    LinkApplyRequest,
    LinkApplyResponse,
    LinkSuggestRequest,
    PublishRequest,
    RecordLinksRequest,
)
from inkwell.linking.engine import LinkInsertionEngine
from inkwell.schemas import FinalArticle, LinkSuggestion
from inkwell.store.repository import Repository

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.put("", response_model=FinalArticle)
async def save_article_endpoint(request: ArticleSaveRequest, repository: Repository = Depends(get_repository)):
    """Store the full text; ``snapshot`` also records a version. Returns the canonical article."""
    if await repository.get_article(request.article_id) is None:
        raise HTTPException(status_code=404, detail=f"article {request.article_id} not found")
    return await repository.save_article(
        request.article_id,
        request.content,
        snapshot=request.snapshot,
        edited_by=request.edited_by,
        change_summary=request.change_summary,
    )


@router.post("/links", response_model=list[LinkSuggestion])
async def suggest_links_endpoint(request: LinkSuggestRequest, agents: GraphAgents = Depends(get_agents)):
    if not request.content.strip():
        raise HTTPException(status_code=422, detail="content must not be empty")
    article = FinalArticle(id=request.article_id, title=request.title, content=request.content)
    return await agents.suggest_links(article)


@router.put("/links", response_model=LinkApplyResponse)
async def apply_links_endpoint(request: LinkApplyRequest, repository: Repository = Depends(get_repository)):
    article = await repository.get_article(request.article_id)
    if article is None:
        raise HTTPException(status_code=404, detail=f"article {request.article_id} not found")

    result = LinkInsertionEngine().insert(article.content, request.suggestions, request.selected_ids)
    if result.applied_count:
        article = await repository.save_article(
            article.id,
            result.result_text,
            snapshot=True,
            edited_by="links",
            change_summary=f"Inserted {result.applied_count} link(s)",
        )
        await repository.record_links(article.id, [
            {"target_id": link.target_id, "anchor_text": link.anchor_text, "context": link.context}
            for link in result.applied
        ])
    return LinkApplyResponse(article=article, applied_count=result.applied_count, skipped=result.skipped)


@router.get("/{article_id}", response_model=FinalArticle)
async def get_article_endpoint(article_id: str, repository: Repository = Depends(get_repository)):
    article = await repository.get_article(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail=f"article {article_id} not found")
    return article


@router.get("/{article_id}/versions")
async def list_versions_endpoint(article_id: str, repository: Repository = Depends(get_repository)):
    return await repository.list_versions(article_id)


@router.post("/{article_id}/links")
async def record_links_endpoint(
    article_id: str,
    request: RecordLinksRequest,
    repository: Repository = Depends(get_repository),
):
    if await repository.get_article(article_id) is None:
        raise HTTPException(status_code=404, detail=f"article {article_id} not found")
    recorded = await repository.record_links(article_id, [link.model_dump() for link in request.links])
    return {"recorded": recorded}


@router.post("/{article_id}/publish", response_model=FinalArticle)
async def publish_article_endpoint(
    article_id: str,
    request: PublishRequest,
    repository: Repository = Depends(get_repository),
):
    article = await repository.publish_article(article_id, request.url)
    if article is None:
        raise HTTPException(status_code=404, detail=f"article {article_id} not found")
    return article
