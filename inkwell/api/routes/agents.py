from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from inkwell.agents.local import GraphAgents
from inkwell.agents.writer import stream_article_frames
from inkwell.api.deps import get_agents, get_repository
from inkwell.api.models import OutlineRequest, WriterRequest
from inkwell.pipeline.controller import has_selection_criteria
from inkwell.pipeline.ports import DiscoveryResult
from inkwell.schemas import GenerationConfig, Outline
from inkwell.store.repository import Repository

router = APIRouter(prefix="/api/agents", tags=["agents"])

NDJSON = "application/x-ndjson"


@router.post("/research", response_model=DiscoveryResult)
async def research_endpoint(config: GenerationConfig, agents: GraphAgents = Depends(get_agents)):
    if not has_selection_criteria(config):
        raise HTTPException(status_code=422, detail="keywords, industry or a direct topic query is required")
    return await agents.discover_topics(config)


@router.post("/outline", response_model=Outline)
async def outline_endpoint(
    request: OutlineRequest,
    agents: GraphAgents = Depends(get_agents),
    repository: Repository = Depends(get_repository),
):
    # Only persisted topics can own an outline.
    topic = await repository.get_topic(request.topic_id)
    if topic is None:
        raise HTTPException(status_code=404, detail=f"topic {request.topic_id} not found; persist it first")
    return await agents.generate_outline(
        topic, request.config, feedback=request.feedback, previous=request.previous_outline
    )


@router.put("/writer")
async def writer_endpoint(request: WriterRequest, repository: Repository = Depends(get_repository)):
    outline = await repository.get_outline(request.outline_id)
    if outline is None:
        raise HTTPException(status_code=404, detail=f"outline {request.outline_id} not found")
    return StreamingResponse(
        stream_article_frames(outline, request.config, repository),
        media_type=NDJSON,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
