from fastapi import APIRouter, Depends, HTTPException

from inkwell.api.deps import get_repository
from inkwell.api.models import TopicRejected
from inkwell.schemas import Outline, TopicCandidate
from inkwell.store.repository import Repository

router = APIRouter(prefix="/api", tags=["topics"])


@router.post("/topics", response_model=TopicCandidate)
async def create_topic_endpoint(topic: TopicCandidate, repository: Repository = Depends(get_repository)):
    """Persist a discovered topic; a temporary id comes back replaced by a durable one."""
    if not topic.title.strip():
        raise HTTPException(status_code=422, detail="title must not be empty")
    return await repository.save_topic(topic)


@router.post("/topics/{topic_id}/reject", response_model=TopicRejected)
async def reject_topic_endpoint(topic_id: str, repository: Repository = Depends(get_repository)):
    if await repository.get_topic(topic_id) is None:
        raise HTTPException(status_code=404, detail=f"topic {topic_id} not found")
    await repository.reject_topic(topic_id)
    return TopicRejected(topic_id=topic_id)


@router.put("/outlines", response_model=Outline)
async def save_outline_endpoint(outline: Outline, repository: Repository = Depends(get_repository)):
    if await repository.get_topic(outline.topic_id) is None:
        raise HTTPException(status_code=422, detail=f"outline refers to unknown topic {outline.topic_id}")
    return await repository.save_outline(outline)


@router.get("/outlines/{outline_id}", response_model=Outline)
async def get_outline_endpoint(outline_id: str, repository: Repository = Depends(get_repository)):
    outline = await repository.get_outline(outline_id)
    if outline is None:
        raise HTTPException(status_code=404, detail=f"outline {outline_id} not found")
    return outline


@router.post("/outlines/{outline_id}/approve", response_model=Outline)
async def approve_outline_endpoint(outline_id: str, repository: Repository = Depends(get_repository)):
    if await repository.get_outline(outline_id) is None:
        raise HTTPException(status_code=404, detail=f"outline {outline_id} not found")
    await repository.approve_outline(outline_id)
    return await repository.get_outline(outline_id)
