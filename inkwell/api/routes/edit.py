import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from inkwell.agents.edit import LangChainEditProvider
from inkwell.api.deps import get_edit_provider
from inkwell.api.models import EditRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["edit"])


async def _text_body(provider: LangChainEditProvider, prompt: str) -> AsyncIterator[bytes]:
    async for chunk in provider.stream_edit(prompt):
        yield chunk.encode("utf-8")


@router.post("/edit")
async def edit_endpoint(request: EditRequest, provider: LangChainEditProvider = Depends(get_edit_provider)):
    """Stream the replacement text for one selection as a raw, unframed body."""
    if not request.prompt.strip():
        raise HTTPException(status_code=422, detail="prompt must not be empty")
    return StreamingResponse(_text_body(provider, request.prompt), media_type="text/plain; charset=utf-8")
