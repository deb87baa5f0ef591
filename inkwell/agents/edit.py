from typing import AsyncIterator, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from inkwell.agents.llm import chunk_text, get_llm
from inkwell.config import settings
from inkwell.prompts.edit import EDIT_SYSTEM_PROMPT


class LangChainEditProvider:
    """EditProvider backed by a streaming chat model."""

    def __init__(self, model: Optional[str] = None, llm=None) -> None:
        self._llm = llm or get_llm(model or settings.edit_model, max_tokens=2000, temperature=0.7, streaming=True)

    async def stream_edit(self, prompt: str) -> AsyncIterator[str]:
        messages = [SystemMessage(content=EDIT_SYSTEM_PROMPT), HumanMessage(content=prompt)]
        async for chunk in self._llm.astream(messages):
            text = chunk_text(chunk)
            if text:
                yield text
