from langchain_anthropic import ChatAnthropic
from langchain_openai import ChatOpenAI


def get_llm(model: str, max_tokens: int = 2000, temperature: float = 0.7, streaming: bool = False):
    """Return a chat model for ``model``; Claude models go to Anthropic, the rest to OpenAI."""
    if "claude" in model.lower():
        return ChatAnthropic(model=model, max_tokens=max_tokens, temperature=temperature, streaming=streaming)
    return ChatOpenAI(model=model, max_tokens=max_tokens, temperature=temperature, streaming=streaming)


def chunk_text(chunk) -> str:
    """Text carried by one streamed message chunk (Anthropic may send content blocks)."""
    content = chunk.content
    if isinstance(content, str):
        return content
    return "".join(part.get("text", "") for part in content if isinstance(part, dict))
