"""
OpenAI-compatible LLM client for the decomposition planner.
Uses openai SDK with tenacity retry.
"""

import asyncio
import os
from typing import Any, Callable, Optional

from openai import AsyncOpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 1.0


def resolve_llm_config(api_config: Optional[dict]) -> dict:
    """
    Normalize api_config to {baseUrl, apiKey, model, temperature} (camelCase).
    Missing values fall back to OPENAI_BASE_URL / OPENAI_API_KEY / OPENAI_MODEL, then defaults.
    """
    cfg = dict(api_config or {})
    base = {
        "baseUrl": cfg.get("baseUrl") or cfg.get("base_url") or os.environ.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        "apiKey": cfg.get("apiKey") or cfg.get("api_key") or os.environ.get("OPENAI_API_KEY"),
        "model": cfg.get("model") or os.environ.get("OPENAI_MODEL") or DEFAULT_MODEL,
        "temperature": cfg.get("temperature"),
    }
    if base["temperature"] is None:
        base["temperature"] = DEFAULT_TEMPERATURE
    return base


def _create_client(api_config: dict) -> AsyncOpenAI:
    base_url = (api_config.get("baseUrl") or DEFAULT_BASE_URL).rstrip("/")
    api_key = api_config.get("apiKey") or "not-needed"
    return AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=120.0)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
)
async def _chat_completion_impl(
    client: AsyncOpenAI,
    model: str,
    messages: list[dict],
    on_chunk: Optional[Callable[[str], Any]],
    abort_event: Optional[Any],
    stream: bool,
    temperature: Optional[float] = None,
) -> str:
    """Inner implementation with retry."""
    extra = {"temperature": temperature} if temperature is not None else {}

    if stream:
        full_content = []
        stream_obj = await client.chat.completions.create(
            model=model,
            messages=messages,
            stream=True,
            **extra,
        )
        try:
            async for chunk in stream_obj:
                if abort_event and abort_event.is_set():
                    raise asyncio.CancelledError("Aborted")
                delta = chunk.choices[0].delta if chunk.choices else None
                content = (delta.content or "") if delta else ""
                if content and on_chunk:
                    r = on_chunk(content)
                    if asyncio.iscoroutine(r):
                        await r
                full_content.append(content)
        except (asyncio.CancelledError, GeneratorExit):
            await stream_obj.close()
            raise
        return "".join(full_content)

    if abort_event and abort_event.is_set():
        raise asyncio.CancelledError("Aborted")
    resp = await client.chat.completions.create(
        model=model,
        messages=messages,
        stream=False,
        **extra,
    )
    return resp.choices[0].message.content or ""


async def chat_completion(
    messages: list[dict],
    api_config: dict,
    on_chunk: Optional[Callable[[str], Any]] = None,
    abort_event: Optional[Any] = None,
    stream: bool = True,
    temperature: Optional[float] = None,
) -> str:
    """Call OpenAI-compatible chat completions API and return the full text."""
    cfg = resolve_llm_config(api_config)
    temp = temperature if temperature is not None else cfg.get("temperature")
    client = _create_client(cfg)
    return await _chat_completion_impl(
        client, cfg["model"], messages, on_chunk, abort_event, stream, temp
    )
