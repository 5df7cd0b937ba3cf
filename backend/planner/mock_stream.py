"""
Replay of recorded decompositions for mock mode.
A fixture entry holds the model's reasoning and its answer; the reasoning is fed
to the thinking callback in small chunks, tagged with the node being decomposed.
"""

import asyncio
from typing import Any, AsyncIterator, Callable, Dict, Optional

import orjson


async def reasoning_chunks(
    reasoning: str,
    chunk_size: int = 8,
    delay_ms: int = 30,
    abort_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[str]:
    """Yield reasoning in chunk_size pieces, delay_ms apart. Aborts between chunks."""
    for i in range(0, len(reasoning or ""), chunk_size):
        if abort_event and abort_event.is_set():
            raise asyncio.CancelledError("Aborted")
        yield reasoning[i : i + chunk_size]
        if delay_ms:
            await asyncio.sleep(delay_ms / 1000.0)


def entry_content(entry: Dict[str, Any]) -> str:
    """Recorded answer as model text; list/dict answers are serialized to JSON."""
    content = entry.get("content")
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return orjson.dumps(content).decode("utf-8")


async def replay_decomposition(
    entry: Dict[str, Any],
    on_thinking: Optional[Callable[..., None]] = None,
    node_id: Optional[str] = None,
    chunk_size: int = 8,
    delay_ms: int = 30,
    abort_event: Optional[asyncio.Event] = None,
) -> str:
    """Stream entry['reasoning'] to on_thinking(chunk, node_id=...), then return the recorded answer."""
    reasoning = entry.get("reasoning")
    if on_thinking is not None and isinstance(reasoning, str):
        async for chunk in reasoning_chunks(reasoning, chunk_size, delay_ms, abort_event):
            on_thinking(chunk, node_id=node_id)
    return entry_content(entry)
