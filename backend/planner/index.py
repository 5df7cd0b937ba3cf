"""
Planner module - decomposition sources for the workflow tree.
LLMDecomposer asks an OpenAI-compatible model; MockDecomposer replays recorded responses;
SimulatedDecomposer (planner.simulated) splits the label text at random.
"""

import asyncio
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import json_repair
import orjson
from loguru import logger

from flow.model import RATIO_TOLERANCE, DecomposePart, TreeNode, normalize_ratios, ratio_drift
from shared.graph import render_tree_outline

from .llm_client import chat_completion
from .mock_stream import replay_decomposition
from .source import MIN_LABEL_LENGTH, DecompositionError, DecompositionSource
from .simulated import SimulatedDecomposer

PLANNER_DIR = Path(__file__).parent
MOCK_AI_DIR = PLANNER_DIR / "mock-ai"
MAX_VALIDATION_RETRIES = 2
RETRY_TEMPERATURE = 0.5
NO_CONTEXT = "No upstream workflow"

ThinkingCallback = Callable[..., None]

# Caches
_prompt_cache: Dict[str, str] = {}
_mock_cache: Dict[str, Dict] = {}


def _get_prompt_cached(filename: str) -> str:
    if filename not in _prompt_cache:
        path = PLANNER_DIR / "prompts" / filename
        _prompt_cache[filename] = path.read_text(encoding="utf-8").strip()
    return _prompt_cache[filename]


def _get_mock_cached(path: Path) -> Dict:
    key = str(path)
    if key not in _mock_cache:
        try:
            _mock_cache[key] = orjson.loads(path.read_bytes())
        except (FileNotFoundError, orjson.JSONDecodeError):
            logger.warning("Mock fixture unavailable: {}", path)
            _mock_cache[key] = {}
    return _mock_cache[key]


def build_context(context_tree: Optional[TreeNode], context_node_id: Optional[str]) -> str:
    """Tree outline for the prompt, with the node being decomposed marked."""
    if context_tree is None or not context_node_id:
        return NO_CONTEXT
    return (
        "Current workflow tree (▶ marks the node to decompose):\n"
        + render_tree_outline(context_tree, context_node_id)
    )


def build_messages(label: str, context_tree: Optional[TreeNode], context_node_id: Optional[str]) -> List[dict]:
    user_message = (
        f"**Workflow tree:**\n{build_context(context_tree, context_node_id)}\n\n"
        f'**Decompose:** "{label}"\n\n**Output:**'
    )
    return [
        {"role": "system", "content": _get_prompt_cached("decompose-prompt.txt")},
        {"role": "user", "content": user_message},
    ]


def _extract_json_block(text: str) -> str:
    cleaned = (text or "").strip()
    m = re.search(r"```(?:json)?\s*([\s\S]*?)```", cleaned)
    if m:
        return m.group(1).strip()
    return cleaned


def parse_decompose_response(content: Any) -> List[DecomposePart]:
    """
    Parse and validate a decomposition response: a JSON array of {text, ratio}
    (fenced or bare; malformed JSON is repaired). Ratios drifting more than 0.01
    from 1 are rescaled. Raises ValueError on invalid shape.
    """
    if isinstance(content, str):
        try:
            result = json_repair.loads(_extract_json_block(content))
        except Exception as e:
            raise ValueError(f"Failed to parse JSON from AI response: {e}") from e
    else:
        result = content
    if isinstance(result, dict):
        result = result.get("parts") or result.get("steps") or result.get("tasks")
    if not isinstance(result, list):
        raise ValueError("Response is not a list")

    parts: List[DecomposePart] = []
    for i, item in enumerate(result):
        if not isinstance(item, dict):
            raise ValueError(f"Part {i} is not an object")
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError(f"Part {i} missing or invalid text")
        ratio = item.get("ratio")
        if isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or not 0 <= ratio <= 1:
            raise ValueError(f"Part {i} ratio must be a number in [0, 1]")
        parts.append(DecomposePart(text=text.strip(), ratio=float(ratio)))

    if parts and ratio_drift(parts) > RATIO_TOLERANCE:
        logger.debug("Renormalizing ratios (sum={})", sum(p.ratio for p in parts))
        ratios = normalize_ratios([p.ratio for p in parts])
        parts = [DecomposePart(text=p.text, ratio=r) for p, r in zip(parts, ratios)]
    return parts


class LLMDecomposer:
    """Decomposition backed by an OpenAI-compatible chat model."""

    def __init__(
        self,
        api_config: Optional[dict] = None,
        on_thinking: Optional[ThinkingCallback] = None,
        abort_event: Optional[asyncio.Event] = None,
        max_retries: int = MAX_VALIDATION_RETRIES,
        min_label_length: int = MIN_LABEL_LENGTH,
    ):
        self.api_config = dict(api_config or {})
        self.on_thinking = on_thinking
        self.abort_event = abort_event
        self.max_retries = max_retries
        self.min_label_length = min_label_length

    async def decompose(
        self,
        label: str,
        context_tree: Optional[TreeNode] = None,
        context_node_id: Optional[str] = None,
    ) -> List[DecomposePart]:
        if len(label or "") < self.min_label_length:
            return []
        messages = build_messages(label, context_tree, context_node_id)

        def stream_chunk(chunk: str) -> None:
            if self.on_thinking and chunk:
                self.on_thinking(chunk, node_id=context_node_id)

        for attempt in range(self.max_retries + 1):
            try:
                content = await chat_completion(
                    messages,
                    self.api_config,
                    on_chunk=stream_chunk if self.on_thinking else None,
                    abort_event=self.abort_event,
                    stream=True,
                    temperature=RETRY_TEMPERATURE if attempt > 0 else None,
                )
                return parse_decompose_response(content)
            except Exception as e:
                logger.warning("Decompose attempt {} for {!r} failed: {}", attempt + 1, label, e)
                if attempt >= self.max_retries:
                    raise DecompositionError(node_id=context_node_id) from e
        raise DecompositionError(node_id=context_node_id)


class MockDecomposer:
    """Replays recorded responses from mock-ai/decompose.json keyed by label.
    Labels without an entry (and no _default) are leaves."""

    def __init__(
        self,
        fixture_path: Optional[Path] = None,
        on_thinking: Optional[ThinkingCallback] = None,
        abort_event: Optional[asyncio.Event] = None,
        delay_ms: int = 30,
        min_label_length: int = MIN_LABEL_LENGTH,
    ):
        self.fixture_path = Path(fixture_path) if fixture_path else MOCK_AI_DIR / "decompose.json"
        self.on_thinking = on_thinking
        self.abort_event = abort_event
        self.delay_ms = delay_ms
        self.min_label_length = min_label_length

    def _load_entry(self, label: str) -> Optional[Dict]:
        data = _get_mock_cached(self.fixture_path)
        return data.get(label) or data.get("_default")

    async def decompose(
        self,
        label: str,
        context_tree: Optional[TreeNode] = None,
        context_node_id: Optional[str] = None,
    ) -> List[DecomposePart]:
        if len(label or "") < self.min_label_length:
            return []
        entry = self._load_entry(label)
        if not entry:
            return []

        text = await replay_decomposition(
            entry,
            self.on_thinking,
            node_id=context_node_id,
            delay_ms=self.delay_ms,
            abort_event=self.abort_event,
        )
        try:
            return parse_decompose_response(text)
        except ValueError as e:
            raise DecompositionError(node_id=context_node_id) from e


def create_decomposer(
    config: Optional[dict] = None,
    on_thinking: Optional[ThinkingCallback] = None,
    abort_event: Optional[asyncio.Event] = None,
) -> DecompositionSource:
    """Pick a source from effective config. aiMode: mock | simulate | llm."""
    cfg = dict(config or {})
    mode = cfg.get("aiMode") or "mock"
    min_len = int(cfg.get("minLabelLength") or MIN_LABEL_LENGTH)
    if mode == "llm":
        return LLMDecomposer(cfg, on_thinking=on_thinking, abort_event=abort_event, min_label_length=min_len)
    if mode == "simulate":
        return SimulatedDecomposer(seed=cfg.get("seed"), delay_ms=int(cfg.get("simulateDelayMs") or 0))
    if mode != "mock":
        logger.warning("Unknown aiMode {!r}, using mock", mode)
    return MockDecomposer(
        on_thinking=on_thinking,
        abort_event=abort_event,
        delay_ms=int(cfg.get("mockDelayMs", 30)),
        min_label_length=min_len,
    )
