"""
Shared API state - sio, flow session, run state.
Initialized by main.py after creating app and services.
"""

import asyncio
from typing import Any, Optional

from loguru import logger

from planner import create_decomposer


class FlowRunState:
    """Mutable container for the in-progress generate/expand-all task. Main holds refs for stop."""
    lock: Optional[Any] = None
    run_task: Optional[Any] = None


# Set by main.py
sio: Any = None
session: Any = None
run_state: Optional[FlowRunState] = None


def init_api_state(sio_instance, flow_session, flow_run_state: FlowRunState):
    global sio, session, run_state
    sio = sio_instance
    session = flow_session
    run_state = flow_run_state


def emit_soon(event: str, payload: Optional[dict] = None) -> None:
    """Schedule a socket.io emit from sync callbacks. No-op without sio or a running loop."""
    if sio is None:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running loop, dropping {} event", event)
        return
    loop.create_task(sio.emit(event, payload))


def on_thinking(chunk: str, node_id: Optional[str] = None) -> None:
    payload = {"chunk": chunk}
    if node_id is not None:
        payload["nodeId"] = node_id
    emit_soon("flow-thinking", payload)


def apply_config(flow_session, config: dict) -> None:
    """Swap the session's decomposition source and limits to match effective config."""
    flow_session.source = create_decomposer(config, on_thinking=on_thinking)
    if config.get("minLabelLength") is not None:
        flow_session.min_label_length = int(config["minLabelLength"])
    if config.get("maxDepth") is not None:
        flow_session.max_depth = int(config["maxDepth"])
    if config.get("maxConcurrency") is not None:
        flow_session.max_concurrency = int(config["maxConcurrency"])
    logger.info("Decomposition source: {}", type(flow_session.source).__name__)
