"""Flow API - snapshot, generate, load tree, expand, reset, hover."""

import asyncio

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from loguru import logger

from flow.model import InvalidTreeError
from planner.source import DecompositionError

from ..schemas import ExpandAllRequest, ExpandRequest, GenerateRequest, HoverRequest, TreeRequest
from .. import state as api_state

router = APIRouter()


def _payload():
    return api_state.session.snapshot().to_payload()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("")
async def get_flow():
    return _payload()


async def _cancel_running() -> None:
    """New generate/reset supersedes whatever run is in progress."""
    state = api_state.run_state
    task = state.run_task if state else None
    if task and not task.done():
        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, Exception):
            logger.debug("Previous flow run ended on cancel")


@router.post("/generate")
async def generate_flow(body: GenerateRequest):
    state = api_state.run_state
    if state is None:
        return _error(503, "API not initialized")
    async with state.lock:
        await _cancel_running()
        state.run_task = asyncio.create_task(api_state.session.generate(body.input, expand=body.expand))
        task = state.run_task
    try:
        await task
        return _payload()
    except asyncio.CancelledError:
        await api_state.sio.emit("flow-error", {"error": "Generation superseded"})
        return _error(499, "Generation superseded")
    except ValueError as e:
        return _error(400, str(e))
    except DecompositionError as e:
        logger.warning("Generate failed: {}", e)
        await api_state.sio.emit("flow-error", {"error": str(e), "nodeId": e.node_id})
        return _error(502, str(e))
    except Exception as e:
        logger.exception("Generate failed unexpectedly")
        return _error(500, str(e) or "Internal error")
    finally:
        if state.run_task is task:
            state.run_task = None


@router.post("/tree")
async def load_tree(body: TreeRequest):
    await _cancel_running()
    try:
        api_state.session.load_tree(body.tree)
    except InvalidTreeError as e:
        return _error(400, str(e))
    return _payload()


@router.post("/expand")
async def expand_node(body: ExpandRequest):
    try:
        result = await api_state.session.expand(body.node_id)
    except DecompositionError as e:
        logger.warning("Expand {} failed: {}", body.node_id, e)
        await api_state.sio.emit("flow-error", {"error": str(e), "nodeId": body.node_id})
        return _error(502, str(e))
    except Exception as e:
        logger.exception("Expand {} failed unexpectedly", body.node_id)
        return _error(500, str(e) or "Internal error")
    return {"result": result.model_dump(by_alias=True, mode="json"), **_payload()}


@router.post("/expand-all")
async def expand_all(body: ExpandAllRequest):
    try:
        grown = await api_state.session.expand_all(body.node_id)
    except DecompositionError as e:
        logger.warning("Expand-all failed: {}", e)
        await api_state.sio.emit("flow-error", {"error": str(e), "nodeId": e.node_id})
        return _error(502, str(e))
    except Exception as e:
        logger.exception("Expand-all failed unexpectedly")
        return _error(500, str(e) or "Internal error")
    return {"grown": grown, **_payload()}


@router.post("/reset")
async def reset_flow():
    await _cancel_running()
    api_state.session.reset()
    return {"success": True}


@router.get("/related")
async def related(node_id: str = Query(..., alias="nodeId")):
    rel = api_state.session.related_to(node_id)
    return {
        "ancestors": list(rel.ancestors),
        "siblings": list(rel.siblings),
        "descendants": list(rel.descendants),
    }


@router.post("/hover")
async def hover(body: HoverRequest):
    if body.node_id:
        ids = api_state.session.hover_node(body.node_id)
    elif body.source and body.target:
        ids = api_state.session.hover_edge(body.source, body.target)
    else:
        return _error(400, "Provide nodeId, or source and target")
    return {"highlight": sorted(ids)}


@router.post("/hover/clear")
async def hover_clear():
    api_state.session.leave()
    return {"success": True}
