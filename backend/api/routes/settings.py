"""Settings API routes. Backend maintains settings.json; frontend fetches and overwrites on save."""

from fastapi import APIRouter, Body

from db import get_effective_config, get_settings, save_settings

from .. import state as api_state

router = APIRouter()


@router.get("")
async def get_settings_route():
    """Return settings.json contents."""
    settings = await get_settings()
    return {"settings": settings}


@router.post("")
async def save_settings_route(body: dict = Body(...)):
    """Overwrite settings.json with request body and switch the decomposition source."""
    await save_settings(body)
    config = await get_effective_config()
    if api_state.session is not None:
        api_state.apply_config(api_state.session, config)
    return {"success": True, "aiMode": config.get("aiMode")}
