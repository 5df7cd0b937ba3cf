"""
Settings storage
File-based: db/settings.json holds the decomposition config (aiMode, presets, limits).
Environment variables override file values. Uses orjson for faster JSON parsing.
"""

import os
from pathlib import Path
from typing import Optional

import aiofiles
import orjson
from loguru import logger

DB_DIR = Path(__file__).parent
SETTINGS_FILE = "settings.json"
AI_MODES = ("mock", "simulate", "llm")
DEFAULT_AI_MODE = "mock"

# env var -> effective config key
ENV_OVERRIDES = {
    "FLOW_AI_MODE": "aiMode",
    "OPENAI_BASE_URL": "baseUrl",
    "OPENAI_API_KEY": "apiKey",
    "OPENAI_MODEL": "model",
}


def _settings_path(db_dir: Optional[Path] = None) -> Path:
    return (db_dir or DB_DIR) / SETTINGS_FILE


def _resolve_config(raw: dict) -> dict:
    """Resolve presets+current to effective config for the decomposition source."""
    raw = raw or {}
    presets = raw.get("presets")
    current = raw.get("current")
    if isinstance(presets, dict) and current and current in presets:
        cfg = dict(presets[current])
        cfg.pop("label", None)
    else:
        cfg = {}
    ai_mode = raw.get("aiMode") or DEFAULT_AI_MODE
    if ai_mode not in AI_MODES:
        logger.warning("Unknown aiMode {!r} in settings, using {}", ai_mode, DEFAULT_AI_MODE)
        ai_mode = DEFAULT_AI_MODE
    cfg["aiMode"] = ai_mode
    for key in (
        "temperature", "minLabelLength", "maxDepth", "maxConcurrency",
        "seed", "mockDelayMs", "simulateDelayMs",
    ):
        if raw.get(key) is not None:
            cfg[key] = raw[key]
    if cfg.get("temperature") is not None:
        cfg["temperature"] = float(cfg["temperature"])
    return cfg


def _apply_env(cfg: dict) -> dict:
    for env_key, cfg_key in ENV_OVERRIDES.items():
        v = os.environ.get(env_key)
        if v:
            cfg[cfg_key] = v
    return cfg


async def get_settings(db_dir: Optional[Path] = None) -> dict:
    """Get full settings from db/settings.json. For frontend and other modules."""
    file_path = _settings_path(db_dir)
    try:
        async with aiofiles.open(file_path, "rb") as f:
            data = await f.read()
            return orjson.loads(data)
    except FileNotFoundError:
        return {}
    except orjson.JSONDecodeError as e:
        logger.warning("Invalid JSON in {}: {}", file_path, e)
        return {}


async def get_effective_config(db_dir: Optional[Path] = None) -> dict:
    """Get effective decomposition config (current preset + env overrides)."""
    raw = await get_settings(db_dir)
    return _apply_env(_resolve_config(raw))


async def save_settings(settings: dict, db_dir: Optional[Path] = None) -> dict:
    """Save settings to db/settings.json. Atomic write to avoid corruption."""
    file_path = _settings_path(db_dir)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
    content = orjson.dumps(settings or {}, option=orjson.OPT_INDENT_2).decode("utf-8")
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(content)
    tmp_path.replace(file_path)
    return {"success": True}
