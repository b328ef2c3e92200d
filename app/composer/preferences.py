"""Builder settings remembered per user between sessions.

Stored in redis as JSON. Redis being unavailable never blocks composing:
reads fall back to defaults and writes are dropped with a warning.
"""
import logging
from typing import Any, Dict

from app.core import cache
from app.core.config import settings
from app.core.taxonomy import SlotConfiguration, is_category

logger = logging.getLogger("app.composer.preferences")

DEFAULTS: Dict[str, Any] = {
    "mode": "slot",
    "configuration": None,
    "show_grid": False,
    "locked_categories": [],
}


def _key(user_id: str) -> str:
    return f"composer:prefs:{user_id}"


def clean(raw: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(DEFAULTS)
    out["configuration"] = settings.COMPOSER_DEFAULT_CONFIGURATION
    if raw.get("mode") in ("slot", "spatial"):
        out["mode"] = raw["mode"]
    cfg = raw.get("configuration")
    if cfg in {c.value for c in SlotConfiguration}:
        out["configuration"] = cfg
    out["show_grid"] = bool(raw.get("show_grid", False))
    out["locked_categories"] = sorted({c for c in raw.get("locked_categories") or [] if is_category(c)})
    return out


async def load(user_id: str) -> Dict[str, Any]:
    try:
        raw = await cache.cache_json_get(_key(user_id))
    except Exception as e:
        logger.warning("preferences read failed user=%s: %s", user_id, e)
        raw = None
    return clean(raw if isinstance(raw, dict) else {})


async def save(user_id: str, prefs: Dict[str, Any]) -> bool:
    merged = clean({**(await load(user_id)), **prefs})
    try:
        await cache.cache_json_set(_key(user_id), merged, ttl=settings.COMPOSER_PREFS_TTL_S)
    except Exception as e:
        logger.warning("preferences write failed user=%s: %s", user_id, e)
        return False
    return True


async def reset(user_id: str) -> None:
    try:
        await cache.cache_delete(_key(user_id))
    except Exception as e:
        logger.warning("preferences reset failed user=%s: %s", user_id, e)
