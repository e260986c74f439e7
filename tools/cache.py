import asyncio
import functools
import hashlib
import json
import logging
import time

logger = logging.getLogger(__name__)

_cache: dict[str, dict] = {}
_cache_lock = asyncio.Lock()

DEFAULT_TTL = 600
MAX_CACHE_SIZE = 64


def cache_key(namespace: str, args: dict) -> str:
    raw = f"{namespace}:{json.dumps(args, sort_keys=True, ensure_ascii=False, default=str)}"
    return hashlib.md5(raw.encode()).hexdigest()


def _evict_expired():
    """Drop expired entries, then the oldest ones over the size limit. Call under _cache_lock."""
    now = time.time()
    for k in [k for k, v in _cache.items() if now - v["ts"] >= v["ttl"]]:
        del _cache[k]
    if len(_cache) > MAX_CACHE_SIZE:
        for k in sorted(_cache, key=lambda k: _cache[k]["ts"])[:len(_cache) - MAX_CACHE_SIZE]:
            del _cache[k]


def get_cached(namespace: str, args: dict):
    entry = _cache.get(cache_key(namespace, args))
    if entry and time.time() - entry["ts"] < entry["ttl"]:
        logger.info(f"Cache HIT: {namespace}")
        return entry["result"]
    return None


async def set_cached(namespace: str, args: dict, result, ttl: int = DEFAULT_TTL):
    async with _cache_lock:
        _evict_expired()
        _cache[cache_key(namespace, args)] = {"result": result, "ts": time.time(), "ttl": ttl}


def clear_cache():
    _cache.clear()


def cached(ttl: int = DEFAULT_TTL):
    """Cache an async function's non-empty results, keyed by its keyword arguments."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(**kwargs):
            hit = get_cached(func.__name__, kwargs)
            if hit is not None:
                return hit
            result = await func(**kwargs)
            # an empty table usually means the portal misbehaved; try again next time
            if result:
                await set_cached(func.__name__, kwargs, result, ttl)
            return result
        return wrapper
    return decorator
