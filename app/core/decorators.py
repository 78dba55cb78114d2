import functools
import inspect
from typing import Optional, Callable
from fastapi.encoders import jsonable_encoder
from app.core.cache import cache
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

def cache_endpoint(ttl: int = 300, key_prefix: Optional[str] = None):
    """Cache an async endpoint's response per user.

    Keys look like ``user:{id}:{name}:k=v`` so a learner's entries can be
    dropped together with ``cache.invalidate_user_cache``.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.CACHE_ENABLED:
                return await func(*args, **kwargs)

            cache_key = _generate_cache_key(func.__name__, kwargs, key_prefix)

            cached_value = await cache.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache HIT for key: {cache_key}")
                return cached_value

            result = await func(*args, **kwargs)

            if result is not None:
                await cache.set(cache_key, jsonable_encoder(result), ttl=ttl)
                logger.debug(f"Cache MISS for key: {cache_key} (stored with TTL {ttl}s)")

            return result

        if not inspect.iscoroutinefunction(func):
            raise TypeError("cache_endpoint only supports async endpoints")
        return wrapper

    return decorator


def _generate_cache_key(func_name: str, kwargs: dict, prefix: Optional[str] = None) -> str:
    user_id = None
    context = kwargs.get('context')
    if context is not None and hasattr(context, 'user'):
        user_id = context.user.id

    name = prefix or func_name
    key_parts = [f"user:{user_id}:{name}"] if user_id else [name]

    skip_keys = {'context', 'db', 'request'}
    for k, v in sorted(kwargs.items()):
        if k not in skip_keys and not callable(v):
            key_parts.append(f"{k}={v}")

    return ":".join(key_parts)
