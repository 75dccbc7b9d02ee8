from functools import wraps
from typing import Callable

from pydantic import BaseModel


def async_cached(
    key_builder: Callable[..., str], model: type[BaseModel], l2_ttl: int = None
):
    """
    Decorator for async service methods. key_builder receives the same
    args/kwargs; the owning instance must expose a ``cache`` attribute
    (``None`` disables caching). Values are stored as JSON dicts and
    rebuilt into ``model`` on the way out.
    Example:
      @async_cached(lambda self, task_id: f"task:{task_id}", model=TaskRead)
      async def find_task(self, task_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            if self.cache is None:
                return await fn(self, *args, **kwargs)

            key = key_builder(self, *args, **kwargs)

            async def loader():
                value = await fn(self, *args, **kwargs)
                if value is None:
                    return None
                return value.model_dump(mode="json")

            raw = await self.cache.get(key, loader=loader, l2_ttl=l2_ttl)
            return None if raw is None else model.model_validate(raw)

        return wrapper

    return decorator


def async_cached_expire(key_builder: Callable[..., str]):
    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            # expire only once the write has committed, so readers never see
            # an uncommitted row; a read that loaded the old row before the
            # commit may still store it until its TTL lapses
            if self.cache is not None:
                await self.cache.delete(key_builder(self, *args, **kwargs))
            return result

        return wrapper

    return decorator
