from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ranking_service.app.config import Settings, settings as default_settings
from ranking_service.app.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def connect(cfg: Optional[Settings] = None) -> aioredis.Redis:
    cfg = cfg or default_settings
    host, port = cfg.redis_host_port
    return aioredis.Redis(
        host=host,
        port=port,
        password=cfg.redis_password or None,
        db=cfg.redis_db,
        max_connections=cfg.redis_pool,
        socket_timeout=cfg.redis_socket_timeout,
        decode_responses=True,
    )


@contextmanager
def _unavailable(op: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        raise StoreUnavailableError(f"{op} {key}: {e}") from e


class RankingStore:
    """
    Thin capability wrapper over a Redis client.

    Every method is a single round trip (pipelines count as one). No retries,
    no caching: the Redis contents are the only state.
    """

    def __init__(self, client: aioredis.Redis):
        self.client = client

    # ranking scopes (sorted sets)

    async def increment_score(self, scope: str, member: str, delta: float) -> float:
        with _unavailable("ZINCRBY", scope):
            return float(await self.client.zincrby(scope, delta, member))

    async def add_score(self, scope: str, member: str, score: float) -> None:
        with _unavailable("ZADD", scope):
            await self.client.zadd(scope, {member: score})

    async def range_descending(self, scope: str, start: int, stop: int) -> List[str]:
        """Members ranked start..stop inclusive, highest score first."""
        with _unavailable("ZREVRANGE", scope):
            return list(await self.client.zrevrange(scope, start, stop))

    async def multi_get_scores(self, scope: str, members: List[str]) -> List[Optional[float]]:
        if not members:
            return []
        with _unavailable("ZMSCORE", scope):
            raw = await self.client.zmscore(scope, members)
        return [None if v is None else float(v) for v in raw]

    # metadata (hashes)

    async def get_fields(self, key: str, *fields: str) -> Dict[str, str]:
        """Selected fields (absent ones omitted), or the whole hash when none are named."""
        with _unavailable("HGET", key):
            if not fields:
                return dict(await self.client.hgetall(key))
            values = await self.client.hmget(key, list(fields))
        return {f: v for f, v in zip(fields, values) if v is not None}

    async def multi_get_fields(self, keys: List[str]) -> List[Dict[str, str]]:
        if not keys:
            return []
        with _unavailable("HGETALL", f"{len(keys)} keys"):
            async with self.client.pipeline(transaction=False) as pipe:
                for k in keys:
                    pipe.hgetall(k)
                rows = await pipe.execute()
        return [dict(r or {}) for r in rows]

    async def multi_get_field(self, keys: List[str], field: str) -> List[Optional[str]]:
        if not keys:
            return []
        with _unavailable("HGET", f"{len(keys)} keys"):
            async with self.client.pipeline(transaction=False) as pipe:
                for k in keys:
                    pipe.hget(k, field)
                return list(await pipe.execute())

    async def set_field(self, key: str, field: str, value) -> None:
        with _unavailable("HSET", key):
            await self.client.hset(key, field, value)

    async def set_fields(self, key: str, mapping: Mapping[str, object]) -> None:
        with _unavailable("HSET", key):
            await self.client.hset(key, mapping=dict(mapping))

    async def set_fields_if_absent(self, key: str, mapping: Mapping[str, object]) -> None:
        with _unavailable("HSETNX", key):
            async with self.client.pipeline(transaction=False) as pipe:
                for field, value in mapping.items():
                    pipe.hsetnx(key, field, value)
                await pipe.execute()

    # membership (sets)

    async def set_add(self, key: str, *members: str) -> None:
        if not members:
            return
        with _unavailable("SADD", key):
            await self.client.sadd(key, *members)

    async def set_members(self, key: str) -> Set[str]:
        with _unavailable("SMEMBERS", key):
            return set(await self.client.smembers(key))

    # housekeeping

    async def delete_matching(self, patterns: Iterable[str]) -> int:
        patterns = tuple(patterns)
        deleted = 0
        with _unavailable("DEL", ",".join(patterns)):
            for pattern in patterns:
                batch = [k async for k in self.client.scan_iter(match=pattern)]
                if batch:
                    deleted += int(await self.client.delete(*batch))
        return deleted

    async def ping(self) -> bool:
        with _unavailable("PING", "-"):
            return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
