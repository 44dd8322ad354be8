"""Redis 캐시 및 참가 단위 락

Redis가 없거나 연결이 끊겨도 서비스는 동작해야 한다:
캐시는 항상 miss, 락은 즉시 통과하고 DB 조건부 UPDATE가 최종 보호를 맡는다.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional, Any

import redis.asyncio as redis
from redis.exceptions import RedisError, LockError

from config import settings

logger = logging.getLogger(__name__)

LOCK_TTL = 10  # 락 자동 만료 (초)
LOCK_WAIT_TIMEOUT = 5.0  # 락 대기 한도 (초), 넘기면 TimeoutError


def leaderboard_cache_key(challenge_id) -> str:
    return f"leaderboard:{challenge_id}"


def participation_lock_name(participation_id) -> str:
    return f"lock:participation:{participation_id}"


class RedisCache:
    """리더보드 캐시 + 분산 락"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client
        self._connected = client is not None

    async def connect(self) -> bool:
        if self._connected:
            return True

        client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD or None,
            db=settings.REDIS_DB,
            ssl=settings.REDIS_SSL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Redis unavailable, running without cache and locks: {e}")
            await client.aclose()
            return False

        self._client = client
        self._connected = True
        logger.info(f"Redis connected ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
        return True

    async def close(self):
        if self._client:
            await self._client.aclose()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ============ JSON 캐시 ============

    async def get_json(self, key: str) -> Optional[Any]:
        if not self._connected:
            return None
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed ({key}): {e}")
            return None
        return json.loads(raw) if raw else None

    async def set_json(self, key: str, value: Any, ttl: int) -> None:
        if not self._connected:
            return
        try:
            await self._client.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed ({key}): {e}")

    async def delete(self, key: str) -> None:
        if not self._connected:
            return
        try:
            await self._client.delete(key)
        except RedisError as e:
            logger.warning(f"Cache delete failed ({key}): {e}")

    # ============ 분산 락 ============

    @asynccontextmanager
    async def lock(self, name: str, ttl: int = LOCK_TTL, wait_timeout: float = LOCK_WAIT_TIMEOUT):
        """토큰 기반 분산 락 (redis-py Lock: SET NX PX + Lua 해제)

        Raises:
            TimeoutError: wait_timeout 안에 락을 얻지 못한 경우
        """
        if not self._connected:
            yield
            return

        redis_lock = self._client.lock(name, timeout=ttl, blocking_timeout=wait_timeout)
        try:
            acquired = await redis_lock.acquire()
        except RedisError as e:
            logger.warning(f"Lock unavailable ({name}), relying on database guards: {e}")
            redis_lock = None
            acquired = True

        if not acquired:
            raise TimeoutError(f"Failed to acquire lock '{name}' within {wait_timeout}s")

        try:
            yield
        finally:
            if redis_lock is not None:
                try:
                    await redis_lock.release()
                except LockError:
                    # TTL 만료로 이미 다른 요청이 가져간 경우
                    logger.warning(f"Lock '{name}' expired before release")


# 전역 캐시 인스턴스 (lifespan 에서 초기화)
cache: Optional[RedisCache] = None


async def init_cache() -> RedisCache:
    global cache
    cache = RedisCache()
    await cache.connect()
    return cache


@asynccontextmanager
async def participation_lock(participation_id):
    """참가 기록 단위 쓰기 직렬화 (거래 진입/청산)"""
    if cache is None:
        yield
        return
    async with cache.lock(participation_lock_name(participation_id)):
        yield


async def get_cached_leaderboard(challenge_id) -> Optional[list]:
    if cache is None:
        return None
    return await cache.get_json(leaderboard_cache_key(challenge_id))


async def store_leaderboard(challenge_id, entries: list) -> None:
    if cache is not None:
        await cache.set_json(leaderboard_cache_key(challenge_id), entries, settings.CACHE_TTL_LEADERBOARD)


async def invalidate_leaderboard(challenge_id) -> None:
    if cache is not None:
        await cache.delete(leaderboard_cache_key(challenge_id))
