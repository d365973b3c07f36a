# repository/answer_cache_repository.py
import logging
from datetime import datetime, timezone
from typing import Final, List, Optional
from pydantic import ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.api import QueryResponse
from repository.namespaces import ANSWERS
from util.text import cache_key

KEY_PREFIX: Final[str] = ANSWERS

logger = logging.getLogger(__name__)


class AnswerCacheRepository:
    """
    Flow:
    - Key = hash of the normalized query, so "What about TAXES?" and
      "what about   taxes?" share one entry.
    - Value = QueryResponse JSON, stamped with cachedAt.
    - Plain TTL expiry; no refresh on read.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.CACHE_TTL_SECONDS,
        client: Optional[Redis] = None,
    ) -> None:
        self._ttl = int(ttl_seconds)
        self._redis = client
        self._hits = 0
        self._misses = 0

    async def _client(self) -> Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    @staticmethod
    def _key(query: str) -> str:
        return f"{KEY_PREFIX}:{cache_key(query)}"

    async def get(self, query: str) -> Optional[QueryResponse]:
        r = await self._client()
        raw = await r.get(self._key(query))
        if raw is None:
            self._misses += 1
            logger.debug("cache.miss key=%s", self._key(query))
            return None
        try:
            cached = QueryResponse.model_validate_json(raw)
        except ValidationError:
            # schema drift between deploys; drop the stale entry
            logger.warning("cache.corrupt key=%s", self._key(query))
            await r.delete(self._key(query))
            self._misses += 1
            return None
        self._hits += 1
        logger.debug("cache.hit key=%s", self._key(query))
        return cached

    async def set(self, query: str, response: QueryResponse) -> None:
        r = await self._client()
        stamped = response.model_copy(
            update={"cachedAt": datetime.now(timezone.utc).isoformat()}
        )
        await r.set(self._key(query), stamped.model_dump_json(), ex=self._ttl)

    async def _keys(self) -> List[str]:
        r = await self._client()
        return [k async for k in r.scan_iter(match=f"{KEY_PREFIX}:*")]

    async def count(self) -> int:
        return len(await self._keys())

    async def queries(self, limit: int = 100) -> List[str]:
        r = await self._client()
        out: List[str] = []
        for key in (await self._keys())[:limit]:
            raw = await r.get(key)
            if raw is None:
                continue
            try:
                out.append(QueryResponse.model_validate_json(raw).query[:100])
            except ValidationError:
                continue
        return out

    async def clear(self) -> int:
        r = await self._client()
        keys = await self._keys()
        removed = int(await r.delete(*keys)) if keys else 0
        logger.info("cache.cleared keys=%d", removed)
        return removed

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / total, 3) if total else 0.0,
        }

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
