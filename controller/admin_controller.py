# controller/admin_controller.py
from typing import Optional
from fastapi import APIRouter, Depends
from core.anthropic_client import AnthropicClient
from core.retrieval import RetrievalEngine
from model.api import CacheInfo
from repository.answer_cache_repository import AnswerCacheRepository
from service.query_service import QueryService
from util.constants import InternalURIs
from controller.controller_dependencies import (
    get_answer_cache,
    get_engine,
    get_model_client,
    get_query_service,
    require_admin,
)

admin_router = APIRouter()


@admin_router.get(InternalURIs.STATS)
async def stats(
    service: QueryService = Depends(get_query_service),
    engine: RetrievalEngine = Depends(get_engine),
):
    return {
        "success": True,
        "stats": {
            **service.stats(),
            "document": {"totalSections": len(engine.snapshot.sections)},
        },
    }


@admin_router.post(InternalURIs.STATS_RESET, dependencies=[Depends(require_admin)])
async def reset_stats(service: QueryService = Depends(get_query_service)):
    service.reset_stats()
    return {"success": True, "message": "Statistics reset"}


@admin_router.get(
    InternalURIs.CACHE,
    response_model=CacheInfo,
    dependencies=[Depends(require_admin)],
)
async def cache_info(
    cache: Optional[AnswerCacheRepository] = Depends(get_answer_cache),
) -> CacheInfo:
    if cache is None:
        return CacheInfo(enabled=False, hits=0, misses=0, hitRate=0.0, size=0)
    return CacheInfo(
        enabled=True,
        size=await cache.count(),
        queries=await cache.queries(),
        **cache.stats(),
    )


@admin_router.delete(InternalURIs.CACHE, dependencies=[Depends(require_admin)])
async def clear_cache(
    cache: Optional[AnswerCacheRepository] = Depends(get_answer_cache),
):
    removed = await cache.clear() if cache is not None else 0
    return {"success": True, "cleared": removed}


@admin_router.get(InternalURIs.HEALTH)
async def health(
    checkLLM: bool = False,
    engine: RetrievalEngine = Depends(get_engine),
    client: Optional[AnthropicClient] = Depends(get_model_client),
    cache: Optional[AnswerCacheRepository] = Depends(get_answer_cache),
):
    llm: Optional[bool] = None
    if checkLLM:
        llm = await client.ping() if client is not None else False
    return {
        "status": "healthy" if llm is not False else "degraded",
        "sections": len(engine.snapshot.sections),
        "cacheEnabled": cache is not None,
        "llmReachable": llm,
    }
