# controller/controller_dependencies.py
from typing import Optional
from fastapi import Header, Request
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from core.anthropic_client import AnthropicClient
from core.retrieval import RetrievalEngine
from repository.answer_cache_repository import AnswerCacheRepository
from service.document_service import DocumentService
from service.query_service import QueryService
from util.enums import ErrorMessage
from util.errors import AppError

# Module-level so tests can swap them out through app.dependency_overrides.
query_rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)
document_rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES * 2, seconds=settings.RATE_LIMIT_SECONDS
)


# Everything below is built once in the lifespan and parked on app.state.


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service


def get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def get_engine(request: Request) -> RetrievalEngine:
    return request.app.state.engine


def get_answer_cache(request: Request) -> Optional[AnswerCacheRepository]:
    return getattr(request.app.state, "answer_cache", None)


def get_model_client(request: Request) -> Optional[AnthropicClient]:
    return getattr(request.app.state, "model_client", None)


async def require_admin(authorization: Optional[str] = Header(default=None)) -> None:
    """Shared-secret guard; open when ADMIN_KEY is unset."""
    if not settings.ADMIN_KEY:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or token.strip() != settings.ADMIN_KEY:
        msg, code = ErrorMessage.UNAUTHORIZED.value
        raise AppError(msg, code)
