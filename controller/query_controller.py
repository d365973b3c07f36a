# controller/query_controller.py
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from model.api import (
    QueryErrorResponse,
    QueryRequest,
    QueryResponse,
    SuggestionsResponse,
    ValidateQueryRequest,
    ValidateQueryResponse,
)
from service.query_service import QueryService, validate_query
from util.constants import InternalURIs
from util.enums import ERROR_HTTP_STATUS
from controller.controller_dependencies import get_query_service, query_rate_limiter

query_router = APIRouter(dependencies=[Depends(query_rate_limiter)])


@query_router.post(
    InternalURIs.QUERY,
    response_model=QueryResponse,
    responses={400: {"model": QueryErrorResponse}, 429: {"model": QueryErrorResponse}},
)
async def query_bill(
    payload: QueryRequest,
    service: QueryService = Depends(get_query_service),
):
    result = await service.process(payload.query, use_cache=payload.options.useCache)
    if isinstance(result, QueryErrorResponse):
        code = ERROR_HTTP_STATUS.get(result.error.type, status.HTTP_500_INTERNAL_SERVER_ERROR)
        headers = (
            {"Retry-After": str(result.error.retryAfter)}
            if result.error.retryAfter
            else None
        )
        return JSONResponse(
            status_code=code,
            content=result.model_dump(exclude_none=True),
            headers=headers,
        )
    return result


@query_router.get(InternalURIs.QUERY_SUGGESTIONS, response_model=SuggestionsResponse)
async def query_suggestions(limit: int = Query(5, ge=1, le=10)) -> SuggestionsResponse:
    return SuggestionsResponse(suggestions=QueryService.suggestions(limit))


@query_router.post(InternalURIs.VALIDATE, response_model=ValidateQueryResponse)
async def validate(payload: ValidateQueryRequest) -> ValidateQueryResponse:
    errors = validate_query(payload.query)
    return ValidateQueryResponse(valid=not errors, errors=errors)
