# model/api.py
from pydantic import BaseModel, Field
from model.answer import StructuredAnswer


class QueryOptions(BaseModel):
    useCache: bool = True


class QueryRequest(BaseModel):
    # Optional so the service can answer with a structured 400 instead of a 422.
    query: str | None = None
    options: QueryOptions = Field(default_factory=QueryOptions)


class ValidateQueryRequest(BaseModel):
    query: str | None = None


class ValidateQueryResponse(BaseModel):
    success: bool = True
    valid: bool
    errors: list[str]


class AnswerMetadata(BaseModel):
    model: str | None = None
    queryType: str
    processingMethod: str = "llm_with_tools"
    rounds: int = 0
    toolCalls: int = 0
    forcedFinal: bool = False


class QueryResponse(StructuredAnswer):
    success: bool = True
    query: str
    metadata: AnswerMetadata
    fromCache: bool = False
    processingTime: int = 0
    cachedAt: str | None = None


class ErrorDetail(BaseModel):
    type: str
    message: str
    retryAfter: int | None = None
    details: list[str] | None = None


class QueryErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail
    query: str | None = None
    processingTime: int = 0


class SuggestionsResponse(BaseModel):
    success: bool = True
    suggestions: list[str]


class SearchResult(BaseModel):
    id: str
    title: str
    type: str
    level: int
    score: float
    excerpt: str | None = None
    relevantSentences: list[str] | None = None


class SearchResponse(BaseModel):
    success: bool = True
    term: str
    mode: str
    results: list[SearchResult]
    totalFound: int


class CacheInfo(BaseModel):
    enabled: bool
    hits: int
    misses: int
    hitRate: float
    size: int
    queries: list[str] = Field(default_factory=list)
