# main.py
from fastapi_limiter import FastAPILimiter
import routes
from contextlib import asynccontextmanager
from util.enums import Environment, Color
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from config.settings import settings
from config.cache import close_redis, get_redis
from core.anthropic_client import AnthropicClient
from core.document_indexer import load_snapshot
from core.orchestrator import ConversationOrchestrator
from core.retrieval import RetrievalEngine
from core.tool_executor import ToolExecutor
from repository.answer_cache_repository import AnswerCacheRepository
from service.document_service import DocumentService
from service.query_service import QueryService
from fastapi.responses import JSONResponse
from util.logger import init_logger


async def _real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    logger = init_logger()
    print(f"{Color.GREEN}Indexing {settings.DOCUMENT_PATH}...{Color.RESET}")

    # An unreadable or unparsable document is fatal: nothing to serve without it.
    snapshot = load_snapshot(settings.DOCUMENT_PATH)
    engine = RetrievalEngine(snapshot, settings.DOCUMENT_TITLE)
    tools = ToolExecutor(engine)
    client = AnthropicClient(api_key=settings.ANTHROPIC_API_KEY)
    if not settings.ANTHROPIC_API_KEY:
        logger.warning("startup.no_api_key queries will fail until ANTHROPIC_API_KEY is set")

    try:
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=_real_ip)
    except Exception as e:
        print("Failed to connect to Redis:", e)
        raise

    cache = AnswerCacheRepository(client=redis) if settings.CACHE_ENABLED else None

    fastApi.state.engine = engine
    fastApi.state.model_client = client
    fastApi.state.answer_cache = cache
    fastApi.state.document_service = DocumentService(engine)
    fastApi.state.query_service = QueryService(
        ConversationOrchestrator(client, tools),
        tools=tools,
        client=client,
        cache=cache,
    )
    print(f"{Color.BLUE}Server Started ({len(snapshot.sections)} sections){Color.RESET}")

    try:
        yield
    finally:
        try:
            await close_redis()
        except Exception as e:
            print("Error closing Redis:", e)

        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(title="bill-lens", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "type": "rate_limited",
                "message": f"Too many requests. Try again in {settings.RATE_LIMIT_SECONDS}s.",
            },
        },
        headers={"Retry-After": str(settings.RATE_LIMIT_SECONDS)},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=reload)
