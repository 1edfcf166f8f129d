import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    PerformanceMiddleware,
    RequestLoggingMiddleware,
    register_exception_handlers,
)
from app.models.ai_settings import load_settings
from app.routers import analysis, match_scores
from app.services.db import MatchScoreStore, init_indexes
from app.services.llm import LLMClient, RateLimiter
from app.services.llm_scorer import LLMScorer
from app.services.orchestrator import AnalysisOrchestrator
from app.utils.logging_config import configure_for_environment, get_logger

APP_TITLE = "Candidate Match API"
APP_VERSION = "1.0.0"
SLOW_REQUEST_SECONDS = 2.0

configure_for_environment()
logger = get_logger(__name__)


def build_orchestrator(settings, store) -> AnalysisOrchestrator:
    """Wire the rate limiter, LLM client and scorers once per process"""
    rate_limiter = RateLimiter(settings.rate_limits.per_minute)
    client = LLMClient(settings.llm, rate_limiter, retry=settings.retry)
    return AnalysisOrchestrator(
        llm_scorer=LLMScorer(client),
        store=store,
        max_resume_bytes=settings.max_resume_bytes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    store = MatchScoreStore()
    app.state.settings = settings
    app.state.store = store
    app.state.orchestrator = build_orchestrator(settings, store)
    logger.info(
        f"{APP_TITLE} starting: LLM scoring {'enabled' if settings.llm.enabled else 'disabled'} "
        f"({settings.llm.model_name} at {settings.llm.base_url})"
    )

    await init_indexes()
    logger.info(f"{APP_TITLE} ready")

    yield

    logger.info(f"{APP_TITLE} stopped")


def install_middleware(app: FastAPI) -> None:
    """Middleware runs in reverse order of registration; CORS ends up outermost"""
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(PerformanceMiddleware, slow_request_threshold=SLOW_REQUEST_SECONDS)
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def health_payload(app: FastAPI) -> dict:
    # state is empty until the lifespan has run
    orchestrator = getattr(app.state, "orchestrator", None)
    scorer = orchestrator.llm_scorer if orchestrator else None
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "llm_enabled": bool(orchestrator and orchestrator.llm_enabled()),
        "rate_limits": scorer.client.rate_limiter.snapshot() if scorer else {},
    }


app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
install_middleware(app)


@app.get("/")
@app.head("/")
async def root():
    """Service banner; also answers HEAD for load balancer probes"""
    return {"message": f"Welcome to the {APP_TITLE}", "version": APP_VERSION, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    return health_payload(app)


app.include_router(analysis.router, prefix="/api")
app.include_router(match_scores.router, prefix="/api")
