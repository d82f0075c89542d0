import logging
import math
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tripsearch.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "tripsearch.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from tripsearch.errors import RateLimitError, SearchValidationError
from tripsearch.routers import search, usage
from tripsearch.services.search_engine import shutdown_search_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"tripsearch starting in {settings.search_mode} mode")
    yield
    # Shutdown: provider HTTP clients, cache and limiter connections
    await shutdown_search_engine()
    logger.info("Search engine closed")


app = FastAPI(
    title="tripsearch",
    description="Travel search aggregation across flight and hotel providers",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(SearchValidationError)
async def handle_validation_error(request: Request, exc: SearchValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(RateLimitError)
async def handle_rate_limit(request: Request, exc: RateLimitError):
    retry_after = max(1, math.ceil(exc.retry_after))
    return JSONResponse(
        status_code=429,
        content={"detail": str(exc), "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


app.include_router(search.router, prefix="/api/search", tags=["search"])
app.include_router(usage.router, prefix="/api", tags=["usage"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "tripsearch"}
