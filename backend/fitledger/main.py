import logging
import sys
from contextlib import asynccontextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from fitledger.api.v1 import ledger, profile, workouts

# Ensure fitledger loggers (ledger writes, retries, rollbacks) print to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("fitledger").setLevel(logging.DEBUG)
from fitledger.config import settings
from fitledger.core.errors import (
    InvalidEnumError,
    MirrorEntryError,
    NotFoundError,
    OptimisticWriteFailed,
    StoreUnavailableError,
)
from fitledger.db.session import init_db
from prometheus_client import make_asgi_app

logger = logging.getLogger("fitledger")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app_env == "production":
        settings.validate_jwt_config()
    await init_db()
    yield


limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="FitLedger API",
    description="Nutrition & fitness daily ledger: food entries, workouts and their calorie mirrors, targets",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidEnumError)
async def invalid_enum_handler(request: Request, exc: InvalidEnumError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field, "allowed": exc.allowed})


@app.exception_handler(MirrorEntryError)
async def mirror_entry_handler(request: Request, exc: MirrorEntryError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(OptimisticWriteFailed)
async def optimistic_write_handler(request: Request, exc: OptimisticWriteFailed):
    logger.exception("Optimistic write failed for %s", exc.date, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "log": exc.log.model_dump(mode="json")},
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(ledger.router, prefix="/api/v1")
app.include_router(workouts.router, prefix="/api/v1")
app.include_router(profile.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
