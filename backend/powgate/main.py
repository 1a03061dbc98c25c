from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from powgate.config import settings
from powgate.error_handlers import register_error_handlers
from powgate.logging_config import setup_logging
from powgate.middleware.logging import LoggingMiddleware
from powgate.middleware.rate_limit import limiter
from powgate.routers import challenges, verifications
from powgate.scheduler import shutdown_scheduler, start_scheduler
from powgate.services.pow_service import build_pow_service

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the signing key and service; refuse to start without a secret."""
    setup_logging()
    pow_service = build_pow_service(settings)
    app.state.pow_service = pow_service
    logger.info(
        "pow_service_ready",
        algorithm=pow_service.policy.algorithm,
        per_app_keys=pow_service.key_ring.per_app_keys,
        replay_protection=pow_service.replay_guard is not None,
    )
    if pow_service.replay_guard is not None:
        start_scheduler(pow_service)
    yield
    shutdown_scheduler()


app = FastAPI(
    title="powgate",
    description="Proof-of-work challenge issuance and verification",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_error_handlers(app)

app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# Routers
app.include_router(challenges.router, prefix="/api/v1", tags=["challenges"])
app.include_router(verifications.router, prefix="/api/v1", tags=["verifications"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
