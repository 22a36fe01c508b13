import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tortoise.contrib.fastapi import RegisterTortoise

from app.core.config import settings
from app.api import health, presale_router
from app.api.error_handlers import register_error_handlers
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    async with RegisterTortoise(
        app,
        config=settings.tortoise_config,
        generate_schemas=settings.generate_schemas,
        add_exception_handlers=False,
    ):
        if settings.seed_default_config:
            await ConfigStore().ensure_default()
        await CapLedger().ensure()
        logger.info("Presale configuration and cap ledger ready")
        yield


app = FastAPI(
    title=settings.app_name,
    description="""
    Victory Token Presale API

    This API provides endpoints for:
    - Reading the current presale phase and statistics
    - Checking whether a wallet may invest in the current phase
    - Recording investments exactly once per transaction
    - Managing the whitelist and presale configuration (admin)

    ## Investment Flow

    1. Frontend calls `GET /api/v1/investment/validate/{wallet}` to show eligibility
    2. User sends USDC on-chain
    3. Frontend calls `POST /api/v1/investment/create` with the transaction hash
    4. Backend checks phase, bounds, tier and hard cap, then records the investment
    5. Re-submitting the same transaction returns the original record
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(health.router)
app.include_router(presale_router.router, prefix=settings.api_v1_prefix)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "api": f"{settings.api_v1_prefix}/presale",
    }
