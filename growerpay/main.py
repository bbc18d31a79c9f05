import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from growerpay.config import settings
from growerpay.database import engine
from growerpay.middleware.exceptions import register_exception_handlers
from growerpay.routers import deductions, health, reconciliation
from growerpay.utils.locks import close_redis

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("growerpay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("GrowerPay starting (environment=%s)", settings.environment)
    yield
    await close_redis()
    await engine.dispose()
    logger.info("GrowerPay stopped")


app = FastAPI(
    title="GrowerPay",
    description="Grower advance deductions and payment distribution reconciliation",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(deductions.router, prefix="/api/deductions", tags=["deductions"])
app.include_router(reconciliation.router, prefix="/api/reconciliation", tags=["reconciliation"])
