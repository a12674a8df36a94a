"""
Stall Service — FastAPI entrypoint
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from stall.core.config import Settings, get_settings
from stall.core.redis_client import close_redis
from stall.core.slot_allocator import SlotAllocator
from stall.db.database import AsyncSessionLocal, engine, Base
from stall.db.product_ops import seed_menu
from stall.middleware.auth import JWTAuthMiddleware
from stall.middleware.idempotency import IdempotencyMiddleware
from stall.payment_gateway import HttpPaymentGateway
from stall.api import admin, catalog, feedback, health, orders, payments, products

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


def build_allocator(cfg: Settings, now: datetime | None = None) -> SlotAllocator:
    """Provision today's pickup slots starting from ``now``."""
    return SlotAllocator.from_schedule(
        start=now or datetime.now(),
        count=cfg.SLOT_COUNT,
        interval_minutes=cfg.SLOT_INTERVAL_MINUTES,
        capacity=cfg.SLOT_CAPACITY,
        lead_minutes=cfg.SLOT_LEAD_MINUTES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if settings.SEED_MENU:
        async with AsyncSessionLocal() as session:
            await seed_menu(session)
    app.state.allocator = build_allocator(settings)
    app.state.payment_gateway = HttpPaymentGateway.from_settings(settings)
    logger.info(
        "Provisioned %d pickup slots of capacity %d",
        settings.SLOT_COUNT, settings.SLOT_CAPACITY,
    )
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Campus Stall Ordering Service",
    description="Pickup-slot ordering with a validated order status lifecycle.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Starlette runs the last-added middleware first: auth, then idempotency
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(JWTAuthMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(orders.router)
app.include_router(admin.router)
app.include_router(catalog.router)
app.include_router(payments.router)
app.include_router(products.router)
app.include_router(feedback.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
