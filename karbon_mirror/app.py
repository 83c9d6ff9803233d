"""FastAPI application for the Karbon mirror."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .startup import validate_startup


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_startup()
    # Local/dev databases are created on boot; managed databases set AUTO_CREATE_TABLES=false
    if settings.auto_create_tables:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import health, subscriptions, sync, webhooks  # noqa: E402

app.include_router(sync.router)
app.include_router(webhooks.router)
app.include_router(subscriptions.router)
app.include_router(health.router)
