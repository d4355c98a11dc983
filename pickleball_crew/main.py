import asyncio
from fastapi import FastAPI, Request, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from pickleball_crew.api.v1.routes import (
    auth as auth_router,
    health as health_router,
    profiles as profiles_router,
    rsvps as rsvps_router,
    sessions as sessions_router,
)
from pickleball_crew.cache.redis_client import cache
from pickleball_crew.db.session import engine, Base
from pickleball_crew.events.consumer import run_worker
from pickleball_crew.core.config import settings
from pickleball_crew.core.logging import logger
from pickleball_crew.core.rate_limit import limiter
from pickleball_crew.middleware.security_headers import SecurityHeadersMiddleware

app = FastAPI(title="Pickleball Crew")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware, hsts=settings.ENVIRONMENT == "production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router.router)
api_router.include_router(profiles_router.router)
api_router.include_router(sessions_router.router)
api_router.include_router(rsvps_router.router)
api_router.include_router(health_router.router)

app.include_router(api_router)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Database error, please try again"})


@app.on_event("startup")
async def on_startup():
    # create tables (simple approach; no migrations are shipped)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    # The notification worker normally runs as its own process
    # (python -m pickleball_crew.events.consumer); starting it here helps local runs.
    asyncio.create_task(run_worker())


@app.on_event("shutdown")
async def on_shutdown():
    await cache.close()
