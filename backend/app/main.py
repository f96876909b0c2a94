import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import engine
from app.middleware.exceptions import register_exception_handlers
from app.routers import auth, health, projects, roles, users
from app.utils.redis_pool import close_redis

logger = logging.getLogger("kanvaro")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Kanvaro API starting", extra={"environment": settings.environment})
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Kanvaro API stopped")


app = FastAPI(
    title="Kanvaro",
    description="Role-based permission engine for Kanvaro project management",
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
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
