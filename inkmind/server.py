# server.py
import logging

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from admin import router as admin_router
from auth import router as auth_router
from collections_api import router as collections_router
from db import Base, engine, get_db
from designs import router as designs_router
from errors import InkMindError
import models  # noqa: F401  (registers tables on Base.metadata)
from settings import settings
from share import router as share_router

# --- Logging Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

# --- App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="InkMind API: tattoo design generation, library, lineage and sharing.",
    version="1.0.0",
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Domain errors -> HTTP ---
@app.exception_handler(InkMindError)
async def inkmind_error_handler(request: Request, exc: InkMindError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# --- Database Startup Event ---
@app.on_event("startup")
async def on_startup():
    """Create database tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables verified/created.")


# --- Routers ---
api_router = APIRouter(prefix=settings.API_PREFIX)
api_router.include_router(auth_router)
api_router.include_router(designs_router)
api_router.include_router(collections_router)
api_router.include_router(share_router)
api_router.include_router(admin_router)


@api_router.get("/health", tags=["Health"])
async def health(db: AsyncSession = Depends(get_db)):
    """Liveness probe that also checks the database connection."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        log.error(f"Health check: database unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "degraded", "database": "unreachable"})
    return {"status": "ok", "database": "ok"}


app.include_router(api_router)
