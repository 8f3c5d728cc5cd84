"""1Note FastAPI application: lecture note ingestion, math tutor chat and study tools."""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import DatabaseError as SADatabaseError

from config import Config
from database import init_db
from logging_config import configure_logging, get_logger
from routers.admin import API_VERSION, router as admin_router
from routers.auth import router as auth_router
from routers.chat import router as chat_router
from routers.notes import router as notes_router
from routers.tools import router as tools_router

configure_logging()
logger = get_logger(__name__)

os.makedirs(Config.UPLOAD_FOLDER, exist_ok=True)

# ── Rate limiter (slowapi) ─────────────────────────────────────────────────────
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)


# ── Lifespan ───────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    Config.validate()
    await init_db()
    logger.info("database.initialized")
    yield


# ── FastAPI app ────────────────────────────────────────────────────────────────
app = FastAPI(title="1Note API", version=API_VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Global exception handlers ──────────────────────────────────────────────────
@app.exception_handler(SADatabaseError)
async def sqlalchemy_db_error_handler(request: Request, exc: SADatabaseError):
    """Return a clean 503 instead of a stack trace when the database fails."""
    logger.critical("sqlalchemy.DatabaseError", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={
            "error": "System maintenance in progress. Please try again shortly.",
            "code": "DB_MAINTENANCE",
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        return await http_exception_handler(request, exc)
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected server error occurred. Please try again."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(notes_router)
app.include_router(chat_router)
app.include_router(tools_router)
app.include_router(admin_router)


# ── Request logging middleware ─────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "request.received",
        ip=request.client.host if request.client else "unknown",
        method=request.method,
        path=request.url.path,
    )
    return await call_next(request)


# ── Entrypoint ─────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    logger.info("server.starting", port=Config.PORT)
    uvicorn.run(
        "main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=Config.DEBUG,
    )
