"""
routers/admin.py: Health check, Celery worker status, and task polling endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException
from sqlalchemy import select, text

from config import Config
from dependencies import CurrentUser, DB
from logging_config import get_logger
from models_async import Note
from services.registry import llm_service
from utils.cache import get_redis

logger = get_logger(__name__)

router = APIRouter(tags=["admin"])

API_VERSION = "1.0.0"


@router.get("/health")
async def health_check(db: DB):
    db_ok = False
    try:
        await db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as exc:
        logger.warning("health.database.down", error=str(exc))

    redis_ok = get_redis() is not None
    if not redis_ok:
        logger.warning("health.redis.down")

    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now().isoformat(),
        "version": API_VERSION,
        "database": "ok" if db_ok else "unavailable",
        "redis": "ok" if redis_ok else "unavailable",
        "ai_gateway": "configured" if llm_service.configured else "not configured",
        "celery_enabled": Config.CELERY_ENABLED,
    }


@router.get("/workers/status")
async def workers_status():
    """Report Celery worker availability so the UI can warn users."""
    if not Config.CELERY_ENABLED:
        return {"available": False, "workers": [], "reason": "Celery not configured"}

    from celery_app import celery_app
    try:
        i = celery_app.control.inspect(timeout=2.0)
        active = i.active() or {}
        worker_names = list(active.keys())
        return {
            "available": len(worker_names) > 0,
            "workers": worker_names,
            "worker_count": len(worker_names),
        }
    except Exception as exc:
        logger.warning("workers.inspect.failed", error=str(exc))
        return {"available": False, "workers": [], "reason": str(exc)}


@router.get("/tasks/{task_id}")
async def get_task_status(task_id: str, current_user: CurrentUser, db: DB):
    if not Config.CELERY_ENABLED:
        raise HTTPException(status_code=503, detail="Async tasks not available")

    from celery.result import AsyncResult
    from celery_app import celery_app
    result = AsyncResult(task_id, app=celery_app)
    state = result.state
    meta = result.info if isinstance(result.info, dict) else {}

    # Progress and results are only reported for the caller's own notes
    note_id = meta.get("note_id")
    if note_id is not None:
        owned = await db.scalar(
            select(Note.id).where(Note.id == note_id, Note.user_id == current_user.id)
        )
        if owned is None:
            raise HTTPException(status_code=404, detail="Task not found")

    progress_map = {"PENDING": 5, "EXTRACTING": 50, "SUCCESS": 100, "FAILURE": 0}

    resp = {
        "task_id": task_id,
        "status": state,
        "phase": meta.get("phase", state.lower()),
        "progress": progress_map.get(state, 50),
    }
    if state == "SUCCESS" and note_id is not None:
        resp["result"] = result.result
    elif state == "FAILURE":
        logger.warning("task.failed", task_id=task_id, error=str(result.info))
        resp["error"] = "Note processing failed"

    return resp
