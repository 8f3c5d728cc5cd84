"""Note processing via Celery, with an in-process FastAPI background fallback."""

from celery_app import celery_app
from celery_db import SyncSession
from config import Config
from database import AsyncSessionLocal
from logging_config import get_logger
from services.registry import note_processor
from utils.cache import invalidate_notes_etag

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=2, default_retry_delay=5)
def process_note_task(self, note_id, user_id=None):
    """Extract, structure and store one note.

    Phases reported via update_state: EXTRACTING → completed.
    """
    self.update_state(state="EXTRACTING", meta={"phase": "extracting", "note_id": note_id})
    try:
        result = note_processor.process_sync(note_id, SyncSession)
    except Exception as exc:
        logger.error("note.process.failed", note_id=note_id, error=str(exc))
        raise self.retry(exc=exc)
    finally:
        if user_id is not None:
            invalidate_notes_etag(user_id)

    logger.info("note.processed", note_id=note_id, status=result.status, length=result.content_length)
    return {"status": result.status, "note_id": note_id, "content_length": result.content_length}


async def process_note_bg(note_id: str, user_id: int):
    """FastAPI BackgroundTask: run the async pipeline when Celery is disabled."""
    result = await note_processor.process(note_id, AsyncSessionLocal)
    invalidate_notes_etag(user_id)
    logger.info("note.processed", note_id=note_id, status=result.status, length=result.content_length)
    return result


def dispatch_note_processing(note_id: str, user_id: int, background_tasks) -> dict:
    """Queue processing for *note_id*: Celery when enabled, else a background task."""
    if Config.CELERY_ENABLED:
        task = process_note_task.delay(note_id, user_id)
        logger.info("note.task.dispatched", task_id=task.id, note_id=note_id)
        return {"task_id": task.id, "queue": "celery"}

    background_tasks.add_task(process_note_bg, note_id, user_id)
    return {"task_id": None, "queue": "background"}
