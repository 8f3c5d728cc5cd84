"""Celery application for background note processing.

Start a worker from the backend/ directory:

    celery -A celery_app worker --loglevel=info
"""

from celery import Celery

from config import Config

celery_app = Celery(
    "onenote",
    broker=Config.CELERY_BROKER_URL,
    backend=Config.CELERY_RESULT_BACKEND,
    include=["tasks.note_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
)
