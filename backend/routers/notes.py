"""
routers/notes.py: Upload, list, view, download, reprocess and delete lecture notes.
"""

import asyncio
import os
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Request, Response, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select

from config import Config
from dependencies import CurrentUser, DB
from logging_config import get_logger
from models_async import Note
from services.math_renderer import render_math_markup
from services.registry import storage
from services.storage import StorageError, make_storage_path
from tasks.note_tasks import dispatch_note_processing
from utils.cache import check_etag, get_redis, invalidate_notes_etag, make_etag, notes_etag_key

logger = get_logger(__name__)
router = APIRouter(tags=["notes"])
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)

_PENDING_STATUSES = ("uploading", "processing")
_GENERIC_TYPES = ("", "application/octet-stream", "binary/octet-stream")


def _resolve_type(file_name: str, content_type: str) -> tuple[str, str]:
    """Return (mime_type, extension) for an accepted upload or raise 400."""
    ext = os.path.splitext(file_name.lower())[1]
    content_type = (content_type or "").split(";")[0].strip().lower()

    if content_type in Config.ACCEPTED_TYPES:
        return content_type, Config.ACCEPTED_TYPES[content_type]
    if content_type in _GENERIC_TYPES and ext in Config.ALLOWED_EXTENSIONS:
        mime = next(m for m, e in Config.ACCEPTED_TYPES.items() if e == ext)
        return mime, ext
    raise HTTPException(
        status_code=400,
        detail="Invalid file type. Please upload PDF, DOC, DOCX, PPT, or PPTX files.",
    )


async def _get_own_note(db, note_id: str, user_id: int) -> Note:
    result = await db.execute(
        select(Note).where(Note.id == note_id, Note.user_id == user_id)
    )
    note = result.scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.get("/notes")
async def list_notes(request: Request, response: Response, current_user: CurrentUser, db: DB):
    r = get_redis()
    client_etag = request.headers.get("if-none-match")
    if r and client_etag and r.get(notes_etag_key(current_user.id)) == client_etag:
        return Response(status_code=304)

    result = await db.execute(
        select(Note)
        .where(Note.user_id == current_user.id)
        .order_by(Note.created_at.desc())
    )
    notes = [n.to_dict() for n in result.scalars().all()]
    data = {
        "notes": notes,
        # clients keep polling while anything is still being processed
        "processing": any(n["status"] in _PENDING_STATUSES for n in notes),
    }

    etag = make_etag(data)
    if check_etag(request, etag):
        return Response(status_code=304)

    if r:
        r.set(notes_etag_key(current_user.id), etag, ex=60)

    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "private, no-cache"
    return data


@router.post("/notes", status_code=201)
@limiter.limit("10/minute")
async def upload_note(
    request: Request,
    current_user: CurrentUser,
    db: DB,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
):
    file_name = os.path.basename(file.filename or "").strip() or "notes"
    mime_type, ext = _resolve_type(file_name, file.content_type)

    content = await file.read()
    if len(content) > Config.MAX_CONTENT_LENGTH:
        raise HTTPException(status_code=413, detail="File size exceeds 50MB limit.")
    if not content:
        raise HTTPException(status_code=400, detail="File is empty.")

    storage_path = make_storage_path(current_user.id, ext)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, storage.save, storage_path, content)
    except (StorageError, OSError) as exc:
        logger.error("note.upload.failed", error=str(exc))
        raise HTTPException(status_code=500, detail=f"Failed to store file: {file_name}")

    note = Note(
        user_id=current_user.id,
        file_name=file_name,
        file_type=mime_type,
        file_size=len(content),
        storage_path=storage_path,
        status="processing",
    )
    db.add(note)
    await db.commit()
    await db.refresh(note)
    invalidate_notes_etag(current_user.id)

    dispatch = dispatch_note_processing(note.id, current_user.id, background_tasks)
    logger.info("note.uploaded", note_id=note.id, size=len(content), queue=dispatch["queue"])
    return {
        "message": "Upload successful. Your notes are being processed.",
        "note": note.to_dict(),
        "task_id": dispatch["task_id"],
    }


@router.get("/notes/{note_id}")
async def get_note(note_id: str, current_user: CurrentUser, db: DB, render: str | None = None):
    note = await _get_own_note(db, note_id, current_user.id)
    data = note.to_dict(include_content=True)
    if render == "html":
        data["processed_html"] = render_math_markup(note.processed_content or "")
    return {"note": data}


@router.get("/notes/{note_id}/download")
async def download_note(note_id: str, current_user: CurrentUser, db: DB):
    note = await _get_own_note(db, note_id, current_user.id)
    loop = asyncio.get_running_loop()
    try:
        data = await loop.run_in_executor(None, storage.load, note.storage_path)
    except StorageError as exc:
        logger.error("note.download.failed", note_id=note_id, error=str(exc))
        raise HTTPException(status_code=404, detail="File not found in storage")

    return Response(
        content=data,
        media_type=note.file_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(note.file_name)}",
        },
    )


@router.post("/notes/{note_id}/process", status_code=202)
@limiter.limit("10/minute")
async def reprocess_note(
    note_id: str,
    request: Request,
    current_user: CurrentUser,
    db: DB,
    background_tasks: BackgroundTasks,
    force: bool = False,
):
    note = await _get_own_note(db, note_id, current_user.id)
    if note.status == "processing" and not force:
        raise HTTPException(status_code=409, detail="Note is already being processed")

    note.status = "processing"
    note.error_message = None
    await db.commit()
    invalidate_notes_etag(current_user.id)

    dispatch = dispatch_note_processing(note.id, current_user.id, background_tasks)
    return {"note": note.to_dict(), "task_id": dispatch["task_id"]}


@router.delete("/notes/{note_id}")
async def delete_note(note_id: str, current_user: CurrentUser, db: DB):
    note = await _get_own_note(db, note_id, current_user.id)
    storage_path = note.storage_path

    await db.delete(note)
    await db.commit()
    invalidate_notes_etag(current_user.id)

    try:
        await asyncio.get_running_loop().run_in_executor(None, storage.delete, storage_path)
    except StorageError as exc:
        logger.warning("note.storage_delete.failed", note_id=note_id, error=str(exc))

    return {"message": "Note deleted"}
