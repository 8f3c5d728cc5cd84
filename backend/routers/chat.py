"""
routers/chat.py: Math tutor chat: per-note conversations and the stateless proxy.
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import delete, select

from config import Config
from dependencies import CurrentUser, DB
from logging_config import get_logger
from models_async import ChatMessage, Note
from schemas import MathSolverRequest, MessageUpdate, NoteMessageCreate
from services.llm import (
    GatewayCreditsExhausted, GatewayError, GatewayNotConfigured, GatewayRateLimited,
)
from services.math_renderer import render_math_markup
from services.registry import tutor

logger = get_logger(__name__)
router = APIRouter(tags=["chat"])
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)


def gateway_error_response(exc: GatewayError) -> JSONResponse:
    """Map a gateway failure onto the status and message the web client shows."""
    if isinstance(exc, GatewayRateLimited):
        return JSONResponse(
            status_code=429,
            content={"error": "Rate limit exceeded. Please try again in a moment."},
        )
    if isinstance(exc, GatewayCreditsExhausted):
        return JSONResponse(
            status_code=402,
            content={"error": "Usage limit reached. Please add credits."},
        )
    if isinstance(exc, GatewayNotConfigured):
        return JSONResponse(status_code=500, content={"error": "AI gateway is not configured"})
    return JSONResponse(status_code=502, content={"error": "AI Gateway error"})


def _message_payload(msg: ChatMessage) -> dict:
    d = msg.to_dict()
    if msg.role == "assistant":
        d["content_html"] = render_math_markup(msg.content)
    return d


async def _get_own_note(db, note_id: str, user_id: int) -> Note:
    result = await db.execute(
        select(Note).where(Note.id == note_id, Note.user_id == user_id)
    )
    note = result.scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


async def _get_own_message(db, message_id: int, user_id: int) -> ChatMessage:
    result = await db.execute(
        select(ChatMessage).where(ChatMessage.id == message_id, ChatMessage.user_id == user_id)
    )
    msg = result.scalar_one_or_none()
    if not msg:
        raise HTTPException(status_code=404, detail="Message not found")
    return msg


@router.post("/math-solver")
@limiter.limit("20/minute")
async def math_solver(data: MathSolverRequest, request: Request, current_user: CurrentUser):
    """Stateless tutor call: the client supplies the note content and the history."""
    history = [entry.model_dump() for entry in data.conversation_history]
    try:
        answer = await tutor.answer(data.message, data.note_content, history)
    except GatewayError as exc:
        logger.error("math_solver.failed", error=str(exc), status=exc.status_code)
        return gateway_error_response(exc)
    return {"response": answer}


@router.get("/notes/{note_id}/messages")
async def list_messages(note_id: str, current_user: CurrentUser, db: DB):
    await _get_own_note(db, note_id, current_user.id)
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.note_id == note_id, ChatMessage.user_id == current_user.id)
        .order_by(ChatMessage.created_at, ChatMessage.id)
    )
    return {"messages": [_message_payload(m) for m in result.scalars().all()]}


@router.post("/notes/{note_id}/messages")
@limiter.limit("20/minute")
async def send_message(
    note_id: str,
    data: NoteMessageCreate,
    request: Request,
    current_user: CurrentUser,
    db: DB,
):
    note = await _get_own_note(db, note_id, current_user.id)
    if note.status != "ready":
        raise HTTPException(status_code=409, detail="Note is not ready yet")

    history_result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.note_id == note_id, ChatMessage.user_id == current_user.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(Config.CHAT_HISTORY_LIMIT)
    )
    history = [
        {"role": m.role, "content": m.content}
        for m in reversed(history_result.scalars().all())
    ]

    user_msg = ChatMessage(
        user_id=current_user.id, note_id=note_id, role="user", content=data.message
    )
    db.add(user_msg)
    await db.commit()
    await db.refresh(user_msg)

    try:
        answer = await tutor.answer(data.message, note.processed_content, history)
    except GatewayError as exc:
        logger.error("chat.failed", note_id=note_id, error=str(exc), status=exc.status_code)
        return gateway_error_response(exc)

    assistant_msg = ChatMessage(
        user_id=current_user.id, note_id=note_id, role="assistant", content=answer
    )
    db.add(assistant_msg)
    await db.commit()
    await db.refresh(assistant_msg)

    return {
        "user_message": _message_payload(user_msg),
        "message": _message_payload(assistant_msg),
    }


@router.delete("/notes/{note_id}/messages")
async def clear_messages(note_id: str, current_user: CurrentUser, db: DB):
    await _get_own_note(db, note_id, current_user.id)
    result = await db.execute(
        delete(ChatMessage).where(
            ChatMessage.note_id == note_id, ChatMessage.user_id == current_user.id
        )
    )
    await db.commit()
    return {"message": "Conversation cleared", "deleted": result.rowcount}


@router.patch("/messages/{message_id}")
async def update_message(message_id: int, data: MessageUpdate, current_user: CurrentUser, db: DB):
    msg = await _get_own_message(db, message_id, current_user.id)
    msg.content = data.content
    await db.commit()
    return {"message": _message_payload(msg)}


@router.delete("/messages/{message_id}")
async def delete_message(message_id: int, current_user: CurrentUser, db: DB):
    msg = await _get_own_message(db, message_id, current_user.id)
    await db.delete(msg)
    await db.commit()
    return {"message": "Message deleted"}
