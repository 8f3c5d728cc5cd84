"""Note upload, processing and CRUD tests.

Background processing runs inside the request under httpx's ASGITransport,
so a note is already processed when the upload call returns.
"""

import io

import pytest
from docx import Document

from services.llm import GatewayRateLimited
from services.storage import StorageError

pytestmark = pytest.mark.asyncio

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

LECTURE_TEXT = (
    "Integration by parts: the integral of u dv equals uv minus the integral of v du. "
    "Example: integrate x e^x with u = x and dv = e^x dx."
)


def _docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


async def _upload(client, headers, name="week1.docx", data=None, mime=DOCX_MIME):
    if data is None:
        data = _docx_bytes("Week 1: Integration", LECTURE_TEXT)
    return await client.post("/notes", headers=headers, files={"file": (name, data, mime)})


async def _set_status(note_id, status):
    from database import AsyncSessionLocal
    from models_async import Note

    async with AsyncSessionLocal() as db:
        note = await db.get(Note, note_id)
        note.status = status
        await db.commit()


# ── POST /notes ───────────────────────────────────────────────────────────────

async def test_upload_structures_note_with_gateway(client, auth_headers, fake_llm):
    from config import Config

    fake_llm.reply = "# Integration\n\n$$\\int u\\,dv = uv - \\int v\\,du$$"
    res = await _upload(client, auth_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["note"]["status"] == "processing"
    assert body["note"]["file_type_label"] == "DOC"
    assert body["task_id"] is None

    res = await client.get(f"/notes/{body['note']['id']}", headers=auth_headers)
    note = res.json()["note"]
    assert note["status"] == "ready"
    assert note["processed_content"] == fake_llm.reply
    assert "Integration by parts" in note["original_content"]

    call = fake_llm.calls[0]
    assert call["model"] == Config.AI_STRUCTURE_MODEL
    assert call["messages"][1]["content"].startswith("Process and structure this lecture note content:")


async def test_upload_without_gateway_keeps_extracted_text(client, auth_headers):
    res = await _upload(client, auth_headers)
    note_id = res.json()["note"]["id"]

    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "ready"
    assert "Integration by parts" in note["processed_content"]
    assert note["processed_content"] == note["original_content"]


async def test_structuring_failure_falls_back_to_extracted_text(client, auth_headers, fake_llm):
    fake_llm.error = GatewayRateLimited("slow down")
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "ready"
    assert "Integration by parts" in note["processed_content"]


async def test_short_extraction_gets_topic_guide(client, auth_headers, fake_llm):
    note_id = (await _upload(client, auth_headers, name="tiny.doc", data=b"x", mime="application/msword")).json()["note"]["id"]

    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "ready"
    assert note["processed_content"].startswith("# tiny.doc")
    assert "Available Topics" in note["processed_content"]
    # too little text to be worth a gateway call
    assert fake_llm.calls == []


async def test_generic_mime_type_resolved_from_extension(client, auth_headers):
    res = await _upload(
        client, auth_headers, name="slides.pdf",
        data=b"%PDF-1.4 (Limits and continuity) Tj (Squeeze theorem) Tj\n",
        mime="application/octet-stream",
    )
    assert res.status_code == 201
    assert res.json()["note"]["file_type"] == "application/pdf"


async def test_upload_rejects_unsupported_type(client, auth_headers):
    res = await _upload(client, auth_headers, name="notes.txt", data=b"hello", mime="text/plain")
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid file type. Please upload PDF, DOC, DOCX, PPT, or PPTX files."


async def test_upload_rejects_empty_file(client, auth_headers):
    res = await _upload(client, auth_headers, data=b"")
    assert res.status_code == 400


async def test_upload_rejects_oversized_file(client, auth_headers, monkeypatch):
    from config import Config

    monkeypatch.setattr(Config, "MAX_CONTENT_LENGTH", 10)
    res = await _upload(client, auth_headers)
    assert res.status_code == 413
    assert res.json()["detail"] == "File size exceeds 50MB limit."


async def test_storage_failure_marks_note_as_error(client, auth_headers, monkeypatch):
    from services.registry import note_processor

    class BrokenStorage:
        def load(self, path):
            raise StorageError("object missing")

    monkeypatch.setattr(note_processor, "_storage", BrokenStorage())
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "error"
    assert note["error_message"].startswith("Failed to download file")


# ── GET /notes ────────────────────────────────────────────────────────────────

async def test_list_notes_with_etag(client, auth_headers):
    await _upload(client, auth_headers, name="a.docx")
    await _upload(client, auth_headers, name="b.docx")

    res = await client.get("/notes", headers=auth_headers)
    assert res.status_code == 200
    data = res.json()
    assert [n["file_name"] for n in data["notes"]] == ["b.docx", "a.docx"]
    assert data["processing"] is False
    assert "processed_content" not in data["notes"][0]

    etag = res.headers["etag"]
    res = await client.get("/notes", headers={**auth_headers, "If-None-Match": etag})
    assert res.status_code == 304


async def test_notes_are_isolated_per_user(client, auth_headers, other_headers):
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    assert (await client.get("/notes", headers=other_headers)).json()["notes"] == []
    assert (await client.get(f"/notes/{note_id}", headers=other_headers)).status_code == 404
    assert (await client.delete(f"/notes/{note_id}", headers=other_headers)).status_code == 404
    assert (await client.get(f"/notes/{note_id}", headers=auth_headers)).status_code == 200


async def test_list_reports_pending_processing(client, auth_headers):
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]
    await _set_status(note_id, "processing")

    data = (await client.get("/notes", headers=auth_headers)).json()
    assert data["notes"][0]["status"] == "processing"
    assert data["processing"] is True


# ── GET /notes/{id} ───────────────────────────────────────────────────────────

async def test_get_note_rendered_html(client, auth_headers, fake_llm):
    fake_llm.reply = "**Given:** $f(x) = x^2$\n\n**Answer:** $f'(x) = 2x$"
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    res = await client.get(f"/notes/{note_id}?render=html", headers=auth_headers)
    html = res.json()["note"]["processed_html"]
    assert 'class="solution-step"' in html
    assert "\\(f(x) = x^2\\)" in html


async def test_download_returns_original_bytes(client, auth_headers):
    data = _docx_bytes("Download me")
    note_id = (await _upload(client, auth_headers, name="lecture 2.docx", data=data)).json()["note"]["id"]

    res = await client.get(f"/notes/{note_id}/download", headers=auth_headers)
    assert res.status_code == 200
    assert res.content == data
    assert res.headers["content-type"].startswith(DOCX_MIME)
    assert "lecture%202.docx" in res.headers["content-disposition"]


# ── POST /notes/{id}/process ──────────────────────────────────────────────────

async def test_reprocess_ready_note(client, auth_headers, fake_llm):
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    fake_llm.reply = "Reprocessed lecture notes on integration."
    res = await client.post(f"/notes/{note_id}/process", headers=auth_headers)
    assert res.status_code == 202

    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "ready"
    assert note["processed_content"] == fake_llm.reply


async def test_reprocess_conflicts_while_processing(client, auth_headers, fake_llm):
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]
    await _set_status(note_id, "processing")

    res = await client.post(f"/notes/{note_id}/process", headers=auth_headers)
    assert res.status_code == 409

    fake_llm.reply = "Forced reprocessing of the integration notes."
    res = await client.post(f"/notes/{note_id}/process?force=true", headers=auth_headers)
    assert res.status_code == 202
    note = (await client.get(f"/notes/{note_id}", headers=auth_headers)).json()["note"]
    assert note["status"] == "ready"
    assert note["processed_content"] == fake_llm.reply


# ── DELETE /notes/{id} ────────────────────────────────────────────────────────

async def test_delete_note(client, auth_headers):
    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]

    res = await client.delete(f"/notes/{note_id}", headers=auth_headers)
    assert res.status_code == 200
    assert (await client.get(f"/notes/{note_id}", headers=auth_headers)).status_code == 404
    assert (await client.get(f"/notes/{note_id}/download", headers=auth_headers)).status_code == 404


async def test_delete_note_removes_messages_and_stored_file(client, auth_headers):
    from sqlalchemy import func, select

    from database import AsyncSessionLocal
    from models_async import ChatMessage, Note
    from services.registry import storage

    note_id = (await _upload(client, auth_headers)).json()["note"]["id"]
    async with AsyncSessionLocal() as db:
        note = await db.get(Note, note_id)
        storage_path = note.storage_path
        db.add_all([
            ChatMessage(user_id=note.user_id, note_id=note_id, role="user", content="What is u?"),
            ChatMessage(user_id=note.user_id, note_id=note_id, role="assistant", content="u = x"),
        ])
        await db.commit()
    assert storage.load(storage_path)

    res = await client.delete(f"/notes/{note_id}", headers=auth_headers)
    assert res.status_code == 200

    async with AsyncSessionLocal() as db:
        count = await db.scalar(
            select(func.count()).select_from(ChatMessage).where(ChatMessage.note_id == note_id)
        )
    assert count == 0
    with pytest.raises(StorageError):
        storage.load(storage_path)
