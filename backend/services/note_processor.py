"""
services/note_processor.py: Turn an uploaded note file into study-ready text.

Pipeline: load bytes from storage → extract text → structure it with the AI
gateway → fall back to a topic guide when too little survives → mark the note
``ready`` (or ``error`` with the failure message).

process() is the async path used by FastAPI background tasks; process_sync()
is the equivalent for Celery workers and uses the sync session factory.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from config import Config
from services.llm import GatewayError
from services.storage import StorageError

logger = logging.getLogger(__name__)

STRUCTURE_SYSTEM_PROMPT = """You are a document processor for Engineering Mathematics lecture notes.
Your task is to extract and structure mathematical content.
Preserve all:
- Mathematical formulas and equations (use LaTeX notation: $..$ for inline, $$...$$ for block)
- Definitions and theorems
- Worked examples with step-by-step solutions
- Problem sets and exercises

If text is unclear, infer likely mathematical topics from context.
Output should be well-organized with clear headings."""

STRUCTURE_USER_PREFIX = "Process and structure this lecture note content:\n\n"

FALLBACK_TEMPLATE = """# {file_name}

This document has been uploaded successfully. The text extraction produced limited results.

## Available Topics
You can ask questions about Engineering Mathematics I topics including:

- **Limits and Continuity**: Finding limits, L'Hôpital's rule, continuity tests
- **Differentiation**: Power rule, chain rule, product/quotient rules, implicit differentiation
- **Integration**: Substitution, integration by parts, partial fractions
- **Differential Equations**: First-order ODEs, separable equations, linear equations
- **Linear Algebra**: Matrices, determinants, eigenvalues, systems of equations

## How to Use
Simply type your question or describe the problem you need help with. I'll provide step-by-step solutions based on Engineering Mathematics I curriculum."""


@dataclass
class ProcessResult:
    note_id: str
    status: str
    original_length: int = 0
    content_length: int = 0
    error: Optional[str] = None


def structure_messages(text: str) -> list:
    return [
        {"role": "system", "content": STRUCTURE_SYSTEM_PROMPT},
        {"role": "user", "content": STRUCTURE_USER_PREFIX + text[:Config.STRUCTURE_INPUT_CHARS]},
    ]


def finalize_content(file_name: str, content: Optional[str]) -> str:
    """Return *content*, or the topic-guide document when it is missing or too short."""
    if not content or len(content) < Config.PROCESSED_MIN_CHARS:
        return FALLBACK_TEMPLATE.format(file_name=file_name)
    return content


class NoteProcessor:
    """Extraction + structuring + status bookkeeping for one note at a time."""

    def __init__(self, storage, extractor, llm_service):
        self._storage = storage
        self._extractor = extractor
        self._llm = llm_service

    def _should_structure(self, text: str) -> bool:
        if not self._llm.configured:
            logger.info("Skipping AI structuring: gateway not configured")
            return False
        if len(text) <= Config.STRUCTURE_MIN_CHARS:
            logger.info("Skipping AI structuring: only %d chars extracted", len(text))
            return False
        return True

    def _load(self, storage_path: str) -> bytes:
        try:
            return self._storage.load(storage_path)
        except StorageError as exc:
            raise RuntimeError(f"Failed to download file: {exc}") from exc

    # ── Structuring ──────────────────────────────────────────────────────────

    async def structure(self, text: str) -> str:
        """AI-structured version of *text*; the input itself when structuring is skipped or fails."""
        if not self._should_structure(text):
            return text
        try:
            structured = await self._llm.complete(
                structure_messages(text), model=Config.AI_STRUCTURE_MODEL
            )
        except GatewayError as exc:
            logger.error("AI structuring failed: %s", exc)
            return text
        return structured or text

    def structure_sync(self, text: str) -> str:
        if not self._should_structure(text):
            return text
        try:
            structured = self._llm.complete_sync(
                structure_messages(text), model=Config.AI_STRUCTURE_MODEL
            )
        except GatewayError as exc:
            logger.error("AI structuring failed: %s", exc)
            return text
        return structured or text

    # ── Async pipeline (FastAPI) ─────────────────────────────────────────────

    async def process(self, note_id: str, session_factory) -> ProcessResult:
        """
        Process the note with *note_id* using sessions from *session_factory*
        (an async_sessionmaker). Never raises: failures are recorded on the note.
        """
        from models_async import Note

        loop = asyncio.get_running_loop()
        async with session_factory() as db:
            note = await db.get(Note, note_id)
            if note is None:
                logger.warning("Note %s vanished before processing", note_id)
                return ProcessResult(note_id=note_id, status="missing")
            file_name, storage_path = note.file_name, note.storage_path

        try:
            data = await loop.run_in_executor(None, self._load, storage_path)
            extracted = await loop.run_in_executor(
                None, self._extractor.extract, file_name, data
            )
            processed = finalize_content(file_name, await self.structure(extracted))
        except Exception as exc:
            message = str(exc) or "Processing failed"
            logger.error("Processing note %s failed: %s", note_id, message)
            async with session_factory() as db:
                note = await db.get(Note, note_id)
                if note is not None:
                    note.status = "error"
                    note.error_message = message
                    note.updated_at = datetime.utcnow()
                    await db.commit()
            return ProcessResult(note_id=note_id, status="error", error=message)

        async with session_factory() as db:
            note = await db.get(Note, note_id)
            if note is None:
                return ProcessResult(note_id=note_id, status="missing")
            note.status = "ready"
            note.error_message = None
            note.original_content = extracted
            note.processed_content = processed
            note.updated_at = datetime.utcnow()
            await db.commit()

        logger.info(
            "Note %s processed: extracted=%d processed=%d",
            note_id, len(extracted), len(processed),
        )
        return ProcessResult(
            note_id=note_id, status="ready",
            original_length=len(extracted), content_length=len(processed),
        )

    # ── Sync pipeline (Celery) ───────────────────────────────────────────────

    def process_sync(self, note_id: str, session_factory) -> ProcessResult:
        """
        Same as process() for a sync sessionmaker. Records the failure on the
        note and then re-raises so the task can retry.
        """
        from models_async import Note

        with session_factory() as db:
            note = db.get(Note, note_id)
            if note is None:
                logger.warning("Note %s vanished before processing", note_id)
                return ProcessResult(note_id=note_id, status="missing")

            try:
                data = self._load(note.storage_path)
                extracted = self._extractor.extract(note.file_name, data)
                processed = finalize_content(note.file_name, self.structure_sync(extracted))
            except Exception as exc:
                note.status = "error"
                note.error_message = str(exc) or "Processing failed"
                note.updated_at = datetime.utcnow()
                db.commit()
                raise

            note.status = "ready"
            note.error_message = None
            note.original_content = extracted
            note.processed_content = processed
            note.updated_at = datetime.utcnow()
            db.commit()

        logger.info(
            "Note %s processed: extracted=%d processed=%d",
            note_id, len(extracted), len(processed),
        )
        return ProcessResult(
            note_id=note_id, status="ready",
            original_length=len(extracted), content_length=len(processed),
        )
