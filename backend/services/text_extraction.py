"""
services/text_extraction.py: Best-effort text extraction from uploaded lecture notes.

Each format is tried with a real parser first (pdfplumber / PyMuPDF,
python-docx, python-pptx) and falls back to byte-level heuristics, so a
damaged or legacy file still yields whatever readable text it carries.
"""

import io
import logging
import re
import zipfile
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
import pdfplumber

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_PDF_ESCAPE_RE = re.compile(r"\\[nrtbf]")
_TAG_RE = re.compile(r"<[^>]*>")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\n]")
_DOCX_RUN_RE = re.compile(r"<w:t[^>]*>([^<]+)</w:t>")
_PPTX_RUN_RE = re.compile(r"<a:t[^>]*>([^<]+)</a:t>")

_OPEN_PAREN = 0x28
_CLOSE_PAREN = 0x29


class ExtractionError(Exception):
    pass


def _collapse(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def scan_pdf_strings(data: bytes) -> str:
    """
    Collect printable ASCII found inside parenthesised PDF string literals.

    Nested parentheses are tracked by depth; each top-level group contributes
    its text followed by a space. The final byte is never inspected.
    """
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    for byte in data[:-1]:
        if byte == _OPEN_PAREN:
            depth += 1
            if depth == 1:
                current = []
        elif byte == _CLOSE_PAREN:
            if depth == 0:
                continue
            depth -= 1
            if depth == 0 and current:
                parts.append("".join(current) + " ")
        elif depth > 0 and 32 <= byte <= 126:
            current.append(chr(byte))

    return _collapse(_PDF_ESCAPE_RE.sub(" ", "".join(parts)))


def xml_runs(xml_text: str, pattern: re.Pattern = _DOCX_RUN_RE) -> str:
    """Join the text of every matching ``<w:t>`` (or ``<a:t>``) run with spaces."""
    return " ".join(_TAG_RE.sub("", m.group(0)) for m in pattern.finditer(xml_text))


def printable_text(data: bytes) -> str:
    """Last-resort fallback: decode, drop tags and non-printable bytes, collapse whitespace."""
    text = data.decode("utf-8", errors="replace")
    text = _TAG_RE.sub(" ", text)
    text = _NON_PRINTABLE_RE.sub(" ", text)
    return _collapse(text)


class TextExtractor:
    def __init__(self):
        self.supported_extensions = ['.pdf', '.doc', '.docx', '.ppt', '.pptx']

    def detect_file_type(self, file_name: str) -> str:
        """Return 'pdf', 'docx', 'pptx', 'doc', 'ppt' or 'unknown' from the extension."""
        ext = Path(file_name).suffix.lower()
        if ext in self.supported_extensions:
            return ext.lstrip(".")
        return 'unknown'

    def extract(self, file_name: str, data: bytes) -> str:
        """Route to the extractor for *file_name*'s type and return plain text (may be empty)."""
        if not data:
            raise ExtractionError("File is empty")

        file_type = self.detect_file_type(file_name)
        if file_type == 'pdf':
            text = self._extract_pdf(data)
        elif file_type == 'docx':
            text = self._extract_docx(data)
        elif file_type == 'pptx':
            text = self._extract_pptx(data)
        else:
            text = printable_text(data)

        logger.info("Extracted %d chars from %s (%s)", len(text), file_name, file_type)
        return text

    # ---- PDF ----

    def _extract_pdf(self, data: bytes) -> str:
        text = self._extract_with_pdfplumber(data)
        if not text or len(text.strip()) < 50:
            text = self._extract_with_pymupdf(data) or text
        if not text or not text.strip():
            logger.warning("PDF parsers found no text, scanning string literals")
            text = scan_pdf_strings(data)
        return text.strip()

    def _extract_with_pdfplumber(self, data: bytes) -> Optional[str]:
        try:
            pages = []
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text() or ""
                    if page_text.strip():
                        pages.append(page_text.strip())
            return "\n\n".join(pages)
        except Exception as e:
            logger.warning(f"pdfplumber extraction failed: {str(e)}")
            return None

    def _extract_with_pymupdf(self, data: bytes) -> Optional[str]:
        try:
            pages = []
            with fitz.open(stream=data, filetype="pdf") as doc:
                for page in doc:
                    page_text = page.get_text()
                    if page_text.strip():
                        pages.append(page_text.strip())
            return "\n\n".join(pages)
        except Exception as e:
            logger.warning(f"PyMuPDF extraction failed: {str(e)}")
            return None

    # ---- Office Open XML ----

    def _extract_docx(self, data: bytes) -> str:
        try:
            from docx import Document

            doc = Document(io.BytesIO(data))
            lines = [p.text for p in doc.paragraphs if p.text.strip()]
            for table in doc.tables:
                for row in table.rows:
                    cells = [c.text.strip() for c in row.cells if c.text.strip()]
                    if cells:
                        lines.append(" | ".join(cells))
            return "\n".join(lines)
        except Exception as e:
            logger.warning(f"python-docx extraction failed: {e}")
        return self._extract_ooxml_runs(data, "word/", _DOCX_RUN_RE)

    def _extract_pptx(self, data: bytes) -> str:
        try:
            from pptx import Presentation

            prs = Presentation(io.BytesIO(data))
            slides = []
            for slide_num, slide in enumerate(prs.slides, start=1):
                texts = [
                    shape.text_frame.text.strip()
                    for shape in slide.shapes
                    if shape.has_text_frame and shape.text_frame.text.strip()
                ]
                if texts:
                    slides.append(f"Slide {slide_num}\n" + "\n".join(texts))
            return "\n\n".join(slides)
        except Exception as e:
            logger.warning(f"python-pptx extraction failed: {e}")
        return self._extract_ooxml_runs(data, "ppt/slides/", _PPTX_RUN_RE)

    def _extract_ooxml_runs(self, data: bytes, part_prefix: str, pattern: re.Pattern) -> str:
        """Pull text runs straight out of the XML parts, or out of the raw bytes if the zip is broken."""
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                xml = " ".join(
                    zf.read(name).decode("utf-8", errors="replace")
                    for name in sorted(zf.namelist())
                    if name.startswith(part_prefix) and name.endswith(".xml")
                )
        except zipfile.BadZipFile:
            xml = data.decode("utf-8", errors="replace")

        text = xml_runs(xml, pattern)
        return text if text else printable_text(data)
