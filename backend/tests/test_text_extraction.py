"""Text extraction tests: real parsers first, byte-level fallbacks second."""

import io
import zipfile

import fitz
import pytest
from docx import Document
from pptx import Presentation

from services.text_extraction import (
    ExtractionError, TextExtractor, printable_text, scan_pdf_strings, xml_runs,
)


@pytest.fixture
def extractor():
    return TextExtractor()


# ── scan_pdf_strings ──────────────────────────────────────────────────────────

def test_scan_pdf_strings_collects_literals():
    data = b"BT (Hello) Tj (World (nested)) Tj ET\n"
    assert scan_pdf_strings(data) == "Hello World nested"


def test_scan_pdf_strings_cleans_escapes():
    assert scan_pdf_strings(b"(line\\nbreak\\tend) ") == "line break end"


def test_scan_pdf_strings_ignores_unbalanced_close():
    assert scan_pdf_strings(b") ) (ok) ") == "ok"


def test_scan_pdf_strings_never_reads_last_byte():
    assert scan_pdf_strings(b"(abc)") == ""


def test_scan_pdf_strings_drops_binary():
    assert scan_pdf_strings(b"(\x00\x01dx\xff) ") == "dx"


# ── xml_runs / printable_text ─────────────────────────────────────────────────

def test_xml_runs():
    xml = (
        '<w:p><w:r><w:t>Hello</w:t></w:r>'
        '<w:r><w:t xml:space="preserve">world</w:t></w:r><w:t></w:t></w:p>'
    )
    assert xml_runs(xml) == "Hello world"


def test_printable_text():
    assert printable_text(b"<p>Hi\x00\x01   there</p>\n") == "Hi there"


# ── TextExtractor ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "name, expected",
    [("a.PDF", "pdf"), ("b.docx", "docx"), ("c.ppt", "ppt"), ("d.txt", "unknown"), ("noext", "unknown")],
)
def test_detect_file_type(extractor, name, expected):
    assert extractor.detect_file_type(name) == expected


def test_extract_empty_raises(extractor):
    with pytest.raises(ExtractionError):
        extractor.extract("a.pdf", b"")


def test_extract_pdf(extractor):
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Eigenvalues and eigenvectors of a 2x2 matrix")
    data = doc.tobytes()
    doc.close()

    assert "Eigenvalues and eigenvectors" in extractor.extract("lecture.pdf", data)


def test_extract_broken_pdf_falls_back_to_string_scan(extractor):
    data = b"%PDF-1.4 garbage (Taylor series) Tj (Maclaurin) Tj\n"
    assert extractor.extract("broken.pdf", data) == "Taylor series Maclaurin"


def test_extract_docx_paragraphs_and_tables(extractor):
    doc = Document()
    doc.add_paragraph("Separable equations")
    doc.add_paragraph("   ")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "dy/dx"
    table.rows[0].cells[1].text = "g(x)h(y)"
    buf = io.BytesIO()
    doc.save(buf)

    text = extractor.extract("ode.docx", buf.getvalue())
    assert text.splitlines() == ["Separable equations", "dy/dx | g(x)h(y)"]


def test_extract_damaged_docx_reads_xml_runs(extractor):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("word/document.xml", "<w:body><w:t>Partial</w:t><w:t>fractions</w:t></w:body>")
    assert extractor.extract("damaged.docx", buf.getvalue()) == "Partial fractions"


def test_extract_pptx_slides(extractor):
    prs = Presentation()
    for title, body in [("Limits", "Squeeze theorem"), ("Continuity", "Intermediate value theorem")]:
        slide = prs.slides.add_slide(prs.slide_layouts[1])
        slide.shapes.title.text = title
        slide.placeholders[1].text = body
    buf = io.BytesIO()
    prs.save(buf)

    text = extractor.extract("week2.pptx", buf.getvalue())
    assert text.startswith("Slide 1\nLimits\nSqueeze theorem")
    assert "Slide 2\nContinuity\nIntermediate value theorem" in text


def test_extract_legacy_doc_uses_printable_text(extractor):
    data = b"\xd0\xcf\x11\xe0 Laplace transform \x00\x00 of t^n"
    text = extractor.extract("old.doc", data)
    assert "Laplace transform" in text
    assert "of t^n" in text
