"""
services/math_renderer.py: Tutor/notes markup → HTML.

Math (``$$…$$``, ``$…$``, ``\\[…\\]``, ``\\(…\\)``) is lifted out before
Markdown runs, so TeX is never mangled, and comes back as escaped TeX inside
``math-block`` / ``math-inline`` elements for client-side typesetting.
Solution labels (**Given:**, **Formula:**, **Solution:**, **Step N:**,
**Answer:**) open ``solution-step`` sections. Source text is HTML-escaped
before Markdown, so no caller-supplied markup survives, and Markdown link and
image syntax is left as plain text.
"""

import html
import re
from typing import List, Tuple

import markdown
from markdown.extensions import Extension

# Inline patterns that would turn text into <a href> or <img src>
_LINK_PATTERNS = (
    "link", "image_link", "reference", "image_reference",
    "short_reference", "short_image_ref", "autolink", "automail",
)


class NoLinksExtension(Extension):
    """Render link and image syntax as plain text."""

    def extendMarkdown(self, md):
        for name in _LINK_PATTERNS:
            md.inlinePatterns.deregister(name, strict=False)


_MD_EXTENSIONS = ["tables", "nl2br", "sane_lists", NoLinksExtension()]

# Order matters: $$ before $, so display math is not read as two inline spans.
_MATH_PATTERNS = [
    (re.compile(r"\$\$([\s\S]*?)\$\$"), True),
    (re.compile(r"\$([^$\n]+?)\$"), False),
    (re.compile(r"\\\[([\s\S]*?)\\\]"), True),
    (re.compile(r"\\\(([\s\S]*?)\\\)"), False),
]

_STEP_LABEL_RE = re.compile(
    r"\*\*(Given|Formula|Solution|Step\s+(\d+)|Answer):\*\*", re.IGNORECASE
)
# Private-use characters: stripped from the input, untouched by html.escape and Markdown
_OPEN, _CLOSE = "\ue000", "\ue001"
_PLACEHOLDER = _OPEN + "{}" + _CLOSE
_PLACEHOLDER_RE = re.compile(_OPEN + r"(\d+)" + _CLOSE)
_WRAPPED_PLACEHOLDER_RE = re.compile(r"<p>\s*" + _OPEN + r"(\d+)" + _CLOSE + r"\s*</p>")


def _lift_math(text: str) -> Tuple[str, List[Tuple[str, bool]]]:
    segments: List[Tuple[str, bool]] = []

    for pattern, display in _MATH_PATTERNS:
        def _sub(match, display=display):
            segments.append((match.group(1).strip(), display))
            token = _PLACEHOLDER.format(len(segments) - 1)
            # display math gets its own paragraph so it is not nested in <p>
            return f"\n\n{token}\n\n" if display else token

        text = pattern.sub(_sub, text)
    return text, segments


def _math_html(tex: str, display: bool) -> str:
    escaped = html.escape(tex, quote=False)
    if display:
        return f'<div class="math-block">\\[{escaped}\\]</div>'
    return f'<span class="math-inline">\\({escaped}\\)</span>'


def _restore_math(rendered: str, segments: List[Tuple[str, bool]]) -> str:
    def _lookup(match):
        index = int(match.group(1))
        return segments[index] if index < len(segments) else ("", False)

    def _segment(match):
        return _math_html(*_lookup(match))

    def _unwrap(match):
        tex, display = _lookup(match)
        if display:
            return _math_html(tex, display)
        return f"<p>{_math_html(tex, display)}</p>"

    rendered = _WRAPPED_PLACEHOLDER_RE.sub(_unwrap, rendered)
    return _PLACEHOLDER_RE.sub(_segment, rendered)


def _markdown(text: str) -> str:
    if not text.strip():
        return ""
    return markdown.markdown(text.strip(), extensions=_MD_EXTENSIONS)


def _label(match: re.Match) -> str:
    if match.group(2):
        return f"Step {match.group(2)}"
    return match.group(1).capitalize()


def _render_sections(text: str) -> str:
    parts: List[str] = []
    matches = list(_STEP_LABEL_RE.finditer(text))
    if not matches:
        return _markdown(text)

    parts.append(_markdown(text[:matches[0].start()]))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = _markdown(text[match.end():end])
        parts.append(
            '<div class="solution-step">'
            f'<span class="solution-step-label">{_label(match)}</span>'
            f"{body}</div>"
        )
    return "".join(parts)


def render_math_markup(content: str) -> str:
    """Render tutor/notes markup to sanitized HTML."""
    content = (content or "").replace(_OPEN, "").replace(_CLOSE, "")
    if not content:
        return ""
    text, segments = _lift_math(content)
    text = html.escape(text, quote=False)
    return _restore_math(_render_sections(text), segments)
