"""Shared text processing utilities.

Tag stripping and truncation for feed content, plus the cleanup and the small
Markdown-to-HTML conversion applied to LLM rewrites before they are stored.
"""

import re
import html as htmllib
from typing import Optional, Tuple

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# Assistant preambles and closing offers that LLMs add around the article body.
_AI_NOISE_PATTERNS = [
    (re.compile(r"^Claro, aquí tienes[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^Aquí tienes[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^Te presento[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^Esta es una[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^Basado en[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^Según la información[^\n]*\n?", re.IGNORECASE), ""),
    (re.compile(r"^---.*$", re.MULTILINE), ""),
    (re.compile(r"\n\*\*[^\n]*\*\*\s*$"), ""),
    (re.compile(r"\n¿Quieres que[^\n]*\?", re.IGNORECASE), ""),
    (re.compile(r"\n¿Te gustaría[^\n]*\?", re.IGNORECASE), ""),
    (re.compile(r"\n¿Necesitas[^\n]*\?", re.IGNORECASE), ""),
    (re.compile(r"\nSi tienes[^\n]*\.", re.IGNORECASE), ""),
    (re.compile(r"\nPara cualquier[^\n]*\.", re.IGNORECASE), ""),
    (re.compile(r"\n\s*\n\s*\n"), "\n\n"),
    (re.compile(r"\n[ \t]+"), "\n"),
]

_TITLE_RE = re.compile(r"^\*\*(.+?)\*\*[ \t]*(?:\n|$)")
_LEDE_RE = re.compile(r"^\*([^*\n]+?)\*[ \t]*(?:\n|$)")


def strip_tags(text: Optional[str]) -> str:
    """Remove HTML tags, unescape entities and collapse whitespace.

    Examples:
        >>> strip_tags("<p>Hola <b>mundo</b></p>")
        'Hola mundo'
        >>> strip_tags("Fish &amp; chips")
        'Fish & chips'
    """
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = htmllib.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def truncate_text(text: Optional[str], limit: int = 200, suffix: str = "...") -> str:
    """Cut *text* to *limit* characters, appending *suffix* only when something was cut."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def first_words(text: Optional[str], count: int) -> str:
    return " ".join((text or "").split()[:count])


def clean_ai_generated_content(content: Optional[str]) -> str:
    """Strip assistant chatter around an LLM-written article.

    Removes introductory phrases ("Aquí tienes ..."), ``---`` separators,
    trailing offers ("¿Quieres que ...?") and collapses runs of blank lines.
    """
    if not content:
        return ""
    text = content.replace("\r\n", "\n")
    for pattern, replacement in _AI_NOISE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()


def _inline_markdown(text: str) -> str:
    text = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"\*([^*]+)\*", r"<em>\1</em>", text)
    return text


def markdown_to_html(markdown: Optional[str]) -> str:
    """Convert the small Markdown subset LLMs produce into editor-friendly HTML.

    Paragraphs are separated by blank lines; ``#``/``##``/``###`` headings,
    bold and italics are converted and single newlines become ``<br>``.
    Empty input yields an empty string, whitespace-only input an empty
    paragraph.
    """
    if not markdown:
        return ""
    cleaned = re.sub(r"\n{3,}", "\n\n", markdown.replace("\r\n", "\n")).strip()
    paragraphs = [p for p in re.split(r"\n\s*\n", cleaned) if p.strip()]
    if not paragraphs:
        return "<p><br></p>"

    parts = []
    for paragraph in paragraphs:
        block = re.sub(r"^### (.*)$", r"<h3>\1</h3>", paragraph, flags=re.MULTILINE)
        block = re.sub(r"^## (.*)$", r"<h2>\1</h2>", block, flags=re.MULTILINE)
        block = re.sub(r"^# (.*)$", r"<h1>\1</h1>", block, flags=re.MULTILINE)
        block = _inline_markdown(block).replace("\n", "<br>")
        if block.startswith("<h"):
            parts.append(block)
        else:
            parts.append(f"<p>{block}</p>")
    return "".join(parts)


def extract_title_and_summary(markdown: str, fallback_title: str) -> Tuple[str, str, str]:
    """Split a rewritten article into ``(title, summary, body)``.

    The title is a leading ``**bold**`` line longer than 5 characters (else
    *fallback_title*); the summary is a following ``*italic*`` line longer
    than 10 characters (else empty). Matched lines are removed from the body.
    """
    title = fallback_title
    summary = ""
    body = markdown.lstrip()

    match = _TITLE_RE.match(body)
    if match:
        candidate = match.group(1).strip()
        if len(candidate) > 5:
            title = candidate
        body = body[match.end():].lstrip()

    match = _LEDE_RE.match(body)
    if match:
        candidate = match.group(1).strip()
        if len(candidate) > 10:
            summary = candidate
        body = body[match.end():].lstrip()

    return title, summary, body


__all__ = [
    "strip_tags",
    "truncate_text",
    "first_words",
    "clean_ai_generated_content",
    "markdown_to_html",
    "extract_title_and_summary",
]
