"""Per-file documents: markdown, highlighted source listings, binary notice."""

from __future__ import annotations
import html
from typing import Tuple

import markdown  # Python-Markdown
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .rewrite import is_markdown_filename, rewrite_diagrams, rewrite_links

BINARY_SNIFF_BYTES = 8000


def looks_binary(data: bytes) -> bool:
    """Same heuristic git uses: a NUL byte in the first 8000 bytes."""
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def count_lines(data: bytes) -> int:
    """Newline count, plus one for trailing data without a final newline."""
    n = data.count(b"\n")
    if data and not data.endswith(b"\n"):
        n += 1
    return n


def render_markdown_text(md_text: str) -> str:
    body = markdown.markdown(md_text, extensions=["fenced_code", "tables", "toc"])
    return rewrite_links(rewrite_diagrams(body))


def highlight_listing(text: str, filename: str) -> str:
    try:
        lexer = get_lexer_for_filename(filename, stripall=False)
    except ClassNotFound:
        lexer = TextLexer(stripall=False)
    lexer.stripnl = False
    formatter = HtmlFormatter(linenos="table", lineanchors="l", anchorlinenos=True)
    return highlight(text, lexer, formatter)


def render_blob(data: bytes, filename: str) -> Tuple[str, int]:
    """
    Return (HTML body, line count) for a file's content. The count is 0 when
    no numbered listing was produced (binary and markdown files).
    """
    if looks_binary(data):
        return '<p class="binary-file">Binary file.</p>\n', 0
    text = data.decode("utf-8", errors="replace")
    if is_markdown_filename(filename):
        return f'<section class="panel markdown-body">\n{render_markdown_text(text)}\n</section>\n', 0
    return f'<div id="blob">{highlight_listing(text, filename)}</div>\n', count_lines(data)


def file_heading(filename: str, size: int) -> str:
    return f'<p class="filename"> {html.escape(filename)} ({size}B)</p>'
