"""
Single-pass rewrites over HTML produced by the markdown converter.

Both passes only look for fixed markers the converter emits and copy
everything else through unchanged, character for character. They are not
HTML parsers: input that does not have the expected shape is left alone.

- ``rewrite_diagrams`` turns ``<pre><code class="language-mermaid">...``
  blocks into ``<pre class="mermaid">...</pre>`` so mermaid.js renders them.
- ``rewrite_links`` points relative links to markdown files at their
  rendered ``.html`` page.
"""

from __future__ import annotations
import io
import re

MARKDOWN_EXTENSIONS = frozenset({"md", "markdown", "mdown", "mkd"})

DIAGRAM_MARKER = 'class="language-mermaid"'
PRE_OPEN = "<pre>"
CODE_OPEN = "<code "
BLOCK_CLOSE = "</code></pre>"
DIAGRAM_OPEN = '<pre class="mermaid">'
DIAGRAM_CLOSE = "</pre>"

LINK_MARKER = 'href="'
LINK_SUFFIX = ".html"
SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")

# diagram pass states
SCANNING = "scanning"
WRAPPER_OPEN = "matched-wrapper-open"
COPYING = "copying-verbatim"
CLOSE = "matched-close"


def is_markdown_filename(name: str) -> bool:
    _, dot, ext = name.rpartition(".")
    return bool(dot) and ext.lower() in MARKDOWN_EXTENSIONS


def rewrite_diagrams(html: str) -> str:
    out = io.StringIO()
    state = SCANNING
    emitted = 0  # input before this index is already written to out
    cursor = 0   # where the next marker search starts
    marker = pre_start = body_start = close = 0

    while True:
        if state == SCANNING:
            marker = html.find(DIAGRAM_MARKER, cursor)
            if marker < 0:
                break
            cursor = marker + len(DIAGRAM_MARKER)
            # the marker must sit in "<pre><code ...", all of it not yet emitted
            tag_start = html.rfind("<", emitted, marker)
            pre_start = tag_start - len(PRE_OPEN)
            if (
                tag_start >= 0
                and html.startswith(CODE_OPEN, tag_start)
                and pre_start >= emitted
                and html.startswith(PRE_OPEN, pre_start)
            ):
                state = WRAPPER_OPEN

        elif state == WRAPPER_OPEN:
            gt = html.find(">", cursor)
            if gt < 0:
                state = SCANNING
                continue
            body_start = gt + 1
            state = COPYING

        elif state == COPYING:
            close = html.find(BLOCK_CLOSE, body_start)
            if close < 0:
                state = SCANNING
                continue
            state = CLOSE

        elif state == CLOSE:
            out.write(html[emitted:pre_start])
            out.write(DIAGRAM_OPEN)
            out.write(html[body_start:close])
            out.write(DIAGRAM_CLOSE)
            emitted = cursor = close + len(BLOCK_CLOSE)
            state = SCANNING

    out.write(html[emitted:])
    return out.getvalue()


def rewrite_url(url: str) -> str:
    """
    Return ``url`` with ``.html`` appended to a trailing markdown extension.

    The fragment is split off at the first ``#`` before the extension is
    looked at, so ``readme.md#sec.v2`` becomes ``readme.md.html#sec.v2`` and
    ``a.md#x.md`` becomes ``a.md.html#x.md``. A plain last-dot rule would
    instead leave the first untouched and rewrite inside the fragment of the
    second.
    """
    if not url or url[0] in "/#" or SCHEME_RE.match(url):
        return url
    path, hash_, fragment = url.partition("#")
    _, dot, ext = path.rpartition(".")
    if not dot or ext.lower() not in MARKDOWN_EXTENSIONS:
        return url
    return path + LINK_SUFFIX + hash_ + fragment


def rewrite_links(html: str) -> str:
    out = io.StringIO()
    emitted = 0
    while True:
        marker = html.find(LINK_MARKER, emitted)
        if marker < 0:
            break
        url_start = marker + len(LINK_MARKER)
        url_end = html.find('"', url_start)
        if url_end < 0:
            break
        out.write(html[emitted:url_start])
        out.write(rewrite_url(html[url_start:url_end]))
        emitted = url_end
    out.write(html[emitted:])
    return out.getvalue()
