"""
HTML and Atom fragments for every generated document.

All functions return strings. ``relpath`` is the prefix leading from the
document being written back to the output root ("" for top-level pages,
"../" for commit pages, one "../" per directory level for file pages).
"""

from __future__ import annotations
import datetime as dt
import html
from typing import Iterable, List
from urllib.parse import quote

from pygments.formatters import HtmlFormatter

from .diff import ADDITION, DELETION, CommitDiff
from .diffstat import TOO_LARGE_NOTICE, diff_too_large, diffstat_bar
from .gitio import Commit, Reference, RepoInfo, Signature

FEED_MAX_ENTRIES = 100

STATUS_LETTERS = {
    "added": "A",
    "copied": "C",
    "deleted": "D",
    "modified": "M",
    "renamed": "R",
    "typechanged": "T",
}

MERMAID_SCRIPT = (
    '<script type="module">import mermaid from '
    '"https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.esm.min.mjs";'
    "mermaid.initialize({ startOnLoad: true });</script>\n"
)


def esc(s: str) -> str:
    return html.escape(s, quote=True)


def file_href(path: str, relpath: str = "") -> str:
    """Link target of the file page for repository path ``path``."""
    return f"{relpath}file/{quote(path)}.html"


# ---- time formatting ---------------------------------------------------------

def _utc(sig: Signature) -> dt.datetime:
    return dt.datetime.fromtimestamp(sig.time, tz=dt.timezone.utc)


def time_z(sig: Signature) -> str:
    """2024-01-31T12:00:00Z"""
    return _utc(sig).strftime("%Y-%m-%dT%H:%M:%SZ")


def time_short(sig: Signature) -> str:
    """2024-01-31 12:00 (UTC)"""
    return _utc(sig).strftime("%Y-%m-%d %H:%M")


def time_long(sig: Signature) -> str:
    """Wed, 31 Jan 2024 13:00:00 +0100, in the signature's own offset."""
    local = _utc(sig) + dt.timedelta(minutes=sig.offset)
    sign = "-" if sig.offset < 0 else "+"
    off = abs(sig.offset)
    return (
        f"{local.strftime('%a')}, {local.day:2d} {local.strftime('%b %Y %H:%M:%S')} "
        f"{sign}{off // 60:02d}{off % 60:02d}"
    )


# ---- page chrome -------------------------------------------------------------

PAGE_CSS = """
  :root {
    --bg:#fff; --muted:#666; --line:#eee;
    --brand:#0366d6; --pill:#f2f4f7; --plus:#0a7b34; --minus:#a01515;
  }
  * { box-sizing: border-box; }
  body { margin:0; font-family: -apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial; line-height:1.45; }
  code, pre { font-family: ui-monospace,SFMono-Regular,Menlo,Monaco,Consolas,'Liberation Mono','Courier New', monospace; }
  a { color: var(--brand); text-decoration: none; }
  a:hover { text-decoration: underline; }
  .container { max-width: 1100px; margin: 0 auto; padding: 0 1rem; }
  .repo-header { border-bottom: 1px solid var(--line); background:#fafbfc; padding: .75rem 0; }
  .repo-header h1 { display:inline; font-size: 1.25rem; margin: 0 .5rem 0 0; }
  .repo-header .desc { color: var(--muted); }
  .clone-url { width: 100%; max-width: 480px; padding:.35rem .5rem; border:1px solid #d1d9e0; border-radius:6px; }
  .nav__list { list-style:none; display:flex; gap: 1rem; padding:0; margin:.5rem 0 0; }
  main .container { padding-top: 1rem; }
  table { border-collapse: collapse; }
  td { padding: .1rem .6rem .1rem 0; vertical-align: top; }
  td.num { text-align: right; }
  #log tr:hover td, #files tr:hover td { background: #f6f8fa; }
  .add-stat, .i, td.A { color: var(--plus); }
  .del-stat, .d, td.D { color: var(--minus); }
  pre { background:#f6f8fa; padding:.75rem; overflow:auto; border-radius:6px; }
  pre a.h { color: #6f42c1; }
  .tree-indent { display:inline-block; width: 1.25rem; }
  .markdown-body { padding: .5rem 0; }
  .markdown-body pre.mermaid { background: transparent; }
  .binary-file { color: var(--muted); font-style: italic; }
  .file-search input { width: 100%; max-width: 360px; padding:.35rem .5rem; margin-bottom:.75rem; border:1px solid #d1d9e0; border-radius:6px; }
  .dir-row { cursor: pointer; }
  .readme-section { border-top: 1px solid var(--line); margin-top: 1.5rem; padding-top: 1rem; }
"""


def html_head(full_title: str, extra_head: str = "") -> str:
    """Everything up to and including ``<body>``; ``full_title`` is already escaped."""
    pygments_css = HtmlFormatter(nowrap=False).get_style_defs(".highlight")
    return f"""<!DOCTYPE html>
<html>
<head>
<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>{full_title}</title>
<style>
{PAGE_CSS}
  /* Pygments */
  {pygments_css}
</style>
{extra_head}</head>
<body>
"""


def page_header(title: str, relpath: str, info: RepoInfo, extra_head: str = "") -> str:
    full_title = esc(title)
    if title and info.stripped_name:
        full_title += " - "
    full_title += esc(info.stripped_name)
    if info.description:
        full_title += " - " + esc(info.description)

    nav = [
        f'<li class="nav__item"><a class="nav__link" href="{relpath}log.html">Log</a></li>',
        f'<li class="nav__item"><a class="nav__link" href="{relpath}files.html">Files</a></li>',
        f'<li class="nav__item"><a class="nav__link" href="{relpath}refs.html">Refs</a></li>',
    ]
    for label, path in (("Submodules", info.submodules), ("README", info.readme), ("LICENSE", info.license)):
        if path:
            nav.append(
                f'<li class="nav__item"><a class="nav__link" href="{file_href(path, relpath)}">{label}</a></li>'
            )

    clone = ""
    if info.clone_url:
        clone = (
            f'<div class="url"><input id="clone-url" class="clone-url" type="text" readonly '
            f'value="git clone {esc(info.clone_url)}" /></div>\n'
        )
    desc = f'<span class="desc">{esc(info.description)}</span>' if info.description else ""
    feeds = (
        f'<link rel="alternate" type="application/atom+xml" title="{esc(info.name)} Atom Feed" href="{relpath}atom.xml" />\n'
        f'<link rel="alternate" type="application/atom+xml" title="{esc(info.name)} Atom Feed (tags)" '
        f'href="{relpath}tags.xml" />\n'
    )

    return html_head(full_title, feeds + extra_head) + f"""<header class="repo-header"><div class="container">
<div class="repo-title"><h1>{esc(info.stripped_name)}</h1>{desc}</div>
{clone}<nav class="nav"><ul class="nav__list">
{chr(10).join(nav)}
</ul></nav>
</div></header>
<main><div id="content" class="container">
"""


def page_footer() -> str:
    return "</div></main>\n</body>\n</html>\n"


# ---- log ---------------------------------------------------------------------

LOG_TABLE_OPEN = (
    '<table id="log"><thead>\n<tr><td><b>Date</b></td>'
    "<td><b>Commit message</b></td>"
    "<td><b>Author</b></td><td class=\"num\" align=\"right\"><b>Files</b></td>"
    "<td class=\"num\" align=\"right\"><b>+</b></td>"
    "<td class=\"num\" align=\"right\"><b>-</b></td></tr>\n</thead><tbody>\n"
)
LOG_TABLE_CLOSE = "</tbody></table>"
LOG_MORE_ROW = '<tr><td></td><td colspan="5">More commits remaining [...]</td></tr>\n'


def log_row(d: CommitDiff, relpath: str = "") -> str:
    c = d.commit
    summary = ""
    if c.summary:
        summary = f'<a href="{relpath}commit/{c.oid}.html">{esc(c.summary)}</a>'
    return (
        f"<tr><td>{time_short(c.author)}</td>"
        f"<td>{summary}</td>"
        f"<td>{esc(c.author.name)}</td>"
        f'<td class="num" align="right">{d.filecount}</td>'
        f'<td class="num" align="right"><span class="add-stat">+{d.addcount}</span></td>'
        f'<td class="num" align="right"><span class="del-stat">-{d.delcount}</span></td></tr>\n'
    )


# ---- commit detail -----------------------------------------------------------

def commit_header(c: Commit, relpath: str) -> str:
    out: List[str] = [f'<b>commit</b> <a href="{relpath}commit/{c.oid}.html">{c.oid}</a>\n']
    if c.parent_oid:
        out.append(f'<b>parent</b> <a href="{relpath}commit/{c.parent_oid}.html">{c.parent_oid}</a>\n')
    a = c.author
    out.append(
        f'<b>Author:</b> {esc(a.name)} &lt;<a href="mailto:{esc(a.email)}">{esc(a.email)}</a>&gt;\n'
        f"<b>Date:</b>   {time_long(a)}\n"
    )
    if c.message:
        out.append(f"\n{esc(c.message)}\n")
    return "".join(out)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def diffstat_table(d: CommitDiff) -> str:
    out: List[str] = ["<b>Diffstat:</b>\n<table>"]
    for i, delta in enumerate(d.deltas):
        letter = STATUS_LETTERS.get(delta.status, " ")
        cell = f'<tr><td class="{letter}">{letter}' if letter != " " else "<tr><td> "
        name = esc(delta.old_path)
        if delta.old_path != delta.new_path:
            name += " -&gt; " + esc(delta.new_path)
        plus, minus = diffstat_bar(delta.addcount, delta.delcount)
        out.append(
            f'{cell}</td><td><a href="#h{i}">{name}</a></td><td> | </td>'
            f'<td class="num">{delta.addcount + delta.delcount}</td>'
            f'<td><span class="i">{plus}</span><span class="d">{minus}</span></td></tr>\n'
        )
    out.append(
        f"</table></pre><pre>{_plural(d.filecount, 'file')} changed, "
        f"{_plural(d.addcount, 'insertion')}(+), {_plural(d.delcount, 'deletion')}(-)\n"
    )
    return "".join(out)


def diff_body(d: CommitDiff, relpath: str) -> str:
    out: List[str] = []
    for i, delta in enumerate(d.deltas):
        old, new = esc(delta.old_path), esc(delta.new_path)
        out.append(
            f'<b>diff --git a/<a id="h{i}" href="{file_href(delta.old_path, relpath)}">{old}</a> '
            f'b/<a href="{file_href(delta.new_path, relpath)}">{new}</a></b>\n'
        )
        if delta.binary:
            out.append("Binary files differ.\n")
            continue
        for j, hunk in enumerate(delta.hunks):
            out.append(f'<a href="#h{i}-{j}" id="h{i}-{j}" class="h">{esc(hunk.header)}</a>')
            for k, line in enumerate(hunk.lines):
                anchor = f"h{i}-{j}-{k}"
                if line.kind == ADDITION:
                    out.append(f'<a href="#{anchor}" id="{anchor}" class="i">+{esc(line.content)}\n</a>')
                elif line.kind == DELETION:
                    out.append(f'<a href="#{anchor}" id="{anchor}" class="d">-{esc(line.content)}\n</a>')
                else:
                    out.append(f" {esc(line.content)}\n")
    return "".join(out)


def commit_page(d: CommitDiff, info: RepoInfo) -> str:
    relpath = "../"
    parts = [page_header(d.commit.summary, relpath, info), "<pre>", commit_header(d.commit, relpath)]
    if d.deltas:
        if diff_too_large(d):
            parts.append(TOO_LARGE_NOTICE)
        else:
            parts.append(diffstat_table(d))
            parts.append("<hr/>")
            parts.append(diff_body(d, relpath))
    parts.append("</pre>\n")
    parts.append(page_footer())
    return "".join(parts)


# ---- refs --------------------------------------------------------------------

def refs_body(refs: Iterable[Reference]) -> str:
    sections = {False: [], True: []}
    for r in refs:
        sections[r.is_tag].append(
            f"<tr><td>{esc(r.name)}</td><td>{time_short(r.commit.author)}</td>"
            f"<td>{esc(r.commit.author.name)}</td></tr>\n"
        )
    out: List[str] = []
    for is_tag, title, table_id in ((False, "Branches", "branches"), (True, "Tags", "tags")):
        rows = sections[is_tag]
        if not rows:
            continue
        out.append(
            f'<h2>{title}</h2><table id="{table_id}"><thead>\n<tr><td><b>Name</b></td>'
            "<td><b>Last commit date</b></td><td><b>Author</b></td>\n</tr>\n</thead><tbody>\n"
        )
        out.extend(rows)
        out.append("</tbody></table><br/>\n")
    return "".join(out)


# ---- atom --------------------------------------------------------------------

def atom_entry(c: Commit, tag: str = "") -> str:
    title = esc(c.summary)
    if tag:
        title = f"[{esc(tag)}] {title}"
    content = [f"commit {c.oid}\n"]
    if c.parent_oid:
        content.append(f"parent {c.parent_oid}\n")
    content.append(
        f"Author: {esc(c.author.name)} &lt;{esc(c.author.email)}&gt;\n"
        f"Date:   {time_long(c.author)}\n"
    )
    if c.message:
        content.append(f"\n{esc(c.message)}")
    return (
        "<entry>\n"
        f"<id>{c.oid}</id>\n"
        f"<published>{time_z(c.author)}</published>\n"
        f"<updated>{time_z(c.committer)}</updated>\n"
        f'<title type="text">{title}</title>\n'
        f'<link rel="alternate" type="text/html" href="commit/{c.oid}.html" />\n'
        f"<author>\n<name>{esc(c.author.name)}</name>\n<email>{esc(c.author.email)}</email>\n</author>\n"
        f'<content type="text">{"".join(content)}\n</content>\n'
        "</entry>\n"
    )


def atom_feed(info: RepoInfo, entries: Iterable[str]) -> str:
    body = "".join(entries)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"<title>{esc(info.stripped_name)}, branch HEAD</title>\n"
        f"<subtitle>{esc(info.description)}</subtitle>\n"
        f"{body}"
        "</feed>\n"
    )
