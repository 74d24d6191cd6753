"""
Index page listing several repositories, one row each, with the README of
the current directory (if any) below the table.

    rendergit-index [-o index.html] [--readme README.md] repodir...

Rows link to ``<name>/file/<README>.html`` when the repository has a README
at HEAD and to ``<name>/log.html`` otherwise, so the index is meant to sit
one level above the per-repository sites.
"""

from __future__ import annotations
import argparse
import pathlib
import sys
from typing import List, Optional

from .blob import render_markdown_text
from .errors import RenderError
from .gitio import git_blob_exists, git_commit, git_head_commit, git_open, read_meta_file
from .output import write_atomic
from .pages import MERMAID_SCRIPT, esc, file_href, html_head, page_footer, time_short

INDEX_TITLE = "Repositories"

# first match wins
INDEX_README_FILES = ("README.md", "README.markdown", "README.mdown", "README.mkd", "README")

INDEX_TABLE_OPEN = (
    '<div class="file-search">\n'
    '<input type="search" id="repo-search" placeholder="Find repository..." aria-label="Search repositories" />\n'
    "</div>\n"
    '<table id="index"><thead>\n<tr><td><b>Name</b></td><td><b>Description</b></td>'
    "<td><b>Owner</b></td><td><b>Last commit</b></td></tr></thead><tbody>\n"
)
INDEX_TABLE_CLOSE = "</tbody>\n</table>\n"

INDEX_SCRIPT = """<script>
(function(){
  var input=document.getElementById('repo-search');
  var rows=document.querySelectorAll('#index tbody tr');
  if(!input)return;
  input.addEventListener('input',function(){
    var filter=input.value.toLowerCase();
    for(var i=0;i<rows.length;i++){
      var name=rows[i].cells[0].textContent.toLowerCase();
      rows[i].style.display=name.indexOf(filter)>-1?'':'none';
    }
  });
  document.addEventListener('keydown',function(e){
    if(e.key==='/'&&document.activeElement!==input){
      e.preventDefault();
      input.focus();
    }
  });
})();
</script>
"""


def index_header(extra_head: str = "") -> str:
    return html_head(esc(INDEX_TITLE), extra_head) + (
        '<header class="repo-header"><div class="container">\n'
        f'<div class="repo-title"><h1>{esc(INDEX_TITLE)}</h1><span class="desc">Git Repositories</span></div>\n'
        "</div></header>\n"
        '<main><div id="content" class="container">\n'
    )


def index_row(repo_dir: str) -> Optional[str]:
    """Table row for one repository, or None when it has no commits yet."""
    repo_dir = git_open(repo_dir)
    head = git_head_commit(repo_dir)
    if head is None:
        return None
    name = pathlib.Path(repo_dir).name
    stripped = name[:-4] if name.endswith(".git") else name

    readme = next((p for p in INDEX_README_FILES if git_blob_exists(repo_dir, f"{head}:{p}")), None)
    target = file_href(readme, f"{stripped}/") if readme else f"{stripped}/log.html"

    author = git_commit(repo_dir, head).author
    return (
        f'<tr><td><a href="{esc(target)}">{esc(stripped)}</a></td>'
        f"<td>{esc(read_meta_file(repo_dir, 'description'))}</td>"
        f"<td>{esc(read_meta_file(repo_dir, 'owner'))}</td>"
        f"<td>{time_short(author)}</td></tr>\n"
    )


def readme_section(path: pathlib.Path) -> str:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    if not text:
        return ""
    return (
        '<div class="readme-section">\n<div class="readme-content markdown-body">\n'
        f"{render_markdown_text(text)}\n</div>\n</div>\n"
    )


def index_page(rows: List[str], readme: str = "") -> str:
    extra = MERMAID_SCRIPT if readme else ""
    return (
        index_header(extra)
        + INDEX_TABLE_OPEN
        + "".join(rows)
        + INDEX_TABLE_CLOSE
        + readme
        + INDEX_SCRIPT
        + page_footer()
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-index",
        description="Write an HTML index of several git repositories",
    )
    ap.add_argument("repodirs", nargs="+", metavar="repodir", help="Repositories to list, in order")
    ap.add_argument("-o", "--out", default="-", help="Output file (default: stdout)")
    ap.add_argument("--readme", default="README.md",
                    help="Markdown file shown below the table when it exists (default: README.md)")
    return ap


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    status = 0
    rows: List[str] = []
    for repo_dir in args.repodirs:
        try:
            row = index_row(repo_dir)
        except RenderError as e:
            # keep going; the other repositories still get listed
            print(f"❌ {e}", file=sys.stderr)
            status = 1
            continue
        if row is not None:
            rows.append(row)

    page = index_page(rows, readme_section(pathlib.Path(args.readme)))
    if args.out == "-":
        sys.stdout.write(page)
    else:
        try:
            write_atomic(pathlib.Path(args.out), page.encode("utf-8"))
        except OSError as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1
    return status


if __name__ == "__main__":
    raise SystemExit(main())
