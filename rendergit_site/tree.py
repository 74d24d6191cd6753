"""
File browser: rows of ``files.html`` plus one ``file/<path>.html`` per blob.

Directories come first at every level, each followed immediately by its own
contents, then the files of that level. Both groups keep the tree's native
order. Rows carry data-path/data-parent/data-depth so the page can collapse
directories client-side.
"""

from __future__ import annotations
import html
import pathlib
import stat
from typing import Callable, List, Protocol

from .blob import file_heading, render_blob
from .gitio import RepoInfo, TreeEntry, git_ls_tree, git_read_blob
from .output import relpath_for, write_document
from .pages import MERMAID_SCRIPT, file_href, page_footer, page_header
from .rewrite import is_markdown_filename

FILES_TABLE_OPEN = (
    '<table id="files"><thead>\n<tr><td><b>Name</b></td><td><b>Mode</b></td>'
    '<td class="num" align="right"><b>Size</b></td></tr>\n</thead><tbody>\n'
)
FILES_TABLE_CLOSE = "</tbody></table>"

INDENT = '<span class="tree-indent"></span>'

FILE_SEARCH = (
    '<div class="file-search">\n'
    '<input type="search" id="file-search" placeholder="Find file..." aria-label="Search files" />\n'
    "</div>\n"
)

# Directories start collapsed; clicking a dir-row shows or hides the rows
# whose data-parent is its data-path. Typing in the search box shows matching
# rows plus their ancestor directories. "/" focuses the search box.
FILES_SCRIPT = """<script>
(function(){
  var collapsed={};
  function setChildren(path,show){
    var rows=document.querySelectorAll('#files tr[data-parent="'+path+'"]');
    for(var i=0;i<rows.length;i++){
      rows[i].style.display=show?'':'none';
      if(rows[i].classList.contains('dir-row')){
        var sub=rows[i].getAttribute('data-path');
        setChildren(sub,show&&!collapsed[sub]);
      }
    }
  }
  var dirs=document.querySelectorAll('#files .dir-row');
  for(var i=0;i<dirs.length;i++){
    collapsed[dirs[i].getAttribute('data-path')]=true;
    dirs[i].addEventListener('click',function(){
      var path=this.getAttribute('data-path');
      collapsed[path]=!collapsed[path];
      this.querySelector('.dir-toggle').textContent=collapsed[path]?'\\u25b8':'\\u25be';
      setChildren(path,!collapsed[path]);
    });
  }
  for(var i=0;i<dirs.length;i++){
    setChildren(dirs[i].getAttribute('data-path'),false);
  }

  var input=document.getElementById('file-search');
  if(!input)return;
  var rows=document.querySelectorAll('#files tbody tr');
  input.addEventListener('input',function(){
    var filter=input.value.toLowerCase();
    if(!filter){
      for(var i=0;i<rows.length;i++){
        var parent=rows[i].getAttribute('data-parent');
        rows[i].style.display='';
        if(parent&&collapsed[parent])rows[i].style.display='none';
      }
      for(var i=0;i<dirs.length;i++){
        var p=dirs[i].getAttribute('data-path');
        if(collapsed[p])setChildren(p,false);
      }
      return;
    }
    var keep={};
    for(var i=0;i<rows.length;i++){
      var path=rows[i].getAttribute('data-path')||'';
      var name=rows[i].cells[0].textContent.toLowerCase();
      if(name.indexOf(filter)>-1){
        keep[path]=true;
        var parts=path.split('/');
        for(var j=1;j<parts.length;j++)keep[parts.slice(0,j).join('/')]=true;
      }
    }
    for(var i=0;i<rows.length;i++){
      rows[i].style.display=keep[rows[i].getAttribute('data-path')]?'':'none';
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


class TreeSnapshot(Protocol):
    def entries(self) -> List[TreeEntry]: ...

    def subtree(self, entry: TreeEntry) -> "TreeSnapshot": ...


class GitTree:
    """A tree object of the repository, listed lazily via ``git ls-tree``."""

    def __init__(self, repo_dir: str, treeish: str):
        self.repo_dir = repo_dir
        self.treeish = treeish

    def entries(self) -> List[TreeEntry]:
        return git_ls_tree(self.repo_dir, self.treeish)

    def subtree(self, entry: TreeEntry) -> "GitTree":
        return GitTree(self.repo_dir, entry.oid)


# render_file(entry, entry_path) -> line count, 0 if no numbered listing
RenderFile = Callable[[TreeEntry, str], int]


def filemode(mode: int) -> str:
    """``ls -l`` style mode string, e.g. ``-rw-r--r--``."""
    return stat.filemode(mode)


def join_path(path: str, name: str) -> str:
    return f"{path}/{name}" if path else name


def render_tree(tree: TreeSnapshot, path: str, depth: int, render_file: RenderFile) -> List[str]:
    rows: List[str] = []
    entries = tree.entries()
    indent = INDENT * depth
    parent = html.escape(path)

    for entry in entries:
        if entry.kind != "tree":
            continue
        entry_path = join_path(path, entry.name)
        rows.append(
            f'<tr class="dir-row" data-path="{html.escape(entry_path)}" data-parent="{parent}" '
            f'data-depth="{depth}"><td>{indent}<span class="dir-toggle">&#9656;</span>'
            f'<span class="dirname-clickable">{html.escape(entry.name)}/</span></td>'
            '<td>d---------</td><td class="num" align="right">-</td></tr>\n'
        )
        rows.extend(render_tree(tree.subtree(entry), entry_path, depth + 1, render_file))

    for entry in entries:
        if entry.kind == "tree":
            continue
        entry_path = join_path(path, entry.name)
        row_open = (
            f'<tr class="file-row" data-path="{html.escape(entry_path)}" data-parent="{parent}" '
            f'data-depth="{depth}">'
        )
        if entry.kind == "blob":
            lines = render_file(entry, entry_path)
            size = f"{lines}L" if lines > 0 else f"{entry.size or 0}B"
            rows.append(
                f'{row_open}<td><a href="{file_href(entry_path)}">{indent}'
                f"{html.escape(entry.name)}</a></td><td>{filemode(entry.mode)}</td>"
                f'<td class="num" align="right">{size}</td></tr>\n'
            )
        elif entry.kind == "commit":
            # gitlink: a submodule checkout, not a file of this repository
            rows.append(
                f'{row_open}<td><a href="file/.gitmodules.html">{indent}{html.escape(entry.name)}</a></td>'
                '<td>m---------</td><td class="num" align="right">@</td></tr>\n'
            )
    return rows


class FileDocumentWriter:
    """Writes ``file/<path>.html`` for a blob and reports its line count."""

    def __init__(self, repo_dir: str, out_dir: pathlib.Path, info: RepoInfo):
        self.repo_dir = repo_dir
        self.out_dir = out_dir
        self.info = info
        self.written = 0

    def __call__(self, entry: TreeEntry, entry_path: str) -> int:
        doc = f"file/{entry_path}.html"
        relpath = relpath_for(doc)
        data = git_read_blob(self.repo_dir, entry.oid)
        body, lines = render_blob(data, entry.name)
        extra = MERMAID_SCRIPT if is_markdown_filename(entry.name) else ""
        write_document(
            self.out_dir,
            doc,
            page_header(entry.name, relpath, self.info, extra_head=extra)
            + file_heading(entry.name, len(data))
            + body
            + page_footer(),
        )
        self.written += 1
        return lines


def files_page(head: str | None, repo_dir: str, out_dir: pathlib.Path, info: RepoInfo) -> str:
    """Full ``files.html`` for the snapshot at ``head``; writes every file page."""
    parts = [page_header("Files", "", info), FILE_SEARCH, FILES_TABLE_OPEN]
    if head is not None:
        parts.extend(render_tree(GitTree(repo_dir, f"{head}^{{tree}}"), "", 0, FileDocumentWriter(repo_dir, out_dir, info)))
    parts.append(FILES_TABLE_CLOSE)
    parts.append(FILES_SCRIPT)
    parts.append(page_footer())
    return "".join(parts)
