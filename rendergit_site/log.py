"""
The commit log and its incremental cache.

A cache file holds the HEAD id of the run that wrote it on the first line,
followed by the log rows rendered so far. On the next run the first-parent
walk stops at that id, only the newer commits are rendered, and the old rows
are appended verbatim behind the new ones.

Commit pages are memoized by existence alone: ``commit/<oid>.html`` is
written once and never regenerated, even if it was truncated or damaged.
"""

from __future__ import annotations
import dataclasses
import os
import pathlib
import re
import sys
import tempfile
from typing import Callable, List, Optional

from .diff import CommitDiff, compute_diff
from .errors import CacheError, DiffError
from .gitio import Commit, RepoInfo, git_commit, walk_first_parent
from .output import write_document
from .pages import LOG_MORE_ROW, LOG_TABLE_CLOSE, LOG_TABLE_OPEN, commit_page, log_row, page_footer, page_header

OID_RE = re.compile(r"[0-9a-f]{40,}")


@dataclasses.dataclass
class CacheState:
    last_oid: Optional[str] = None
    rows: bytes = b""


@dataclasses.dataclass
class LogResult:
    head: str
    rows: List[str]           # rows rendered by this run, newest first
    previous_rows: bytes      # carried forward from the cache
    commits_written: int = 0  # new commit pages
    commits_failed: int = 0
    stopped_at_cache: bool = False

    def new_rows_bytes(self) -> bytes:
        return "".join(self.rows).encode("utf-8", errors="surrogateescape")

    def log_rows_bytes(self) -> bytes:
        return self.new_rows_bytes() + self.previous_rows

    def cache_bytes(self) -> bytes:
        return f"{self.head}\n".encode("ascii") + self.log_rows_bytes()


def read_cache(path: pathlib.Path) -> CacheState:
    """Parse a cache file; a missing file is an empty cache."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return CacheState()
    first, nl, rows = data.partition(b"\n")
    if not nl or not first:
        raise CacheError(f"{path}: no object id")
    oid = first.decode("ascii", errors="replace").strip()
    if not OID_RE.fullmatch(oid):
        raise CacheError(f"{path}: invalid object id")
    return CacheState(last_oid=oid, rows=rows)


def warn(msg: str) -> None:
    print(f"⚠️  {msg}", file=sys.stderr)


class LogRenderer:
    """
    Walks first-parent history from a head and renders log rows and commit
    pages. ``max_rows`` and ``cache`` are mutually exclusive.
    """

    def __init__(
        self,
        repo_dir: str,
        out_dir: pathlib.Path,
        info: RepoInfo,
        *,
        cache: Optional[CacheState] = None,
        max_rows: Optional[int] = None,
        diff_fn: Callable[[str, Commit], CommitDiff] = compute_diff,
    ):
        if cache is not None and max_rows is not None:
            raise ValueError("a row limit cannot be combined with a log cache")
        if max_rows is not None and max_rows <= 0:
            raise ValueError("max_rows must be positive")
        self.repo_dir = repo_dir
        self.out_dir = out_dir
        self.info = info
        self.cache = cache
        self.max_rows = max_rows
        self.diff_fn = diff_fn

    def commit_doc(self, oid: str) -> str:
        return f"commit/{oid}.html"

    def render(self, head: str) -> LogResult:
        cache = self.cache or CacheState()
        result = LogResult(head=head, rows=[], previous_rows=cache.rows)
        remaining = self.max_rows

        for oid in walk_first_parent(self.repo_dir, head):
            if oid == cache.last_oid:
                # already rendered last run, and so is everything behind it
                result.stopped_at_cache = True
                break

            doc = self.commit_doc(oid)
            exists = (self.out_dir / doc).exists()
            if remaining == 0 and exists:
                continue

            commit = git_commit(self.repo_dir, oid)
            try:
                d = self.diff_fn(self.repo_dir, commit)
            except DiffError as e:
                warn(f"skipping {oid[:8]}: {e}")
                result.commits_failed += 1
                continue

            if remaining is None:
                result.rows.append(log_row(d))
            elif remaining > 0:
                result.rows.append(log_row(d))
                remaining -= 1
                if remaining == 0 and commit.parent_oid:
                    result.rows.append(LOG_MORE_ROW)

            if not exists:
                write_document(self.out_dir, doc, commit_page(d, self.info))
                result.commits_written += 1
        return result


def log_page(result: Optional[LogResult], info: RepoInfo) -> bytes:
    head = (page_header("Log", "", info) + LOG_TABLE_OPEN).encode("utf-8")
    tail = (LOG_TABLE_CLOSE + page_footer()).encode("utf-8")
    rows = result.log_rows_bytes() if result is not None else b""
    return head + rows + tail


class PendingCache:
    """
    The next cache file, staged under a temporary name beside ``path``.
    ``commit()`` moves it into place; ``discard()`` drops it and leaves the
    current cache untouched.
    """

    def __init__(self, path: pathlib.Path, data: bytes):
        self.path = path
        directory = path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix="cache.", dir=str(directory))
        self.tmp = pathlib.Path(tmp)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except BaseException:
            self.discard()
            raise

    def commit(self) -> None:
        os.replace(self.tmp, self.path)
        mask = os.umask(0)
        os.umask(mask)
        os.chmod(self.path, 0o666 & ~mask)

    def discard(self) -> None:
        self.tmp.unlink(missing_ok=True)
