"""
Repository access through the git command line.

Everything here shells out to ``git`` and parses its porcelain/plumbing
output; nothing else in the package talks to git directly.
"""

from __future__ import annotations
import dataclasses
import os
import pathlib
import subprocess
from typing import Iterator, List, Optional

from .errors import RepositoryError

# ---- constants & utilities ---------------------------------------------------

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

# field sep 0x1f; message goes last so a stray 0x1f in it cannot shift fields
COMMIT_FORMAT = "%H%x1f%P%x1f%an%x1f%ae%x1f%ad%x1f%cn%x1f%ce%x1f%cd%x1f%s%x1f%B"

LICENSE_FILES = ("LICENSE", "LICENSE.md", "COPYING")
README_FILES = ("README", "README.md")


def run(cmd: List[str], cwd: str | None = None, check: bool = True, binary: bool = False,
        env: dict | None = None) -> subprocess.CompletedProcess:
    if binary:
        return subprocess.run(cmd, cwd=cwd, check=check, capture_output=True, env=env)
    return subprocess.run(cmd, cwd=cwd, check=check, capture_output=True, text=True,
                          encoding="utf-8", errors="replace", env=env)


def git(repo_dir: str, *args: str) -> str:
    """Run a git subcommand in ``repo_dir`` and return its stdout as text."""
    try:
        return run(["git", *args], cwd=repo_dir).stdout
    except subprocess.CalledProcessError as e:
        raise RepositoryError(f"git {args[0]} failed: {(e.stderr or '').strip()}") from e
    except FileNotFoundError as e:
        raise RepositoryError(f"cannot run git in {repo_dir}: {e}") from e


# ---- data --------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Signature:
    name: str
    email: str
    time: int    # unix seconds
    offset: int  # minutes east of UTC


@dataclasses.dataclass(frozen=True)
class Commit:
    oid: str
    parent_oid: Optional[str]
    author: Signature
    committer: Signature
    summary: str
    message: str


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    mode: int
    kind: str  # "tree", "blob" or "commit" (submodule)
    oid: str
    size: Optional[int]
    name: str


@dataclasses.dataclass(frozen=True)
class Reference:
    name: str  # shorthand, e.g. "main" or "v1.0"
    is_tag: bool
    commit: Commit


@dataclasses.dataclass(frozen=True)
class RepoInfo:
    name: str
    stripped_name: str
    description: str
    clone_url: str
    readme: Optional[str]
    license: Optional[str]
    submodules: Optional[str]


def parse_raw_date(raw: str) -> tuple[int, int]:
    """Parse ``--date=raw`` output (``1700000000 +0130``) into (time, offset minutes)."""
    stamp, _, tz = raw.strip().partition(" ")
    offset = 0
    if len(tz) == 5 and tz[0] in "+-" and tz[1:].isdigit():
        offset = int(tz[1:3]) * 60 + int(tz[3:5])
        if tz[0] == "-":
            offset = -offset
    return int(stamp), offset


def parse_commit(out: str) -> Commit:
    fields = out.split("\x1f", 9)
    if len(fields) != 10:
        raise RepositoryError(f"unexpected commit record: {out[:80]!r}")
    h, p, an, ae, ad, cn, ce, cd, s, b = fields
    parents = p.split()
    a_time, a_off = parse_raw_date(ad)
    c_time, c_off = parse_raw_date(cd)
    return Commit(
        oid=h,
        parent_oid=parents[0] if parents else None,
        author=Signature(an, ae, a_time, a_off),
        committer=Signature(cn, ce, c_time, c_off),
        summary=s,
        message=b,
    )


# ---- git helpers -------------------------------------------------------------

def git_open(repo_dir: str) -> str:
    """Return the absolute path of ``repo_dir`` after checking it is a git repository."""
    path = pathlib.Path(repo_dir).resolve()
    if not path.is_dir():
        raise RepositoryError(f"{repo_dir}: cannot open repository")
    # do not let git search parent directories for a repository
    env = dict(os.environ, GIT_CEILING_DIRECTORIES=str(path.parent))
    try:
        run(["git", "rev-parse", "--git-dir"], cwd=str(path), env=env)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RepositoryError(f"{repo_dir}: cannot open repository") from e
    return str(path)


def git_head_commit(repo_dir: str) -> Optional[str]:
    """Full id of HEAD, or None for a repository without commits."""
    cp = run(["git", "rev-parse", "--verify", "--quiet", "HEAD^{commit}"], cwd=repo_dir, check=False)
    if cp.returncode != 0:
        return None
    return cp.stdout.strip() or None


def git_commit(repo_dir: str, oid: str) -> Commit:
    out = git(repo_dir, "log", "-1", "--date=raw", "--pretty=format:" + COMMIT_FORMAT, oid, "--")
    return parse_commit(out)


def git_tree_exists(repo_dir: str, rev: str) -> bool:
    cp = run(["git", "cat-file", "-e", f"{rev}^{{tree}}"], cwd=repo_dir, check=False)
    return cp.returncode == 0


def git_blob_exists(repo_dir: str, obj: str) -> bool:
    cp = run(["git", "cat-file", "-t", obj], cwd=repo_dir, check=False)
    return cp.returncode == 0 and cp.stdout.strip() == "blob"


def walk_first_parent(repo_dir: str, start: str) -> Iterator[str]:
    """
    Yield commit ids reachable from ``start`` along first-parent edges, in
    git's native order. The rev-list process is stopped as soon as the
    consumer stops iterating.
    """
    try:
        proc = subprocess.Popen(
            ["git", "rev-list", "--first-parent", start, "--"],
            cwd=repo_dir, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL,
            text=True, encoding="utf-8",
        )
    except FileNotFoundError as e:
        raise RepositoryError(f"cannot run git in {repo_dir}: {e}") from e
    try:
        for line in proc.stdout:
            oid = line.strip()
            if oid:
                yield oid
        if proc.wait() != 0:
            raise RepositoryError(f"git rev-list failed for {start}")
    finally:
        if proc.poll() is None:
            proc.kill()
        proc.stdout.close()
        proc.wait()


def git_ls_tree(repo_dir: str, treeish: str) -> List[TreeEntry]:
    """Direct children of a tree in the tree's own (native) order."""
    try:
        out = run(["git", "ls-tree", "-l", "-z", treeish], cwd=repo_dir, binary=True).stdout
    except subprocess.CalledProcessError as e:
        raise RepositoryError(f"git ls-tree failed for {treeish}") from e
    entries: List[TreeEntry] = []
    for rec in out.split(b"\0"):
        if not rec:
            continue
        meta, _, name = rec.partition(b"\t")
        mode, kind, oid, size = meta.decode("ascii").split()
        entries.append(
            TreeEntry(
                mode=int(mode, 8),
                kind=kind,
                oid=oid,
                size=int(size) if size.isdigit() else None,
                name=name.decode("utf-8", errors="replace"),
            )
        )
    return entries


def git_read_blob(repo_dir: str, oid: str) -> bytes:
    try:
        return run(["git", "cat-file", "blob", oid], cwd=repo_dir, binary=True).stdout
    except subprocess.CalledProcessError as e:
        raise RepositoryError(f"cannot read blob {oid}") from e


def git_references(repo_dir: str) -> List[Reference]:
    """
    Branches and tags, each resolved to the commit it points at, sorted
    branches first, then by descending author time, then by name.
    References that do not end at a commit are left out.
    """
    fmt = "%(refname)%00%(refname:short)%00%(objectname)%00%(*objectname)"
    out = git(repo_dir, "for-each-ref", f"--format={fmt}", "refs/heads", "refs/tags")
    refs: List[Reference] = []
    for line in out.splitlines():
        if not line:
            continue
        full, short, target, peeled = line.split("\0")
        oid = peeled or target
        cp = run(["git", "cat-file", "-t", oid], cwd=repo_dir, check=False)
        if cp.stdout.strip() != "commit":
            continue
        refs.append(Reference(name=short, is_tag=full.startswith("refs/tags/"), commit=git_commit(repo_dir, oid)))
    refs.sort(key=lambda r: (r.is_tag, -r.commit.author.time, r.name))
    return refs


def read_meta_file(repo_dir: str, name: str) -> str:
    """First line of ``<repo>/<name>`` or ``<repo>/.git/<name>``, or ''."""
    for candidate in (pathlib.Path(repo_dir, name), pathlib.Path(repo_dir, ".git", name)):
        try:
            with candidate.open("r", encoding="utf-8", errors="replace") as f:
                return f.readline().rstrip("\n")
        except OSError:
            continue
    return ""


def git_repo_info(repo_dir: str, head: Optional[str]) -> RepoInfo:
    name = pathlib.Path(repo_dir).name
    stripped = name[:-4] if name.endswith(".git") else name

    def first_blob(candidates) -> Optional[str]:
        if head is None:
            return None
        for path in candidates:
            if git_blob_exists(repo_dir, f"{head}:{path}"):
                return path
        return None

    return RepoInfo(
        name=name,
        stripped_name=stripped,
        description=read_meta_file(repo_dir, "description"),
        clone_url=read_meta_file(repo_dir, "url"),
        readme=first_blob(README_FILES),
        license=first_blob(LICENSE_FILES),
        submodules=first_blob([".gitmodules"]),
    )
