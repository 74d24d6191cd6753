"""
Diff engine: a commit's file-level changes against its first parent, with
per-line add/delete counts.

The delta list is read from ``git diff --raw -z`` and the hunks from the
unified patch of the same diff; both are produced with identical options, so
patch sections come out in delta order. A type change (file <-> symlink) is
a single raw delta but two patch sections, which are merged back into one.
"""

from __future__ import annotations
import dataclasses
import re
import subprocess
from typing import List, Optional, Tuple

from .errors import DiffError
from .gitio import EMPTY_TREE_SHA, Commit, git_tree_exists, run

STATUS_NAMES = {
    "A": "added",
    "C": "copied",
    "D": "deleted",
    "M": "modified",
    "R": "renamed",
    "T": "typechanged",
}

# exact-match renames and copies only, submodules ignored
DIFF_OPTIONS = [
    "--no-color",
    "--no-ext-diff",
    "--no-textconv",
    "--ignore-submodules=all",
    "-M100%",
    "-C100%",
]

HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

CONTEXT, ADDITION, DELETION = "context", "addition", "deletion"


@dataclasses.dataclass
class Line:
    content: str  # without the leading origin character and newline
    kind: str     # CONTEXT, ADDITION or DELETION


@dataclasses.dataclass
class Hunk:
    header: str
    lines: List[Line] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FileDelta:
    status: str
    old_path: str
    new_path: str
    binary: bool = False
    hunks: List[Hunk] = dataclasses.field(default_factory=list)
    addcount: int = 0
    delcount: int = 0


@dataclasses.dataclass
class CommitDiff:
    commit: Commit
    deltas: List[FileDelta]
    addcount: int
    delcount: int

    @property
    def filecount(self) -> int:
        return len(self.deltas)


@dataclasses.dataclass
class PatchSection:
    binary: bool = False
    hunks: List[Hunk] = dataclasses.field(default_factory=list)


# ---- parsing -----------------------------------------------------------------

def parse_raw(out: bytes) -> List[FileDelta]:
    """
    Parse ``git diff --raw -z`` output. Records look like
    ``:100644 100644 <old> <new> M\\0path\\0`` or, for renames and copies,
    ``:... R100\\0old\\0new\\0``.
    """
    tokens = out.split(b"\0")
    deltas: List[FileDelta] = []
    i = 0
    while i < len(tokens):
        meta = tokens[i]
        i += 1
        if not meta:
            continue
        if not meta.startswith(b":"):
            raise DiffError(f"unexpected raw diff record: {meta[:60]!r}")
        fields = meta.decode("ascii", errors="replace").split()
        if len(fields) != 5:
            raise DiffError(f"unexpected raw diff record: {meta[:60]!r}")
        letter = fields[4][0]
        status = STATUS_NAMES.get(letter)
        if status is None:
            raise DiffError(f"unsupported diff status {fields[4]!r}")
        npaths = 2 if letter in "RC" else 1
        if i + npaths > len(tokens):
            raise DiffError("truncated raw diff output")
        paths = [p.decode("utf-8", errors="replace") for p in tokens[i:i + npaths]]
        i += npaths
        deltas.append(FileDelta(status=status, old_path=paths[0], new_path=paths[-1]))
    return deltas


def parse_patch(text: str) -> List[PatchSection]:
    """
    Split a unified ``git diff`` patch into per-file sections of hunks.

    Hunk bodies are consumed by the line counts in their ``@@`` headers, so
    content lines that happen to look like headers are never misread.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    sections: List[PatchSection] = []
    cur: Optional[PatchSection] = None
    i, n = 0, len(lines)
    while i < n:
        line = lines[i]
        i += 1
        if line.startswith("diff --git "):
            cur = PatchSection()
            sections.append(cur)
            continue
        if cur is None:
            raise DiffError(f"patch text before first file header: {line[:60]!r}")
        if line.startswith("Binary files ") or line == "GIT binary patch":
            cur.binary = True
            continue
        m = HUNK_RE.match(line)
        if not m:
            # extended header lines: index, mode, rename/copy, ---/+++
            continue
        old_rem = int(m.group(2)) if m.group(2) is not None else 1
        new_rem = int(m.group(4)) if m.group(4) is not None else 1
        hunk = Hunk(header=line + "\n")
        cur.hunks.append(hunk)
        while i < n and (old_rem > 0 or new_rem > 0 or lines[i].startswith("\\")):
            body = lines[i]
            i += 1
            origin, content = body[:1], body[1:]
            if origin == "+":
                hunk.lines.append(Line(content, ADDITION))
                new_rem -= 1
            elif origin == "-":
                hunk.lines.append(Line(content, DELETION))
                old_rem -= 1
            elif origin == "\\":
                # "\ No newline at end of file"
                continue
            elif origin in (" ", ""):
                hunk.lines.append(Line(content, CONTEXT))
                old_rem -= 1
                new_rem -= 1
            else:
                raise DiffError(f"malformed hunk line: {body[:60]!r}")
        if old_rem > 0 or new_rem > 0:
            raise DiffError(f"truncated hunk: {line!r}")
    return sections


def attach_sections(deltas: List[FileDelta], sections: List[PatchSection]) -> None:
    """Distribute patch sections over deltas (two per type change) and count lines."""
    it = iter(sections)
    for delta in deltas:
        wanted = 2 if delta.status == "typechanged" else 1
        for _ in range(wanted):
            sec = next(it, None)
            if sec is None:
                raise DiffError(f"no patch for {delta.new_path}")
            delta.binary = delta.binary or sec.binary
            delta.hunks.extend(sec.hunks)
    if next(it, None) is not None:
        raise DiffError("more patch sections than deltas")

    for delta in deltas:
        if delta.binary:
            # binary content is listed but never counted
            delta.hunks = []
            continue
        for hunk in delta.hunks:
            for line in hunk.lines:
                if line.kind == ADDITION:
                    delta.addcount += 1
                elif line.kind == DELETION:
                    delta.delcount += 1


# ---- engine ------------------------------------------------------------------

def diff_base(repo_dir: str, commit: Commit) -> str:
    """First parent's id, or the empty tree when there is no usable parent tree."""
    if commit.parent_oid and git_tree_exists(repo_dir, commit.parent_oid):
        return commit.parent_oid
    return EMPTY_TREE_SHA


def read_diff(repo_dir: str, base: str, oid: str) -> Tuple[bytes, str]:
    raw = run(["git", "diff", "--raw", "-z", "--no-abbrev", *DIFF_OPTIONS, base, oid, "--"],
              cwd=repo_dir, binary=True).stdout
    patch = run(["git", "diff", "-p", *DIFF_OPTIONS, base, oid, "--"],
                cwd=repo_dir, binary=True).stdout
    return raw, patch.decode("utf-8", errors="replace")


def compute_diff(repo_dir: str, commit: Commit) -> CommitDiff:
    """
    Diff ``commit`` against its first parent and tally line statistics.

    Raises DiffError when git fails or its output cannot be parsed; no
    partially built diff is returned in that case.
    """
    base = diff_base(repo_dir, commit)
    try:
        raw, patch = read_diff(repo_dir, base, commit.oid)
    except (subprocess.CalledProcessError, OSError) as e:
        raise DiffError(f"cannot diff {commit.oid}: {e}") from e

    deltas = parse_raw(raw)
    attach_sections(deltas, parse_patch(patch))
    return CommitDiff(
        commit=commit,
        deltas=deltas,
        addcount=sum(d.addcount for d in deltas),
        delcount=sum(d.delcount for d in deltas),
    )
