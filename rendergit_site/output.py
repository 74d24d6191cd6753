"""Writing documents under the output root."""

from __future__ import annotations
import os
import pathlib
import tempfile


def relpath_for(doc: str) -> str:
    """Prefix leading from ``doc`` (relative to the output root) back to the root."""
    return "../" * doc.count("/")


def write_atomic(path: pathlib.Path, data: bytes) -> None:
    """
    Write ``data`` to a temporary file next to ``path`` and move it into place,
    so ``path`` is either absent, the old content, or the complete new content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise
    # mkstemp creates 0600 files; published pages should be world-readable
    mask = os.umask(0)
    os.umask(mask)
    os.chmod(path, 0o666 & ~mask)


def write_document(out_dir: pathlib.Path, doc: str, text: str) -> pathlib.Path:
    path = out_dir / doc
    write_atomic(path, text.encode("utf-8", errors="surrogateescape"))
    return path
