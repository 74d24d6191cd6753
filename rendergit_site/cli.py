"""
Command line entry point: render one repository into the current (or given)
output directory.

    rendergit-site [-c cachefile | -l commits] [-o outdir] repodir
"""

from __future__ import annotations
import argparse
import pathlib
import sys
from typing import Optional

from .errors import RenderError
from .gitio import git_commit, git_head_commit, git_open, git_references, git_repo_info, walk_first_parent
from .log import LogRenderer, PendingCache, log_page, read_cache
from .output import write_atomic, write_document
from .pages import FEED_MAX_ENTRIES, atom_entry, atom_feed, page_footer, page_header, refs_body
from .tree import files_page


def positive_int(value: str) -> int:
    try:
        n = int(value, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid commit count: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"commit count must be positive: {value!r}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-site",
        description="Render a git repository as static HTML pages (log, commits, files, refs, feeds)",
    )
    ap.add_argument("repodir", help="Path to the git repository")
    group = ap.add_mutually_exclusive_group()
    group.add_argument("-c", "--cache", metavar="CACHEFILE", help="Incremental log cache file (created if missing)")
    group.add_argument("-l", "--limit", metavar="COMMITS", type=positive_int,
                       help="Show only the most recent COMMITS rows in the log")
    ap.add_argument("-o", "--out", default=".", help="Output directory (default: current directory)")
    ap.add_argument("-q", "--quiet", action="store_true", help="Only print warnings and errors")
    return ap


def build_site(repo_dir: str, out_dir: pathlib.Path, cache_file: Optional[pathlib.Path] = None,
               max_rows: Optional[int] = None, quiet: bool = False) -> int:
    """Render every document for ``repo_dir`` into ``out_dir``. Returns the number of new commit pages."""

    def progress(msg: str) -> None:
        if not quiet:
            print(msg, file=sys.stderr)

    repo_dir = git_open(repo_dir)
    head = git_head_commit(repo_dir)
    info = git_repo_info(repo_dir, head)
    out_dir.mkdir(parents=True, exist_ok=True)
    progress(f"📁 Repository {repo_dir} (HEAD: {head[:8] if head else 'none'})")

    pending: Optional[PendingCache] = None
    result = None
    try:
        if head is not None:
            cache = read_cache(cache_file) if cache_file is not None else None
            if cache is not None and cache.last_oid:
                progress(f"📜 Reading history since {cache.last_oid[:8]}...")
            else:
                progress(f"📜 Reading history{f' (showing {max_rows} rows)' if max_rows else ''}...")
            renderer = LogRenderer(repo_dir, out_dir, info, cache=cache, max_rows=max_rows)
            result = renderer.render(head)
            progress(f"🧮 {len(result.rows)} new log rows, {result.commits_written} new commit pages")
            if cache_file is not None:
                pending = PendingCache(cache_file, result.cache_bytes())

        progress("🔨 Writing log.html, files.html, refs.html, atom.xml, tags.xml...")
        write_atomic(out_dir / "log.html", log_page(result, info))
        write_document(out_dir, "files.html", files_page(head, repo_dir, out_dir, info))

        refs = git_references(repo_dir)
        write_document(out_dir, "refs.html", page_header("Refs", "", info) + refs_body(refs) + page_footer())

        entries = []
        if head is not None:
            for oid in walk_first_parent(repo_dir, head):
                if len(entries) >= FEED_MAX_ENTRIES:
                    break
                entries.append(atom_entry(git_commit(repo_dir, oid)))
        write_document(out_dir, "atom.xml", atom_feed(info, entries))

        tags = [atom_entry(r.commit, r.name) for r in refs if r.is_tag][:FEED_MAX_ENTRIES]
        write_document(out_dir, "tags.xml", atom_feed(info, tags))

        if pending is not None:
            pending.commit()
            progress(f"💾 Cache updated: {cache_file}")
            pending = None
    finally:
        if pending is not None:
            pending.discard()

    return result.commits_written if result is not None else 0


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    cache_file = pathlib.Path(args.cache) if args.cache else None
    try:
        build_site(args.repodir, pathlib.Path(args.out), cache_file=cache_file, max_rows=args.limit, quiet=args.quiet)
    except (RenderError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    if not args.quiet:
        print("✓ Done", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
