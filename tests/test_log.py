import pytest

from rendergit_site.diff import compute_diff
from rendergit_site.errors import CacheError, DiffError
from rendergit_site.gitio import RepoInfo
from rendergit_site.log import CacheState, LogRenderer, PendingCache, log_page, read_cache
from rendergit_site.pages import LOG_MORE_ROW

INFO = RepoInfo("project.git", "project", "", "", None, None, None)


def make_commits(repo, n, start=0):
    oids = []
    for i in range(start, start + n):
        repo.write("counter.txt", f"{i}\n")
        oids.append(repo.commit(f"commit {i}"))
    return oids


def run_cached(repo, out_dir, cache_path):
    cache = read_cache(cache_path)
    result = LogRenderer(str(repo.path), out_dir, INFO, cache=cache).render(repo.head())
    pending = PendingCache(cache_path, result.cache_bytes())
    page = log_page(result, INFO)
    (out_dir / "log.html").write_bytes(page)
    pending.commit()
    return result, page


# ---- cache file ------------------------------------------------------------------

def test_missing_cache_is_empty(tmp_path):
    assert read_cache(tmp_path / "nope") == CacheState()


@pytest.mark.parametrize("content", [b"", b"\n<tr></tr>\n", b"abc", b"not-an-id\nrows"])
def test_malformed_cache_is_fatal(tmp_path, content):
    path = tmp_path / "cache"
    path.write_bytes(content)
    with pytest.raises(CacheError):
        read_cache(path)


def test_cache_rows_are_opaque(tmp_path):
    path = tmp_path / "cache"
    rows = b"<tr><td>\xff not utf-8</td></tr>\n"
    path.write_bytes(b"a" * 40 + b"\n" + rows)
    state = read_cache(path)
    assert state.last_oid == "a" * 40
    assert state.rows == rows


def test_pending_cache_discard_keeps_old_file(tmp_path):
    path = tmp_path / "cache"
    path.write_bytes(b"old")
    pending = PendingCache(path, b"new")
    pending.discard()
    assert path.read_bytes() == b"old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["cache"]


# ---- walking ---------------------------------------------------------------------

def test_full_render_writes_every_commit_page(repo, out_dir):
    oids = make_commits(repo, 3)
    result = LogRenderer(str(repo.path), out_dir, INFO).render(repo.head())
    assert len(result.rows) == 3
    assert result.commits_written == 3
    for oid in oids:
        assert (out_dir / f"commit/{oid}.html").exists()
    # newest first
    assert "commit 2" in result.rows[0] and "commit 0" in result.rows[2]


def test_cache_idempotence(repo, out_dir, tmp_path):
    make_commits(repo, 4)
    cache_path = tmp_path / "log.cache"

    first, page1 = run_cached(repo, out_dir, cache_path)
    assert first.commits_written == 4
    cache1 = cache_path.read_bytes()
    assert cache1.startswith(repo.head().encode() + b"\n")

    second, page2 = run_cached(repo, out_dir, cache_path)
    assert second.stopped_at_cache
    assert second.rows == []
    assert second.commits_written == 0
    assert page2 == page1
    assert cache_path.read_bytes() == cache1


def test_cache_incrementality(repo, out_dir, tmp_path):
    make_commits(repo, 3)
    cache_path = tmp_path / "log.cache"
    first, _ = run_cached(repo, out_dir, cache_path)
    old_rows = first.new_rows_bytes()

    new_oids = make_commits(repo, 2, start=3)
    second, page = run_cached(repo, out_dir, cache_path)

    assert second.stopped_at_cache
    assert len(second.rows) == 2
    assert second.commits_written == 2
    assert "commit 4" in second.rows[0] and "commit 3" in second.rows[1]

    cache = cache_path.read_bytes()
    assert cache == new_oids[-1].encode() + b"\n" + second.new_rows_bytes() + old_rows
    assert second.new_rows_bytes() + old_rows in page


def test_existing_commit_page_is_never_rewritten(repo, out_dir):
    oid = make_commits(repo, 1)[0]
    page = out_dir / f"commit/{oid}.html"
    page.parent.mkdir()
    page.write_text("stale")
    result = LogRenderer(str(repo.path), out_dir, INFO).render(repo.head())
    assert result.commits_written == 0
    assert len(result.rows) == 1
    assert page.read_text() == "stale"


def test_row_limit_truncates_display_but_not_pages(repo, out_dir):
    oids = make_commits(repo, 5)
    result = LogRenderer(str(repo.path), out_dir, INFO, max_rows=2).render(repo.head())
    assert len(result.rows) == 3
    assert result.rows[-1] == LOG_MORE_ROW
    assert result.commits_written == 5
    for oid in oids:
        assert (out_dir / f"commit/{oid}.html").exists()


def test_row_limit_without_older_commits_has_no_marker(repo, out_dir):
    make_commits(repo, 2)
    result = LogRenderer(str(repo.path), out_dir, INFO, max_rows=2).render(repo.head())
    assert len(result.rows) == 2
    assert LOG_MORE_ROW not in result.rows


def test_row_limit_skips_diffs_for_existing_older_pages(repo, out_dir):
    make_commits(repo, 4)
    LogRenderer(str(repo.path), out_dir, INFO).render(repo.head())

    seen = []

    def counting_diff(repo_dir, commit):
        seen.append(commit.oid)
        return compute_diff(repo_dir, commit)

    LogRenderer(str(repo.path), out_dir, INFO, max_rows=1, diff_fn=counting_diff).render(repo.head())
    assert seen == [repo.head()]


def test_limit_and_cache_are_exclusive(repo, out_dir):
    with pytest.raises(ValueError):
        LogRenderer(str(repo.path), out_dir, INFO, cache=CacheState(), max_rows=3)


def test_diff_failure_skips_only_that_commit(repo, out_dir, capsys):
    oids = make_commits(repo, 3)
    bad = oids[1]

    def flaky_diff(repo_dir, commit):
        if commit.oid == bad:
            raise DiffError("tree lookup failed")
        return compute_diff(repo_dir, commit)

    result = LogRenderer(str(repo.path), out_dir, INFO, diff_fn=flaky_diff).render(repo.head())
    assert len(result.rows) == 2
    assert result.commits_failed == 1
    assert not (out_dir / f"commit/{bad}.html").exists()
    assert (out_dir / f"commit/{oids[0]}.html").exists()
    assert bad[:8] in capsys.readouterr().err


def test_first_parent_walk_linearizes_merges(repo, out_dir):
    make_commits(repo, 1)
    repo.git("checkout", "-q", "-b", "topic")
    repo.write("topic.txt", "t\n")
    side = repo.commit("topic work")
    repo.git("checkout", "-q", "main")
    repo.write("main.txt", "m\n")
    repo.commit("main work")
    env = dict(repo.env, GIT_AUTHOR_DATE="1800000000 +0000", GIT_COMMITTER_DATE="1800000000 +0000")
    repo.git("merge", "-q", "--no-ff", "-m", "merge topic", "topic", env=env)

    result = LogRenderer(str(repo.path), out_dir, INFO).render(repo.head())
    text = "".join(result.rows)
    assert "merge topic" in text
    assert "topic work" not in text
    assert not (out_dir / f"commit/{side}.html").exists()
    assert len(result.rows) == 3
