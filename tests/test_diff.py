import subprocess

import pytest

from rendergit_site.diff import (
    ADDITION,
    CONTEXT,
    DELETION,
    FileDelta,
    PatchSection,
    attach_sections,
    compute_diff,
    parse_patch,
    parse_raw,
)
from rendergit_site.errors import DiffError
from rendergit_site.gitio import git_commit

PATCH = """\
diff --git a/hello.txt b/hello.txt
index 3b18e51..a042389 100644
--- a/hello.txt
+++ b/hello.txt
@@ -1,3 +1,3 @@ intro
 one
-two
+deux
 three
@@ -10 +10,2 @@
-old last
+new last
+--- not a header
\\ No newline at end of file
diff --git a/logo.png b/logo.png
new file mode 100644
index 0000000..1111111
Binary files /dev/null and b/logo.png differ
diff --git a/empty b/empty
new file mode 100644
index 0000000..e69de29
"""


def test_parse_patch_sections_and_hunks():
    sections = parse_patch(PATCH)
    assert len(sections) == 3
    text, image, empty = sections

    assert not text.binary
    assert [h.header for h in text.hunks] == ["@@ -1,3 +1,3 @@ intro\n", "@@ -10 +10,2 @@\n"]
    kinds = [line.kind for line in text.hunks[0].lines]
    assert kinds == [CONTEXT, DELETION, ADDITION, CONTEXT]
    assert text.hunks[0].lines[2].content == "deux"
    # content that looks like a file header is still a hunk line
    assert text.hunks[1].lines[-1].content == "--- not a header"
    assert text.hunks[1].lines[-1].kind == ADDITION

    assert image.binary and image.hunks == []
    assert empty.hunks == [] and not empty.binary


def test_truncated_hunk_is_an_error():
    with pytest.raises(DiffError):
        parse_patch("diff --git a/x b/x\n@@ -1,2 +1,2 @@\n-a\n")


def test_parse_raw_statuses_and_paths():
    raw = (
        b":100644 100644 aaaa bbbb M\0src/main.py\0"
        b":000000 100644 0000 cccc A\0new file.txt\0"
        b":100644 100644 dddd dddd R100\0old/name.md\0new/name.md\0"
        b":100644 100644 eeee eeee C100\0a.txt\0b.txt\0"
        b":100644 000000 ffff 0000 D\0gone\0"
        b":100644 120000 1111 2222 T\0link\0"
    )
    deltas = parse_raw(raw)
    assert [(d.status, d.old_path, d.new_path) for d in deltas] == [
        ("modified", "src/main.py", "src/main.py"),
        ("added", "new file.txt", "new file.txt"),
        ("renamed", "old/name.md", "new/name.md"),
        ("copied", "a.txt", "b.txt"),
        ("deleted", "gone", "gone"),
        ("typechanged", "link", "link"),
    ]


def test_typechange_takes_two_sections():
    deltas = [FileDelta("typechanged", "link", "link"), FileDelta("modified", "x", "x")]
    sections = parse_patch(
        "diff --git a/link b/link\ndeleted file mode 100644\n--- a/link\n+++ /dev/null\n"
        "@@ -1 +0,0 @@\n-target\n"
        "diff --git a/link b/link\nnew file mode 120000\n--- /dev/null\n+++ b/link\n"
        "@@ -0,0 +1 @@\n+target\n\\ No newline at end of file\n"
        "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1 +1 @@\n-1\n+2\n"
    )
    attach_sections(deltas, sections)
    assert (deltas[0].addcount, deltas[0].delcount) == (1, 1)
    assert len(deltas[0].hunks) == 2
    assert (deltas[1].addcount, deltas[1].delcount) == (1, 1)


def test_section_count_mismatch_is_an_error():
    with pytest.raises(DiffError):
        attach_sections([FileDelta("modified", "a", "a")], [])
    with pytest.raises(DiffError):
        attach_sections([], [PatchSection()])


def test_binary_deltas_count_nothing():
    delta = FileDelta("modified", "a", "a")
    sec = parse_patch("diff --git a/a b/a\n@@ -1 +1 @@\n-x\n+y\n")[0]
    sec.binary = True
    attach_sections([delta], [sec])
    assert delta.binary
    assert (delta.addcount, delta.delcount) == (0, 0)


# ---- against real repositories -------------------------------------------------

def test_root_commit_is_diffed_against_empty_tree(repo):
    repo.write("a.txt", "1\n2\n3\n")
    oid = repo.commit("root")
    d = compute_diff(str(repo.path), git_commit(str(repo.path), oid))
    assert [(x.status, x.new_path) for x in d.deltas] == [("added", "a.txt")]
    assert (d.addcount, d.delcount, d.filecount) == (3, 0, 1)


def test_counts_add_up_over_deltas(history):
    history.write("src/main.py", "print('hi')\n")
    history.write("notes.txt", "a\nb\n")
    history.write("blob.bin", b"\x00\x01\x02binary")
    history.remove("README.md")
    oid = history.commit("mixed change")

    d = compute_diff(str(history.path), git_commit(str(history.path), oid))
    by_path = {x.new_path: x for x in d.deltas}
    assert by_path["README.md"].status == "deleted"
    assert by_path["notes.txt"].status == "added"
    assert by_path["blob.bin"].binary
    assert (by_path["blob.bin"].addcount, by_path["blob.bin"].delcount) == (0, 0)
    assert (by_path["src/main.py"].addcount, by_path["src/main.py"].delcount) == (1, 2)

    assert d.addcount == sum(x.addcount for x in d.deltas)
    assert d.delcount == sum(x.delcount for x in d.deltas)
    assert d.filecount == len(d.deltas) == 4


def test_exact_rename_detected(history):
    d = compute_diff(str(history.path), git_commit(str(history.path), history.head()))
    assert [(x.status, x.old_path, x.new_path) for x in d.deltas] == [
        ("renamed", "docs/guide.md", "docs/manual.md")
    ]
    assert (d.addcount, d.delcount) == (0, 0)


def test_similar_but_not_identical_move_is_not_a_rename(repo):
    repo.write("a.txt", "".join(f"line {i}\n" for i in range(50)))
    repo.commit("one")
    repo.remove("a.txt")
    repo.write("b.txt", "".join(f"line {i}\n" for i in range(50)) + "extra\n")
    oid = repo.commit("move with edit")
    d = compute_diff(str(repo.path), git_commit(str(repo.path), oid))
    assert sorted(x.status for x in d.deltas) == ["added", "deleted"]


def test_git_failure_becomes_diff_error(repo, monkeypatch):
    repo.write("a.txt", "x\n")
    oid = repo.commit("root")
    commit = git_commit(str(repo.path), oid)

    def broken(*args, **kwargs):
        raise subprocess.CalledProcessError(128, ["git", "diff"])

    monkeypatch.setattr("rendergit_site.diff.read_diff", broken)
    with pytest.raises(DiffError):
        compute_diff(str(repo.path), commit)


def test_submodule_paths_are_left_out(repo):
    repo.write("a.txt", "x\n")
    target = repo.commit("root")
    repo.write(".gitmodules", '[submodule "vendor"]\n\tpath = vendor\n\turl = ../vendor.git\n')
    repo.git("add", ".gitmodules")
    repo.git("update-index", "--add", "--cacheinfo", f"160000,{target},vendor")
    repo.git("commit", "-q", "-m", "add submodule")

    d = compute_diff(str(repo.path), git_commit(str(repo.path), repo.head()))
    assert [(x.status, x.new_path) for x in d.deltas] == [("added", ".gitmodules")]
    assert d.filecount == 1
