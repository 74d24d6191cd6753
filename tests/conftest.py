import os
import pathlib
import subprocess

import pytest


class GitRepo:
    """A throwaway repository with deterministic identities and dates."""

    def __init__(self, path: pathlib.Path):
        self.path = path
        self.clock = 1700000000
        self.env = dict(os.environ)
        self.env.update(
            GIT_AUTHOR_NAME="Ada Lovelace",
            GIT_AUTHOR_EMAIL="ada@example.org",
            GIT_COMMITTER_NAME="Ada Lovelace",
            GIT_COMMITTER_EMAIL="ada@example.org",
            GIT_CONFIG_NOSYSTEM="1",
            HOME=str(path.parent),
        )
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("config", "commit.gpgsign", "false")
        self.git("config", "tag.gpgsign", "false")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def git(self, *args: str, env=None) -> str:
        cp = subprocess.run(
            ["git", *args], cwd=self.path, env=env or self.env,
            check=True, capture_output=True, text=True,
        )
        return cp.stdout

    def write(self, name: str, content) -> None:
        p = self.path / name
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content)

    def remove(self, name: str) -> None:
        self.git("rm", "-q", name)

    def commit(self, message: str, offset: str = "+0000") -> str:
        self.clock += 3600
        env = dict(self.env)
        env["GIT_AUTHOR_DATE"] = f"{self.clock} {offset}"
        env["GIT_COMMITTER_DATE"] = f"{self.clock} {offset}"
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def repo(tmp_path):
    return GitRepo(tmp_path / "project.git")


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / "site"
    d.mkdir()
    return d


@pytest.fixture
def history(repo):
    """Three commits: add files, modify one, rename another."""
    repo.write("README.md", "# Project\n\nSee [the guide](docs/guide.md#intro).\n")
    repo.write("src/main.py", "print('hello')\n")
    repo.write("docs/guide.md", "## intro\n\ntext\n")
    repo.commit("Initial import")
    repo.write("src/main.py", "print('hello')\nprint('world')\n")
    repo.commit("Say world")
    repo.git("mv", "docs/guide.md", "docs/manual.md")
    repo.commit("Rename guide")
    return repo


@pytest.fixture
def make_repo(tmp_path):
    """Factory for extra repositories beside the default one."""
    return lambda name: GitRepo(tmp_path / name)
