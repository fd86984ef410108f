"""
Pytest configuration for unit tests.

Sets up test-wide environment configuration and helpers that build small
git repositories with GitPython.
"""
import pytest
import io
import os
import struct
import zipfile
from pathlib import Path

import git

from gitvis.graph.store import GraphStore

# Set environment variables at module import time (before any test modules import the API)
os.environ["GITVIS_BACKEND"] = "memory"
os.environ.pop("GITVIS_CONFIG", None)

AUTHOR = git.Actor("Test Author", "author@example.com")


def init_repo(path: Path) -> git.Repo:
    """Create an empty working-copy repository."""
    path.mkdir(parents=True, exist_ok=True)
    repo = git.Repo.init(path)
    with repo.config_writer() as config:
        config.set_value("user", "name", AUTHOR.name)
        config.set_value("user", "email", AUTHOR.email)
    return repo


def commit_files(repo: git.Repo, message: str, files=None) -> git.Commit:
    """Write files (relative path -> content) into the working copy and commit them."""
    files = files or {}
    for rel_path, content in files.items():
        full_path = Path(repo.working_tree_dir) / rel_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content)
    if files:
        repo.index.add(list(files))
    return repo.index.commit(message, author=AUTHOR, committer=AUTHOR)


def patched_zip(compress_type=None, flag_bits=None) -> bytes:
    """
    Build a one-member stored zip and rewrite its header fields.

    Both the local and the central directory headers are patched so the
    archive still opens; reading the member is what fails.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        archive.writestr("project/README.md", "# project\n")
    data = bytearray(buffer.getvalue())

    local = data.index(b"PK\x03\x04")
    central = data.index(b"PK\x01\x02")
    if flag_bits is not None:
        struct.pack_into("<H", data, local + 6, flag_bits)
        struct.pack_into("<H", data, central + 8, flag_bits)
    if compress_type is not None:
        struct.pack_into("<H", data, local + 8, compress_type)
        struct.pack_into("<H", data, central + 10, compress_type)
    return bytes(data)


@pytest.fixture
def new_repo():
    """Factory: path -> empty working-copy repository."""
    return init_repo


@pytest.fixture
def commit():
    """Factory: (repo, message, files) -> commit on the current branch."""
    return commit_files


@pytest.fixture
def two_commit_repo(tmp_path):
    """
    Repository with one branch: A (empty tree, empty message) <- B (adds f.txt).

    Returns:
        (repo, commit_a, commit_b)
    """
    repo = init_repo(tmp_path / "work" / "project")
    commit_a = commit_files(repo, "")
    commit_b = commit_files(repo, "add f", {"f.txt": "hello\n"})
    yield repo, commit_a, commit_b
    repo.close()


@pytest.fixture
def memory_store():
    """In-memory graph store."""
    store = GraphStore(backend="memory")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Graph store for each locally available backend."""
    if request.param == "sqlite":
        graph_store = GraphStore(backend="sqlite", sqlite_path=tmp_path / "db" / "gitvis.db")
    else:
        graph_store = GraphStore(backend="memory")
    yield graph_store
    graph_store.close()


@pytest.fixture
def unsupported_zip():
    """Zip whose member uses an unknown compression method."""
    return patched_zip(compress_type=99)


@pytest.fixture
def encrypted_zip():
    """Zip whose member is flagged as encrypted."""
    return patched_zip(flag_bits=0x1)
