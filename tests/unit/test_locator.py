"""
Unit tests for repository discovery.
"""
import pytest

from gitvis.ingest.errors import RepositoryLocationError, ParseError
from gitvis.ingest.locator import find_repository_root, locate_repository, open_repository


class TestFindRepositoryRoot:
    """Test candidate search inside an extracted tree."""

    def test_nested_working_copy(self, tmp_path):
        """Should find a .git directory at any depth."""
        (tmp_path / "outer" / "project" / ".git").mkdir(parents=True)

        assert find_repository_root(tmp_path) == tmp_path / "outer" / "project" / ".git"

    def test_bare_layout(self, tmp_path):
        """A HEAD file should select its parent directory."""
        bare = tmp_path / "repo.git"
        bare.mkdir()
        (bare / "HEAD").write_text("ref: refs/heads/main\n")
        (bare / "refs" / "heads").mkdir(parents=True)

        assert find_repository_root(tmp_path) == bare

    def test_first_match_in_lexical_order(self, tmp_path):
        """With several candidates, the lexically first should win."""
        (tmp_path / "b" / ".git").mkdir(parents=True)
        (tmp_path / "a" / ".git").mkdir(parents=True)

        assert find_repository_root(tmp_path) == tmp_path / "a" / ".git"

    def test_does_not_descend_into_metadata_dir(self, tmp_path):
        """HEAD files inside a matched .git directory should not be reported."""
        git_dir = tmp_path / "project" / ".git"
        (git_dir / "logs").mkdir(parents=True)
        (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
        (git_dir / "logs" / "HEAD").write_text("")

        assert find_repository_root(tmp_path) == git_dir

    def test_nothing_found(self, tmp_path):
        """Should return None when no candidate exists."""
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "README.md").write_text("# readme\n")

        assert find_repository_root(tmp_path) is None

    def test_locate_falls_back_to_root(self, tmp_path):
        """locate_repository should return the root when nothing matched."""
        assert locate_repository(tmp_path) == tmp_path


class TestOpenRepository:
    """Test opening located candidates."""

    def test_open_metadata_dir(self, tmp_path, new_repo, commit):
        """Should open a repository through its .git directory."""
        repo = new_repo(tmp_path / "project")
        head = commit(repo, "initial", {"a.txt": "a"})
        repo.close()

        opened = open_repository(locate_repository(tmp_path))
        try:
            assert opened.head.commit.hexsha == head.hexsha
        finally:
            opened.close()

    def test_open_bare_clone(self, tmp_path, new_repo, commit):
        """Should open a bare repository found by its HEAD file."""
        repo = new_repo(tmp_path / "source")
        head = commit(repo, "initial", {"a.txt": "a"})
        repo.clone(str(tmp_path / "upload" / "mirror.git"), bare=True).close()
        repo.close()

        candidate = locate_repository(tmp_path / "upload")
        assert candidate == tmp_path / "upload" / "mirror.git"

        opened = open_repository(candidate)
        try:
            assert opened.bare
            assert opened.head.commit.hexsha == head.hexsha
        finally:
            opened.close()

    def test_open_failure(self, tmp_path):
        """A directory with no repository should raise RepositoryLocationError."""
        (tmp_path / "plain").mkdir()

        with pytest.raises(RepositoryLocationError):
            open_repository(tmp_path / "plain")

    def test_location_error_is_parse_error(self):
        """Location failures should be catchable as ParseError."""
        assert issubclass(RepositoryLocationError, ParseError)
