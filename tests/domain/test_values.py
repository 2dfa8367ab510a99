"""Tests for GitHash and FilePath value types."""

import pytest

from codeecho.domain.values import FilePath, GitHash
from codeecho.exceptions import InvalidFilePath, InvalidHash


class TestGitHash:
    """GitHash accepts exactly the 40-character hex strings."""

    @pytest.mark.parametrize(
        "value",
        [
            "0" * 40,
            "a" * 40,
            "F" * 40,
            "0123456789abcdef0123456789ABCDEF01234567",
        ],
    )
    def test_valid_hashes(self, value):
        assert GitHash(value).value == value

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "a" * 39,
            "a" * 41,
            "g" * 40,
            " " + "a" * 39,
            "a" * 39 + "\n",
            "a" * 40 + "\n",
            "0123456789abcdef",
        ],
    )
    def test_invalid_hashes(self, value):
        with pytest.raises(InvalidHash):
            GitHash(value)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidHash):
            GitHash(1234)  # type: ignore[arg-type]

    def test_invalid_hash_is_value_error(self):
        """Callers catching ValueError also catch InvalidHash."""
        with pytest.raises(ValueError):
            GitHash("nope")

    def test_equality_ignores_case(self):
        assert GitHash("ab" * 20) == GitHash("AB" * 20)
        assert hash(GitHash("ab" * 20)) == hash(GitHash("AB" * 20))

    def test_short(self):
        assert GitHash("abcdef1" + "0" * 33).short == "abcdef1"

    def test_parse_passes_through_instances(self):
        h = GitHash("a" * 40)
        assert GitHash.parse(h) is h
        assert GitHash.parse("b" * 40) == GitHash("b" * 40)


class TestFilePath:
    """FilePath normalizes to a canonical forward-slash form."""

    def test_backslashes_normalized(self):
        assert FilePath("src\\app\\main.py").value == "src/app/main.py"

    def test_dot_and_duplicate_separators_collapsed(self):
        assert FilePath("./src//app/./main.py").value == "src/app/main.py"

    def test_value_equality_on_normalized_form(self):
        assert FilePath("src/a.py") == FilePath("src//a.py")
        assert len({FilePath("src/a.py"), FilePath("./src/a.py")}) == 1

    @pytest.mark.parametrize(
        "value, reason",
        [
            ("", "empty"),
            ("a\x00b", "NUL"),
            ("/etc/passwd", "absolute"),
            ("../outside.py", "escapes"),
            (".", "escapes"),
        ],
    )
    def test_invalid_paths(self, value, reason):
        with pytest.raises(InvalidFilePath) as exc:
            FilePath(value)
        assert reason in exc.value.reason

    def test_helpers(self):
        p = FilePath("src/pkg/Module.PY")
        assert p.name == "Module.PY"
        assert p.directory == "src/pkg"
        assert p.extension == "py"

    def test_no_extension(self):
        assert FilePath("Makefile").extension == ""

    def test_ordering(self):
        assert FilePath("a.py") < FilePath("b.py")
