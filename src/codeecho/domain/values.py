"""Validated, immutable identifiers: commit hashes and repository-relative paths."""

from __future__ import annotations

import posixpath
import re

from ..exceptions import InvalidFilePath, InvalidHash

_HASH_RE = re.compile(r"[0-9a-fA-F]{40}")


class GitHash:
    """A full 40-character SHA-1 commit hash.

    Either case is accepted; equality and hashing use the lowercase form so
    hashes read back from different tools compare equal.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        if not isinstance(value, str) or not _HASH_RE.fullmatch(value):
            raise InvalidHash(value)
        self._value = value

    @classmethod
    def parse(cls, value: object) -> GitHash:
        """Return ``value`` if already a GitHash, else validate it as a string."""
        if isinstance(value, GitHash):
            return value
        return cls(value)  # type: ignore[arg-type]

    @property
    def value(self) -> str:
        return self._value

    @property
    def short(self) -> str:
        return self._value[:7]

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"GitHash({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GitHash):
            return self._value.lower() == other._value.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value.lower())


class FilePath:
    """A repository-relative file path in canonical forward-slash form.

    Backslashes become ``/``; ``.`` segments, duplicate and trailing
    separators are collapsed. Paths that are empty, contain NUL bytes, are
    absolute, or climb out of the repository with ``..`` are rejected.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        if not isinstance(value, str):
            raise InvalidFilePath(value, "not a string")
        if not value:
            raise InvalidFilePath(value, "empty path")
        if "\x00" in value:
            raise InvalidFilePath(value, "contains NUL byte")

        normalized = posixpath.normpath(value.replace("\\", "/"))
        if normalized.startswith("/"):
            raise InvalidFilePath(value, "absolute path")
        if normalized == "." or normalized == ".." or normalized.startswith("../"):
            raise InvalidFilePath(value, "path escapes the repository")
        self._value = normalized

    @property
    def value(self) -> str:
        return self._value

    @property
    def name(self) -> str:
        return posixpath.basename(self._value)

    @property
    def directory(self) -> str:
        return posixpath.dirname(self._value)

    @property
    def extension(self) -> str:
        """Lowercased extension without the dot, or ``""``."""
        _, ext = posixpath.splitext(self.name)
        return ext[1:].lower()

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"FilePath({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FilePath):
            return self._value == other._value
        return NotImplemented

    def __lt__(self, other: FilePath) -> bool:
        return self._value < other._value

    def __hash__(self) -> int:
        return hash(self._value)
