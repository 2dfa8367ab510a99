"""Validation errors for domain value types."""

from .base import CodeEchoError


class InvalidHash(CodeEchoError, ValueError):
    """Raised when a string is not a 40-character hexadecimal commit hash."""

    def __init__(self, value: object):
        super().__init__(
            "Invalid git hash",
            details={"value": repr(value), "reason": "expected 40 hexadecimal characters"},
        )
        self.value = value


class InvalidFilePath(CodeEchoError, ValueError):
    """Raised when a repository-relative file path is empty or malformed."""

    def __init__(self, value: object, reason: str):
        super().__init__("Invalid file path", details={"value": repr(value), "reason": reason})
        self.value = value
        self.reason = reason
