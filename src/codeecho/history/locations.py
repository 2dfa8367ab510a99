"""Repository locations: local paths vs remote URLs, credentials, clone names."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit, urlunsplit

from ..exceptions import InvalidLocationError

_REMOTE_SCHEMES = ("http://", "https://", "ssh://", "git://")
# scp-like syntax: user@host:owner/repo.git
_SCP_RE = re.compile(r"^[\w.+-]+@[\w.-]+:(?!//).+")
_KNOWN_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")
_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = ""

    def basic_auth_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Authorization: Basic {token}"

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class RepositoryLocation:
    """A parsed repository location.

    ``url`` never carries credentials; use it for cloning and logging.
    """

    original: str
    url: str
    is_remote: bool
    name: str
    credentials: Optional[Credentials] = None

    def __str__(self) -> str:
        return self.url


def is_remote(location: str) -> bool:
    text = location.strip()
    return text.lower().startswith(_REMOTE_SCHEMES) or bool(_SCP_RE.match(text))


def repo_name(location: str) -> str:
    """Derive a filesystem-safe directory name, e.g. ``.../user/repo.git`` -> ``repo``."""
    text = location.strip().rstrip("/")
    if _SCP_RE.match(text):
        text = text.split(":", 1)[1]
    else:
        parts = urlsplit(text)
        if parts.scheme:
            text = parts.path
    tail = text.replace("\\", "/").rstrip("/").split("/")[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    tail = _NAME_RE.sub("-", tail).strip(".-")
    return tail or "unknown-repo"


def split_credentials(url: str) -> tuple[str, Optional[Credentials]]:
    """Strip ``user:password@`` from an http(s) URL, returning both halves."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or parts.username is None:
        return url, None

    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    clean = urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))
    username = unquote(parts.username)
    password = unquote(parts.password or "")
    if not username:
        return clean, None
    return clean, Credentials(username=username, password=password)


def sanitize(location: str) -> str:
    """Location safe to log: credentials removed."""
    if is_remote(location):
        clean, _ = split_credentials(location.strip())
        return clean
    return location


def _looks_like_git_url(url: str) -> bool:
    if _SCP_RE.match(url):
        return True
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if not host:
        return False
    if any(known in host for known in _KNOWN_HOSTS):
        return True
    if parts.path.rstrip("/").endswith(".git"):
        return True
    return "git" in host


def parse_location(location: str) -> RepositoryLocation:
    """Classify and validate a location string.

    Raises:
        InvalidLocationError: empty input, a remote URL that does not look
            like a git repository, or a local path that does not exist.
    """
    if not isinstance(location, str) or not location.strip():
        raise InvalidLocationError(str(location), "empty location")
    text = location.strip()

    if is_remote(text):
        clean, credentials = split_credentials(text)
        if not _looks_like_git_url(clean):
            raise InvalidLocationError(sanitize(text), "not a recognisable git URL")
        return RepositoryLocation(
            original=text,
            url=clean,
            is_remote=True,
            name=repo_name(clean),
            credentials=credentials,
        )

    path = Path(text).expanduser()
    if not path.exists():
        raise InvalidLocationError(text, "path does not exist")
    if not path.is_dir():
        raise InvalidLocationError(text, "path is not a directory")
    resolved = str(path.resolve())
    return RepositoryLocation(
        original=text,
        url=resolved,
        is_remote=False,
        name=repo_name(resolved),
    )
