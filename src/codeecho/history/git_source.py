"""Walk git history via the ``git`` executable.

Commit metadata comes from one ``git log`` call, per-commit file deltas from
``git diff-tree`` against the first parent (or the empty tree for root
commits), and blob contents from a single long-lived ``git cat-file
--batch`` process per walk.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, Iterator, Optional

from ..config import CodeEchoConfig
from ..domain.models import CommitRecord, FileDelta
from ..exceptions import (
    CheckpointNotFoundError,
    HistoryWalkError,
    RepoOpenError,
)
from ..logging_config import get_logger
from . import linecount
from .locations import RepositoryLocation, parse_location
from .source import HistorySource, HistoryWalk

logger = get_logger(__name__)

_NULL_SHA = "0" * 40
_GITLINK_MODE = "160000"
# %x1f separates fields, -z separates commits; the body goes last because it
# is the only field that can contain anything.
_LOG_FORMAT = "%H%x1f%P%x1f%an%x1f%aI%x1f%B"


@dataclass(frozen=True)
class _CommitMeta:
    hash: str
    parents: list[str]
    author: str
    timestamp: str
    message: str


@dataclass(frozen=True)
class _RawDelta:
    status: str
    old_mode: str
    new_mode: str
    old_sha: str
    new_sha: str
    path: str


class _BlobReader:
    """Streams blob contents from ``git cat-file --batch``."""

    def __init__(self, repo_dir: str, env: dict[str, str]) -> None:
        self._proc = subprocess.Popen(
            ["git", "-C", repo_dir, "cat-file", "--batch"],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            env=env,
        )

    def read(self, sha: str) -> bytes:
        stdin: Optional[IO[bytes]] = self._proc.stdin
        stdout: Optional[IO[bytes]] = self._proc.stdout
        if stdin is None or stdout is None:
            raise OSError("cat-file process has no pipes")

        stdin.write(sha.encode("ascii") + b"\n")
        stdin.flush()

        header = stdout.readline()
        if not header:
            raise OSError("cat-file process exited unexpectedly")
        fields = header.split()
        if len(fields) < 2 or fields[1] == b"missing":
            raise KeyError(sha)

        size = int(fields[2])
        content = stdout.read(size)
        stdout.read(1)  # trailing LF
        return content

    def close(self) -> None:
        if self._proc.stdin:
            self._proc.stdin.close()
        try:
            self._proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
        if self._proc.stdout:
            self._proc.stdout.close()

    def __enter__(self) -> _BlobReader:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class GitHistorySource(HistorySource):
    """HistorySource backed by the ``git`` command-line tool."""

    def __init__(self, config: Optional[CodeEchoConfig] = None) -> None:
        self.config = config or CodeEchoConfig()
        self.clone_root = Path(self.config.clone_root)
        self.timeout = self.config.git_timeout_seconds

    # ── public API ────────────────────────────────────────────────

    def validate_location(self, location: str) -> None:
        """Reject unusable locations before any work is scheduled.

        Remote URLs are only checked for shape; local paths must be git
        repositories.
        """
        parsed = parse_location(location)
        if not parsed.is_remote:
            self._require_repo(parsed.url, parsed.original)

    def walk(
        self,
        location: str,
        since_hash: Optional[str] = None,
        oldest_first: bool = False,
    ) -> HistoryWalk:
        parsed = parse_location(location)
        repo_dir = self.resolve(parsed)
        cleanup = (lambda: self._discard_clone(repo_dir)) if parsed.is_remote else None
        try:
            return self._walk_repo(parsed, repo_dir, since_hash, oldest_first, cleanup)
        except BaseException:
            if cleanup is not None:
                cleanup()
            raise

    def _walk_repo(
        self,
        parsed: RepositoryLocation,
        repo_dir: str,
        since_hash: Optional[str],
        oldest_first: bool,
        cleanup: Optional[Callable[[], None]],
    ) -> HistoryWalk:
        if not self._has_head(repo_dir):
            logger.warning("Repository %s has no commits yet", parsed.url)
            return HistoryWalk(
                parsed.url, [], lambda: iter(()), oldest_first=oldest_first, cleanup=cleanup
            )

        if since_hash:
            if not self._commit_exists(repo_dir, since_hash):
                raise CheckpointNotFoundError(parsed.url, since_hash)
            rev_range = ["HEAD", f"^{since_hash}"]
        else:
            rev_range = ["HEAD"]

        metas = self._read_log(repo_dir, parsed.url, rev_range, oldest_first)
        if since_hash:
            logger.info(
                "Found %d commit(s) since %s in %s", len(metas), since_hash[:7], parsed.url
            )
        else:
            logger.info("Found %d commit(s) reachable from HEAD in %s", len(metas), parsed.url)

        def records() -> Iterator[CommitRecord]:
            return self._iter_records(repo_dir, parsed.url, metas)

        return HistoryWalk(
            parsed.url,
            [m.hash for m in metas],
            records,
            oldest_first=oldest_first,
            cleanup=cleanup,
        )

    def resolve(self, location: RepositoryLocation) -> str:
        """Return a local working directory for ``location``, cloning remotes."""
        if location.is_remote:
            return self.clone(location)
        return self._require_repo(location.url, location.original)

    def clone(self, location: RepositoryLocation) -> str:
        """Clone a remote into a fresh ``<clone_root>/<name>-XXXXXXXX`` directory.

        Every call gets its own directory, so concurrent walks of same-named
        repositories never share a working tree. Walks remove their clone
        when closed. Embedded credentials travel as a one-off HTTP header and
        never reach the clone's config or the logs.
        """
        self.clone_root.mkdir(parents=True, exist_ok=True)
        target = Path(tempfile.mkdtemp(prefix=f"{location.name}-", dir=self.clone_root))
        cmd = self.clone_command(location, target)

        logger.info("Cloning %s into %s", location.url, target)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env(),
            )
        except subprocess.TimeoutExpired:
            self._discard_clone(str(target))
            raise RepoOpenError(
                location.url, f"clone timed out after {self.timeout}s", transient=True
            )
        except FileNotFoundError:
            self._discard_clone(str(target))
            raise RepoOpenError(location.url, "git executable not found")

        elapsed = time.monotonic() - start
        if result.returncode != 0:
            self._discard_clone(str(target))
            logger.warning("Clone of %s failed after %.1fs", location.url, elapsed)
            raise RepoOpenError(location.url, _scrub(result.stderr, location), transient=True)

        logger.info("Cloned %s in %.1fs", location.url, elapsed)
        return str(target)

    @staticmethod
    def clone_command(location: RepositoryLocation, target: Path) -> list[str]:
        cmd = ["git"]
        if location.credentials is not None:
            cmd += ["-c", f"http.extraHeader={location.credentials.basic_auth_header()}"]
        return cmd + ["clone", "--quiet", location.url, str(target)]

    def _discard_clone(self, repo_dir: str) -> None:
        shutil.rmtree(repo_dir, ignore_errors=True)
        logger.debug("Removed clone %s", repo_dir)

    # ── git plumbing ──────────────────────────────────────────────

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def _run(self, repo_dir: str, args: list[str], timeout: Optional[int] = None) -> bytes:
        result = subprocess.run(
            ["git", "-C", repo_dir, *args],
            capture_output=True,
            timeout=timeout or self.timeout,
            env=self._env(),
        )
        if result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, args, result.stdout, result.stderr
            )
        return result.stdout

    def _require_repo(self, path: str, original: str) -> str:
        try:
            self._run(path, ["rev-parse", "--git-dir"], timeout=30)
        except FileNotFoundError:
            raise RepoOpenError(original, "git executable not found")
        except subprocess.CalledProcessError:
            raise RepoOpenError(original, "not a git repository")
        except subprocess.TimeoutExpired:
            raise RepoOpenError(original, "git did not respond", transient=True)
        return path

    def _has_head(self, repo_dir: str) -> bool:
        try:
            self._run(repo_dir, ["rev-parse", "--verify", "--quiet", "HEAD^{commit}"], timeout=30)
            return True
        except subprocess.CalledProcessError:
            return False

    def _commit_exists(self, repo_dir: str, sha: str) -> bool:
        try:
            self._run(repo_dir, ["cat-file", "-e", f"{sha}^{{commit}}"], timeout=30)
            return True
        except subprocess.CalledProcessError:
            return False

    def _read_log(
        self, repo_dir: str, url: str, rev_range: list[str], oldest_first: bool
    ) -> list[_CommitMeta]:
        args = ["log", "--topo-order", "-z", f"--format={_LOG_FORMAT}"]
        if oldest_first:
            args.append("--reverse")
        args += [*rev_range, "--"]
        try:
            raw = self._run(repo_dir, args)
        except subprocess.CalledProcessError as e:
            raise HistoryWalkError(url, _decode(e.stderr).strip() or "git log failed")
        except subprocess.TimeoutExpired:
            raise HistoryWalkError(url, f"git log timed out after {self.timeout}s")
        return _parse_log(_decode(raw))

    def _iter_records(
        self, repo_dir: str, url: str, metas: list[_CommitMeta]
    ) -> Iterator[CommitRecord]:
        with _BlobReader(repo_dir, self._env()) as blobs:
            for meta in metas:
                try:
                    raw_deltas = self._diff_tree(repo_dir, meta)
                    changes = [self._measure(d, blobs) for d in raw_deltas]
                except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
                    raise HistoryWalkError(url, f"diff failed: {e}", commit=meta.hash)
                except (OSError, KeyError, ValueError) as e:
                    raise HistoryWalkError(url, f"blob read failed: {e}", commit=meta.hash)

                if not changes:
                    logger.debug(
                        "Commit %s has no file changes (merge or empty commit)", meta.hash[:7]
                    )
                yield CommitRecord(
                    hash=meta.hash,
                    author=meta.author,
                    timestamp=meta.timestamp,
                    message=meta.message,
                    parents=list(meta.parents),
                    changes=changes,
                )

    def _diff_tree(self, repo_dir: str, meta: _CommitMeta) -> list[_RawDelta]:
        args = ["diff-tree", "-r", "--raw", "-z", "--no-renames", "--no-commit-id"]
        if meta.parents:
            args += [meta.parents[0], meta.hash]
        else:
            args += ["--root", meta.hash]
        return _parse_raw_diff(_decode_paths(self._run(repo_dir, args), meta.hash))

    def _measure(self, delta: _RawDelta, blobs: _BlobReader) -> FileDelta:
        if delta.status == "A":
            added, deleted = linecount.added_delta(blobs.read(delta.new_sha))
        elif delta.status == "D":
            added, deleted = linecount.deleted_delta(blobs.read(delta.old_sha))
        else:
            old_lines = linecount.count_lines(blobs.read(delta.old_sha))
            new_lines = linecount.count_lines(blobs.read(delta.new_sha))
            added, deleted = linecount.modified_delta(old_lines, new_lines)
        return FileDelta(path=delta.path, lines_added=added, lines_deleted=deleted)


# ── parsing helpers ───────────────────────────────────────────────────


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _decode_paths(data: bytes, commit: str) -> str:
    """Decode ``diff-tree`` output; non-UTF-8 path bytes become ``\\xNN`` escapes.

    Escaping keeps distinct byte paths distinct, unlike U+FFFD replacement.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Commit %s touches non-UTF-8 paths; storing them escaped", commit[:7])
        return data.decode("utf-8", errors="backslashreplace")


def _scrub(text: str, location: RepositoryLocation) -> str:
    """git's error output with the credential-bearing URL and secrets masked."""
    message = (text or "").strip() or "git clone failed"
    credentials = location.credentials
    if credentials is None:
        return message
    token = credentials.basic_auth_header().split()[-1]
    # the full original URL first, so the username goes with it
    for secret in (location.original, credentials.password, token):
        if secret:
            message = message.replace(secret, "***")
    return message


def _parse_log(raw: str) -> list[_CommitMeta]:
    metas: list[_CommitMeta] = []
    for entry in raw.split("\x00"):
        entry = entry.lstrip("\n")
        if not entry:
            continue
        fields = entry.split("\x1f", 4)
        if len(fields) < 5:
            logger.warning("Skipping unparseable log entry: %r", entry[:80])
            continue
        sha, parents, author, timestamp, message = fields
        metas.append(
            _CommitMeta(
                hash=sha.strip(),
                parents=parents.split(),
                author=author,
                timestamp=timestamp.strip(),
                message=message.rstrip("\n"),
            )
        )
    return metas


def _parse_raw_diff(raw: str) -> list[_RawDelta]:
    """Parse ``diff-tree --raw -z`` output, skipping submodule entries."""
    deltas: list[_RawDelta] = []
    tokens = raw.split("\x00")
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if not token.startswith(":"):
            i += 1
            continue
        fields = token[1:].split()
        if len(fields) < 5 or i + 1 >= len(tokens):
            raise ValueError(f"malformed diff-tree entry: {token!r}")
        old_mode, new_mode, old_sha, new_sha, status = fields[:5]
        path = tokens[i + 1]
        i += 2

        if _GITLINK_MODE in (old_mode, new_mode):
            continue
        status = status[0]
        if status == "A" or old_sha == _NULL_SHA:
            status = "A"
        elif status == "D" or new_sha == _NULL_SHA:
            status = "D"
        deltas.append(_RawDelta(status, old_mode, new_mode, old_sha, new_sha, path))
    return deltas

