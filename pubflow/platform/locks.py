"""Advisory lock file guarding a working copy.

Two pubflow invocations (or pubflow and a second tool honoring the same
file) must never mutate the same checkout at once. The lock is a file
created with O_CREAT|O_EXCL holding a small JSON record of its holder.

A lock is broken only when its holder is provably gone: the recorded pid
is dead. Age decides only when the record has no pid or the platform
cannot check one. Breaking renames the file aside first, so two waiters
never remove each other's fresh lock.

Usage:
    lock = FileLock(git_dir / "pubflow.lock")
    match lock.acquire("merge origin/main"):
        case Ok(_):
            try:
                ...
            finally:
                lock.release()
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

import json
import os
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

from pubflow.core.result import Err, Ok, Result
from pubflow.core.structured import as_str_dict, get_int, get_str

__all__ = ["FileLock", "LockError"]

DEFAULT_ACQUIRE_TIMEOUT_SECONDS = 2 * 60.0
DEFAULT_STALE_AFTER_SECONDS = 10 * 60.0
_POLL_SECONDS = 0.2


@dataclass(frozen=True, slots=True)
class LockError:
    path: Path
    message: str
    holder: str | None = None


class FileLock:
    """Exclusive, non-reentrant lock file.

    Re-entrancy is the caller's concern (see ``Repository.locked``).
    """

    def __init__(
        self,
        path: Path,
        *,
        timeout: float = DEFAULT_ACQUIRE_TIMEOUT_SECONDS,
        stale_after: float = DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        self.path = path
        self._timeout = timeout
        self._stale_after = stale_after
        self._token = uuid.uuid4().hex
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self, reason: str) -> Result[None, LockError]:
        if self._held:
            return Err(LockError(path=self.path, message="lock already held by this process"))

        deadline = time.monotonic() + self._timeout
        while True:
            if self._try_create(reason):
                self._held = True
                return Ok(None)

            raw = self._read_raw()
            holder = _parse_record(raw)
            if raw is not None and self._is_stale(holder):
                self._break(raw)
                continue

            if time.monotonic() >= deadline:
                return Err(
                    LockError(
                        path=self.path,
                        message=f"timed out after {self._timeout:.0f}s waiting for {self.path}",
                        holder=_describe(holder),
                    )
                )
            time.sleep(_POLL_SECONDS)

    def release(self) -> None:
        """Remove the lock file if it still carries this holder's token."""
        if not self._held:
            return
        self._held = False
        raw = self._read_raw()
        if raw is None:
            return
        if get_str(_parse_record(raw), "token") != self._token:
            return
        self.path.unlink(missing_ok=True)

    def _try_create(self, reason: str) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        record = {
            "pid": os.getpid(),
            "token": self._token,
            "reason": reason,
            "created": int(time.time()),
        }
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(record, handle)
        return True

    def _read_raw(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _is_stale(self, holder: dict[str, object]) -> bool:
        pid = get_int(holder, "pid")
        if pid is not None:
            alive = _pid_alive(pid)
            if alive is not None:
                return not alive

        created = get_int(holder, "created")
        if created is None:
            try:
                created = int(self.path.stat().st_mtime)
            except FileNotFoundError:
                return False
        return time.time() - created > self._stale_after

    def _break(self, observed: str) -> None:
        """Remove the lock only if it is still the record judged stale."""
        aside = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.stale")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return
        try:
            current = aside.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        if current != observed:
            # A new holder took the lock in between: put its file back.
            with suppress(FileExistsError):
                os.link(aside, self.path)
        aside.unlink(missing_ok=True)


def _parse_record(raw: str | None) -> dict[str, object]:
    if not raw:
        # Missing, or half-written by a holder between open and write.
        return {}
    try:
        parsed: object = json.loads(raw)
    except ValueError:
        return {}
    return as_str_dict(parsed) or {}


def _pid_alive(pid: int) -> bool | None:
    """Whether ``pid`` runs; ``None`` when this platform cannot tell."""
    if os.name != "posix":
        # os.kill on Windows delivers a real signal to the target.
        return None
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _describe(holder: dict[str, object]) -> str | None:
    if not holder:
        return None
    pid = get_int(holder, "pid")
    reason = get_str(holder, "reason") or "unknown"
    return f"pid {pid} ({reason})"
