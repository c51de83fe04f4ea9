"""Exclusive run lock backed by a marker file."""

import os
from pathlib import Path
from typing import Optional

from ..errors import ConfigError, RunLockedError
from ..infra.logger import log_info, log_warning


class RunLock:
    """Marker-file lock for one orchestration run.

    The marker is created with ``O_CREAT | O_EXCL`` so check-and-create is a
    single atomic step. Its content is the owner's pid, informational only.
    ``release`` is idempotent and only removes a marker this instance created.
    """

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def read_owner(self) -> str:
        try:
            return self.lock_path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def acquire(self) -> "RunLock":
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"cannot create run lock directory {self.lock_path.parent}: {exc}") from exc
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise RunLockedError(self.lock_path, self.read_owner()) from None
        except OSError as exc:
            raise ConfigError(f"cannot create run lock {self.lock_path}: {exc}") from exc

        self._held = True
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        log_info(f"run lock acquired: {self.lock_path}")
        return self

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            log_warning(f"run lock already removed: {self.lock_path}")
            return
        log_info(f"run lock released: {self.lock_path}")

    def __enter__(self) -> "RunLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def lock_owner(lock_path: Path) -> Optional[str]:
    """Pid recorded in an existing marker, ``None`` when unlocked."""
    path = Path(lock_path)
    if not path.exists():
        return None
    return RunLock(path).read_owner()
