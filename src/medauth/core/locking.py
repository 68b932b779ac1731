"""Cross-process file locking for the file-backed ledger and marker log.

Both files are shared by every CLI invocation, so an in-process lock is not
enough: each read-modify-write runs under an exclusive POSIX ``flock`` held
on a ``.lock`` sidecar next to the data file. The sidecar keeps the lock
independent of the data file, which may be replaced with ``os.replace``.
"""

from __future__ import annotations

import fcntl
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from medauth.exceptions import UnavailableError

LOCK_SUFFIX = ".lock"


def lock_path_for(path: Path) -> Path:
    """Return the sidecar lock file guarding ``path``."""
    return path.with_suffix(path.suffix + LOCK_SUFFIX)


@contextmanager
def locked_file(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``path``'s sidecar for the context.

    The lock is not reentrant: nesting it for the same path inside one
    process blocks forever.

    Raises:
        UnavailableError: The sidecar cannot be created or locked.
    """
    lock_path = lock_path_for(path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("a+", encoding="utf-8")
    except OSError as exc:
        raise UnavailableError(f"Cannot open lock file {lock_path}: {exc}") from exc
    with handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except OSError as exc:
            raise UnavailableError(f"Cannot lock {lock_path}: {exc}") from exc
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
