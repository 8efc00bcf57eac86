"""Write generated modules to disk.

:func:`write_module` is the only place generated text touches the
filesystem. It refuses to touch existing files unless told to overwrite
them, skips overwrites whose content is already on disk, and serializes
concurrent writes to the same path so the existence check and the write
cannot interleave.
"""

from __future__ import annotations

import enum
import logging
import threading
from pathlib import Path
from typing import Union

from clientgen.config import atomic_write
from clientgen.exceptions import WriteConflictError

logger = logging.getLogger(__name__)


class WriteStatus(str, enum.Enum):
    """Outcome of one :func:`write_module` call."""

    WRITTEN = "written"
    UNCHANGED = "unchanged"


_locks_guard = threading.Lock()
_path_locks: dict[Path, threading.Lock] = {}


def _lock_for(path: Path) -> threading.Lock:
    with _locks_guard:
        lock = _path_locks.get(path)
        if lock is None:
            lock = _path_locks[path] = threading.Lock()
        return lock


def write_module(path: Union[str, Path], text: str, overwrite: bool = False) -> WriteStatus:
    """Write *text* to *path* atomically.

    Args:
        path: Destination file. Parent directories are created.
        text: Complete module text.
        overwrite: Replace an existing file. Without it, any existing file,
            even one that already holds *text*, is a conflict.

    Returns:
        :attr:`WriteStatus.UNCHANGED` if *overwrite* is set and the file
        already holds *text* (nothing is written), else
        :attr:`WriteStatus.WRITTEN`.

    Raises:
        WriteConflictError: If *path* exists and *overwrite* is not set.
    """
    target = Path(path).absolute()
    with _lock_for(target):
        if target.exists():
            if not overwrite:
                raise WriteConflictError(path)
            if target.read_text(encoding="utf-8") == text:
                logger.debug("Unchanged: %s", target)
                return WriteStatus.UNCHANGED
        atomic_write(target, text)
    logger.info("Wrote %s (%d bytes)", target, len(text.encode("utf-8")))
    return WriteStatus.WRITTEN
