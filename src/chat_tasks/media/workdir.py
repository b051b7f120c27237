"""Per-invocation scratch directories for media processing."""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "transcribe-"


class ScratchWorkdirManager:
    """Creates unique scratch directories under one root and always removes them."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir

    @contextmanager
    def session(self, label: str = "") -> Iterator[Path]:
        """Yield a fresh directory that is deleted on every exit path."""

        self.root_dir.mkdir(parents=True, exist_ok=True)
        prefix = f"{SCRATCH_PREFIX}{_safe_label(label)}-" if label else SCRATCH_PREFIX
        workdir = Path(tempfile.mkdtemp(prefix=prefix, dir=self.root_dir))
        try:
            yield workdir
        finally:
            remove_tree(workdir)

    def sweep_stale(self, *, older_than_seconds: int) -> list[Path]:
        """Delete scratch directories left behind by a crashed process."""

        if not self.root_dir.exists():
            return []
        cutoff = time.time() - older_than_seconds
        removed: list[Path] = []
        for entry in self.root_dir.iterdir():
            if not entry.is_dir() or not entry.name.startswith(SCRATCH_PREFIX):
                continue
            try:
                modified = entry.stat().st_mtime
            except FileNotFoundError:
                continue
            if modified >= cutoff:
                continue
            remove_tree(entry)
            removed.append(entry)
        if removed:
            logger.info("Swept %d stale scratch directories under %s", len(removed), self.root_dir)
        return removed


def remove_tree(path: Path) -> None:
    """Remove ``path`` recursively, logging instead of raising on failure."""

    shutil.rmtree(path, onexc=_log_removal_error)


def remove_file(path: Path) -> None:
    """Remove one file if present, logging instead of raising on failure."""

    try:
        path.unlink(missing_ok=True)
    except OSError as error:
        logger.warning("Failed to remove %s: %s", path, error)


def _log_removal_error(_: object, path: str, error: BaseException) -> None:
    if isinstance(error, FileNotFoundError):
        return
    logger.warning("Failed to remove %s: %s", path, error)


def _safe_label(label: str) -> str:
    return "".join(char if char.isalnum() else "_" for char in label)[:40]
