"""Git LFS pointer detection and retrieval."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .errors import ProcessingError

logger = logging.getLogger(__name__)

LFS_POINTER_PREFIX = b"version https://git-lfs.github.com/spec/v1"


def is_lfs_pointer(path: str | Path) -> bool:
    """Return ``True`` when ``path`` holds a Git LFS pointer instead of content."""
    try:
        with open(path, "rb") as f:
            head = f.read(len(LFS_POINTER_PREFIX))
    except OSError:
        return False
    return head == LFS_POINTER_PREFIX


def pull_lfs_file(path: str | Path, git: str = "git") -> None:
    """Fetch the content behind a pointer file with ``git lfs pull``.

    Raises:
        ProcessingError: the pull failed or left the pointer in place. The
            message mentions LFS so the failure is retried.
    """
    logger.info(f"Pulling LFS file: {path}")
    try:
        subprocess.run(
            [git, "lfs", "pull", f"--include={path}"],
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise ProcessingError(f"Git LFS unavailable: {exc}", code="ELFSMISSING") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        raise ProcessingError(f"Git LFS pull failed for {path}: {detail}") from exc

    if is_lfs_pointer(path):
        raise ProcessingError(f"Git LFS pull left a pointer file at {path}")
