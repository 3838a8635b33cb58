"""Timestamp-based change detection."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Union

PathLike = Union[str, Path]


def _mtime(path: PathLike) -> Optional[float]:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


def should_process(
    input_path: PathLike,
    output_paths: Iterable[PathLike],
    force: bool = False,
    tolerance: float = 0.0,
) -> bool:
    """Return ``True`` when ``input_path`` needs (re)processing.

    An output is stale when it is missing or when its modification time is
    before ``input_mtime + tolerance``. With the default tolerance of zero an
    output of exactly the same age counts as up to date.
    """
    if force:
        return True

    input_mtime = _mtime(input_path)
    if input_mtime is None:
        return False

    for output_path in output_paths:
        output_mtime = _mtime(output_path)
        if output_mtime is None or output_mtime < input_mtime + tolerance:
            return True
    return False
