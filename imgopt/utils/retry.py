from __future__ import annotations

from typing import Optional

from ..errors import error_code, error_message

RETRYABLE_CODES = frozenset({"ENOENT", "EBUSY", "ETIMEDOUT", "ECONNRESET", "ENOTFOUND"})
# Substring Git LFS puts in its fetch failures.
LFS_MARKER = "LFS"


def compute_backoff(attempt: int, base: float = 1.0, exponential: bool = True) -> float:
    """Delay before retrying after failed ``attempt`` (1-based)."""
    if not exponential:
        return base
    return base * 2 ** (attempt - 1)


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` for failures that are likely transient."""
    code: Optional[str] = error_code(exc)
    if code in RETRYABLE_CODES:
        return True
    return LFS_MARKER in error_message(exc)

