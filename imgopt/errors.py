"""Exception types raised by imgopt."""

from __future__ import annotations

import errno
import socket
from typing import Optional


class ImgoptError(Exception):
    """Base class for imgopt errors."""


class ProcessingError(ImgoptError):
    """A single file could not be processed.

    ``code`` is an optional machine-readable tag (``EBUSY``, ``EVALIDATION``
    ...) used to classify the failure for retries.
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class CheckpointError(ImgoptError):
    """The run-state document could not be written or removed."""


class ConfigError(ImgoptError):
    """Configuration failed validation."""


def error_code(exc: BaseException) -> Optional[str]:
    """Return the machine-readable code carried by ``exc`` if there is one."""
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    if isinstance(exc, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(exc, OSError) and exc.errno is not None:
        return errno.errorcode.get(exc.errno)
    if isinstance(exc, TimeoutError):
        return "ETIMEDOUT"
    return None


def error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
