"""Image codec used to produce optimized outputs."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from .contracts import ImageMetadata, OutputTarget
from .errors import ProcessingError

logger = logging.getLogger(__name__)

PIL_FORMATS = {"webp": "WEBP", "avif": "AVIF", "jpeg": "JPEG", "png": "PNG"}


class ImageCodec(Protocol):
    """Decode, resize and re-encode one input into several outputs."""

    def read_metadata(self, path: str | Path) -> Optional[ImageMetadata]:
        """Return image dimensions, or ``None`` when unreadable."""

    def encode(self, path: str | Path, targets: Sequence[OutputTarget]) -> List[str]:
        """Write every target and return the written paths."""


class PillowCodec:
    """``ImageCodec`` backed by Pillow."""

    def __init__(self, preserve_metadata: bool = False) -> None:
        self.preserve_metadata = preserve_metadata

    def read_metadata(self, path: str | Path) -> Optional[ImageMetadata]:
        try:
            with Image.open(path) as img:
                return ImageMetadata(width=img.width, height=img.height, format=img.format)
        except Image.DecompressionBombError as exc:
            raise ProcessingError(
                f"Refusing oversized image {path}: {exc}", code="EINVALIDFORMAT"
            ) from exc
        except OSError as exc:
            logger.debug(f"No metadata for {path}: {exc}")
            return None

    def encode(self, path: str | Path, targets: Sequence[OutputTarget]) -> List[str]:
        written: List[str] = []
        for target in targets:
            Path(target.path).parent.mkdir(parents=True, exist_ok=True)
        copies = [t for t in targets if t.format == "copy"]
        for target in copies:
            shutil.copyfile(path, target.path)
            written.append(target.path)

        encoded = [t for t in targets if t.format != "copy"]
        if encoded:
            try:
                with Image.open(path) as source:
                    exif = source.info.get("exif") if self.preserve_metadata else None
                    image = ImageOps.exif_transpose(source)
                    for target in encoded:
                        self._save(image, target, exif)
                        written.append(target.path)
            except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
                raise ProcessingError(
                    f"Unsupported or corrupt image {path}: {exc}", code="EINVALIDFORMAT"
                ) from exc

        self.validate(written)
        return written

    def _save(self, image: Image.Image, target: OutputTarget, exif: Optional[bytes]) -> None:
        out = image.copy()
        if target.max_size:
            # thumbnail() never enlarges and keeps the aspect ratio.
            out.thumbnail((target.max_size, target.max_size))
        fmt = PIL_FORMATS[target.format]
        if fmt == "JPEG" and out.mode not in ("RGB", "L"):
            out = out.convert("RGB")
        params = {}
        if target.format == "png":
            params["compress_level"] = 9
        elif target.quality is not None:
            params["quality"] = target.quality
        if exif:
            params["exif"] = exif
        try:
            out.save(target.path, format=fmt, **params)
        except KeyError as exc:
            raise ProcessingError(
                f"Pillow cannot write {target.format}: {exc}", code="EUNSUPPORTED"
            ) from exc

    def validate(self, paths: Sequence[str]) -> None:
        """Re-open every output; corrupt files raise ``ProcessingError``."""
        for out_path in paths:
            try:
                with Image.open(out_path) as img:
                    img.verify()
            except (OSError, SyntaxError, ValueError) as exc:
                raise ProcessingError(
                    f"Validation failed for {out_path}: {exc}", code="EVALIDATION"
                ) from exc


def get_codec(preserve_metadata: bool = False) -> ImageCodec:
    return PillowCodec(preserve_metadata=preserve_metadata)
