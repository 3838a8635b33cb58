"""Output file planning for an input image."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping

from .config import ImgoptConfig
from .contracts import OutputTarget

SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
FULL_SIZE = 2000


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def discover_images(input_dir: str | Path, recursive: bool = False) -> List[Path]:
    """Return supported images under ``input_dir`` in a stable order."""
    root = Path(input_dir)
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(p for p in candidates if p.is_file() and is_supported(p))


def _relative_parent(input_path: Path, input_root: Path) -> Path:
    try:
        return input_path.parent.relative_to(input_root)
    except ValueError:
        return Path()


def plan_outputs(
    input_path: str | Path,
    input_root: str | Path,
    config: ImgoptConfig,
    quality: Mapping[str, int],
) -> List[OutputTarget]:
    """Return the outputs to produce for ``input_path``.

    The directory layout below ``input_root`` is mirrored under the output
    directory.
    """
    input_path = Path(input_path)
    out_dir = Path(config.output_dir) / _relative_parent(input_path, Path(input_root))
    name = input_path.stem
    ext = input_path.suffix.lower()
    formats = set(config.formats)
    thumb = OutputTarget(
        path=str(out_dir / f"{name}-thumb.webp"),
        format="webp",
        quality=quality.get("webp"),
        max_size=config.thumbnail_width,
    )

    if ext == ".gif":
        return [OutputTarget(path=str(out_dir / input_path.name), format="copy", max_size=None)]

    if ext == ".webp":
        targets: List[OutputTarget] = []
        if formats & {"webp", "original"}:
            targets.append(
                OutputTarget(
                    path=str(out_dir / input_path.name),
                    format="webp",
                    quality=quality.get("webp"),
                    max_size=FULL_SIZE,
                )
            )
        if config.generate_thumbnails:
            targets.append(thumb)
        return targets

    targets = []
    if "webp" in formats:
        targets.append(
            OutputTarget(
                path=str(out_dir / f"{name}.webp"),
                format="webp",
                quality=quality.get("webp"),
                max_size=FULL_SIZE,
            )
        )
    if "avif" in formats:
        targets.append(
            OutputTarget(
                path=str(out_dir / f"{name}.avif"),
                format="avif",
                quality=quality.get("avif"),
                max_size=FULL_SIZE,
            )
        )
    is_jpeg = ext in (".jpg", ".jpeg")
    if "original" in formats or ("png" in formats and ext == ".png") or (
        "jpeg" in formats and is_jpeg
    ):
        if is_jpeg:
            out_ext = ".jpg" if "jpeg" in formats else ext
            targets.append(
                OutputTarget(
                    path=str(out_dir / f"{name}{out_ext}"),
                    format="jpeg",
                    quality=quality.get("jpeg"),
                    max_size=FULL_SIZE,
                )
            )
        else:
            targets.append(
                OutputTarget(
                    path=str(out_dir / f"{name}.png"), format="png", max_size=FULL_SIZE
                )
            )
    if config.generate_thumbnails:
        targets.append(thumb)
    return targets
