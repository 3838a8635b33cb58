"""Tests for the Pillow codec."""

import pytest
from PIL import Image

from imgopt.codec import PillowCodec
from imgopt.contracts import OutputTarget
from imgopt.errors import ProcessingError


@pytest.fixture
def png(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGBA", (640, 480), (200, 30, 30, 255)).save(path)
    return path


def test_read_metadata(png, tmp_path):
    codec = PillowCodec()
    meta = codec.read_metadata(png)
    assert (meta.width, meta.height, meta.format) == (640, 480, "PNG")

    bogus = tmp_path / "bogus.png"
    bogus.write_text("not an image")
    assert codec.read_metadata(bogus) is None


def test_encode_writes_all_targets(png, tmp_path):
    out = tmp_path / "out"
    targets = [
        OutputTarget(path=str(out / "photo.webp"), format="webp", quality=80),
        OutputTarget(path=str(out / "photo.png"), format="png"),
        OutputTarget(path=str(out / "photo.jpg"), format="jpeg", quality=75),
        OutputTarget(path=str(out / "photo-thumb.webp"), format="webp", quality=80, max_size=200),
    ]

    written = PillowCodec().encode(png, targets)

    assert written == [t.path for t in targets]
    with Image.open(out / "photo.webp") as img:
        assert img.size == (640, 480)
    with Image.open(out / "photo-thumb.webp") as img:
        assert img.size == (200, 150)
    with Image.open(out / "photo.jpg") as img:
        assert img.format == "JPEG"


def test_gif_copy(tmp_path):
    gif = tmp_path / "anim.gif"
    Image.new("P", (10, 10)).save(gif)
    target = OutputTarget(path=str(tmp_path / "out" / "anim.gif"), format="copy", max_size=None)

    PillowCodec().encode(gif, [target])

    assert (tmp_path / "out" / "anim.gif").read_bytes() == gif.read_bytes()


def test_corrupt_input_is_not_retryable(tmp_path):
    bogus = tmp_path / "bogus.png"
    bogus.write_text("not an image")
    target = OutputTarget(path=str(tmp_path / "out" / "bogus.webp"), format="webp", quality=80)

    with pytest.raises(ProcessingError) as excinfo:
        PillowCodec().encode(bogus, [target])
    assert excinfo.value.code == "EINVALIDFORMAT"


def test_validation_rejects_broken_output(tmp_path):
    broken = tmp_path / "broken.webp"
    broken.write_text("not an image")
    with pytest.raises(ProcessingError) as excinfo:
        PillowCodec().validate([str(broken)])
    assert excinfo.value.code == "EVALIDATION"
