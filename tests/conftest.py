import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from imgopt.config import ErrorRecoveryConfig, ImgoptConfig
from imgopt.contracts import ImageMetadata, OutputTarget
from imgopt.persistence import InMemoryCheckpointStore


class FakeCodec:
    """Codec double that writes placeholder outputs.

    ``failures`` maps a file name to exceptions raised on successive encode
    calls; once the list is exhausted the encode succeeds.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, List[Exception]]] = None,
        metadata: Optional[Dict[str, ImageMetadata]] = None,
    ) -> None:
        self.failures = failures or {}
        self.metadata = metadata or {}
        self.calls: List[str] = []
        self.targets: Dict[str, List[OutputTarget]] = {}

    def read_metadata(self, path) -> Optional[ImageMetadata]:
        return self.metadata.get(Path(path).name)

    def encode(self, path, targets: Sequence[OutputTarget]) -> List[str]:
        self.calls.append(Path(path).name)
        self.targets[Path(path).name] = list(targets)
        pending = self.failures.get(Path(path).name)
        if pending:
            raise pending.pop(0)
        written = []
        for target in targets:
            Path(target.path).parent.mkdir(parents=True, exist_ok=True)
            Path(target.path).write_bytes(b"encoded")
            written.append(target.path)
        return written


class RecordingStore(InMemoryCheckpointStore):
    """In-memory store that keeps every saved document."""

    def __init__(self) -> None:
        super().__init__()
        self.history: List[dict] = []

    async def save(self, state) -> None:
        await super().save(state)
        self.history.append(self.document)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_images(directory: Path, count: int, prefix: str = "img", ext: str = ".png") -> List[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(count):
        path = directory / f"{prefix}{i:02d}{ext}"
        path.write_bytes(b"\x89PNG fake image data")
        # Inputs are older than anything written afterwards.
        os.utime(path, (1_000_000, 1_000_000))
        paths.append(path)
    return paths


@pytest.fixture
def workspace(tmp_path):
    input_dir = tmp_path / "original"
    input_dir.mkdir()
    return tmp_path


@pytest.fixture
def make_config(workspace):
    def _make(**overrides) -> ImgoptConfig:
        recovery = overrides.pop("error_recovery", {})
        data = {
            "input_dir": str(workspace / "original"),
            "output_dir": str(workspace / "optimized"),
            "formats": ["webp", "original"],
            "generate_thumbnails": False,
            "state_file": str(workspace / "state.json"),
            "error_log": str(workspace / "errors.log"),
            "error_recovery": ErrorRecoveryConfig(**{"retry_delay": 10, **recovery}),
        }
        data.update(overrides)
        return ImgoptConfig(**data)

    return _make


@pytest.fixture
def fake_codec():
    return FakeCodec()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def codec_factory():
    return FakeCodec


@pytest.fixture
def images():
    return make_images


@pytest.fixture
def recording_store():
    return RecordingStore()
