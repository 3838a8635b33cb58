"""Tests for configuration loading."""

import pytest

from imgopt.config import load_config
from imgopt.errors import ConfigError


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("IMGOPT_CONFIG", raising=False)
    config = load_config(project_root=tmp_path)
    assert config.formats == ["webp", "avif", "original"]
    assert config.quality == {"webp": 80, "avif": 80, "jpeg": 80}
    assert config.checkpoint_interval == 10
    assert config.error_recovery.max_retries == 3
    assert config.error_recovery.retry_delay == 1000
    assert config.error_recovery.exponential_backoff is True
    assert config.error_recovery.continue_on_error is False


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "imgopt.yaml"
    config_path.write_text(
        """
output_dir: public/img
formats: [webp]
quality:
  webp: 90
quality_rules:
  - pattern: "*-hero.*"
    quality:
      webp: 95
  - directory: gallery/
    minWidth: 1200
    quality:
      avif: 60
error_recovery:
  max_retries: 5
  continue_on_error: true
"""
    )
    monkeypatch.setenv("IMGOPT_CONFIG", str(config_path))

    config = load_config()
    assert config.output_dir == "public/img"
    assert config.quality == {"webp": 90}
    assert len(config.quality_rules) == 2
    assert config.quality_rules[1].min_width == 1200
    assert config.error_recovery.max_retries == 5
    assert config.error_recovery.continue_on_error is True


def test_imagerc_json_is_found(tmp_path, monkeypatch):
    monkeypatch.delenv("IMGOPT_CONFIG", raising=False)
    (tmp_path / ".imagerc").write_text('{"formats": ["avif"], "thumbnail_width": 300}')
    config = load_config(project_root=tmp_path)
    assert config.formats == ["avif"]
    assert config.thumbnail_width == 300


def test_overrides_take_precedence(tmp_path):
    config_path = tmp_path / "imgopt.yaml"
    config_path.write_text("quality:\n  webp: 70\nerror_recovery:\n  max_retries: 5\n")

    config = load_config(
        str(config_path),
        overrides={
            "quality": {"avif": 50},
            "error_recovery": {"retry_delay": 200},
            "output_dir": None,
        },
    )

    assert config.quality == {"webp": 70, "avif": 50}
    assert config.error_recovery.max_retries == 5
    assert config.error_recovery.retry_delay == 200
    assert config.output_dir == "optimized"


@pytest.mark.parametrize(
    "content",
    [
        "formats: []",
        "formats: [gif]",
        "quality:\n  webp: 101",
        "thumbnail_width: 5",
        "output_dir: '  '",
        "- just\n- a list",
        "quality: [unclosed",
    ],
)
def test_invalid_config_raises(tmp_path, content):
    config_path = tmp_path / "imgopt.yaml"
    config_path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(str(config_path))


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yaml"))
