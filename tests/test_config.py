from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from clipsmith.config import load_settings


def test_load_settings_reads_yaml_sections(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("CLIPSMITH_CONFIG", raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "pipeline:\n  segment_seconds: 45\n  layout: crop\ntemplate:\n  segments_per_clip: 2\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path)

    assert settings.pipeline.segment_seconds == 45
    assert settings.pipeline.layout == "crop"
    assert settings.template.segments_per_clip == 2
    assert settings.effects.crf == (21, 24)


def test_environment_overrides_nested_values(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("{}\n", encoding="utf-8")
    monkeypatch.setenv("CLIPSMITH_PIPELINE__MAX_WORKERS", "4")
    monkeypatch.setenv("CLIPSMITH_PIPELINE__AUTO_SPLIT", "false")
    monkeypatch.setenv("CLIPSMITH_EFFECTS__ZOOM", "[1.0, 1.02]")
    monkeypatch.setenv("CLIPSMITH_CAPTIONS__LANGUAGE", "de")
    monkeypatch.setenv("CLIPSMITH_UNKNOWN__KEY", "ignored")

    settings = load_settings(config_path)

    assert settings.pipeline.max_workers == 4
    assert settings.pipeline.auto_split is False
    assert settings.effects.zoom == (1.0, 1.02)
    assert settings.captions.language == "de"


def test_missing_default_config_uses_built_in_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CLIPSMITH_CONFIG", raising=False)

    settings = load_settings()

    assert settings.pipeline.segment_seconds == 61
    assert settings.highlights.max_highlights == 5


def test_invalid_effect_range_in_yaml_is_rejected(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("effects:\n  saturation: [1.2, 1.0]\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_settings(config_path)
