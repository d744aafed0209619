from pathlib import Path

import pytest

from rollcall.core.config import settings as cfg


def test_load_settings_reads_updated_file(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("analysis_interval_s: 10\nmatch_threshold: 0.5\n", encoding="utf-8")
    monkeypatch.setenv("RCV_CONFIG", str(conf_path))

    first = cfg.load_settings()
    assert first.analysis_interval_s == 10.0
    assert first.match_threshold == 0.5

    conf_path.write_text("analysis_interval_s: 15\nmatch_threshold: 0.3\n", encoding="utf-8")

    second = cfg.load_settings()
    assert second.analysis_interval_s == 15.0
    assert second.match_threshold == 0.3


def test_env_overrides_yaml(tmp_path: Path, monkeypatch):
    conf_path = tmp_path / "config.yml"
    conf_path.write_text("max_inactivity_s: 5\njpeg_quality: 60\n", encoding="utf-8")
    monkeypatch.setenv("RCV_CONFIG", str(conf_path))
    monkeypatch.setenv("RCV_MAX_INACTIVITY_S", "12.5")

    settings = cfg.load_settings()
    assert settings.max_inactivity_s == 12.5
    assert settings.jpeg_quality == 60


def test_missing_config_file_uses_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("RCV_CONFIG", str(tmp_path / "absent.yml"))
    settings = cfg.load_settings()
    assert settings.match_threshold == 0.4
    assert settings.max_inactivity_s == 20.0
    assert settings.attendance_cooldown_s == 300.0
    assert settings.rate_limit_pause_s == 61.0
    assert settings.analysis_interval_s == 30.0


def test_video_source_validation():
    with pytest.raises(ValueError):
        cfg.AppSettings(video_source="rtsp")
    assert cfg.AppSettings(video_source="file").video_source == "file"


def test_timing_validation():
    with pytest.raises(ValueError):
        cfg.AppSettings(analysis_interval_s=0)
    with pytest.raises(ValueError):
        cfg.AppSettings(request_timeout_s=-1)
    with pytest.raises(ValueError):
        cfg.AppSettings(rate_limit_pause_s=-1)
    with pytest.raises(ValueError):
        cfg.AppSettings(attendance_cooldown_s=-0.5)
    assert cfg.AppSettings(max_inactivity_s=0).max_inactivity_s == 0.0


def test_threshold_and_quality_validation():
    with pytest.raises(ValueError):
        cfg.AppSettings(match_threshold=1.0)
    with pytest.raises(ValueError):
        cfg.AppSettings(match_threshold=-0.1)
    with pytest.raises(ValueError):
        cfg.AppSettings(jpeg_quality=5)
    with pytest.raises(ValueError):
        cfg.AppSettings(camera_index=-1)


def test_settings_to_dict_roundtrip():
    s = cfg.AppSettings(match_threshold=0.45)
    d = cfg.settings_to_dict(s)
    assert d["match_threshold"] == 0.45
    assert cfg.AppSettings(**d) == s
