from __future__ import annotations

from pathlib import Path

import pytest

from reading_insights.config import load_preferences, load_settings


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch) -> None:
    for name in ("READING_INSIGHTS_API_URL", "READING_INSIGHTS_SNAPSHOT_DIR", "READING_INSIGHTS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults(tmp_path: Path, monkeypatch) -> None:
    cfg = tmp_path / ".reading-insights.yaml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    settings = load_settings(cfg)
    assert settings.api_base_url == "http://localhost:8686"
    assert settings.snapshot_dir == (tmp_path / "data/snapshots").resolve()
    assert settings.concurrency == 4
    assert settings.preferences.stats_trend_days == 90
    assert settings.preferences.trend_precedence == "widest"


def test_load_settings_obeys_env(monkeypatch, tmp_path: Path) -> None:
    cfg = tmp_path / "custom.yaml"
    cfg.write_text(
        """
api:
  base_url: http://kobo.local:8686/
  concurrency: 2
snapshots:
  dir: ./snaps
preferences:
  books_sort_key: title
  books_sort_dir: ASC
  stats_trend_days: 365
  trend_precedence: narrowest
        """,
        encoding="utf-8",
    )
    monkeypatch.setenv("READING_INSIGHTS_LOG_LEVEL", "debug")
    settings = load_settings(cfg)
    assert settings.api_base_url == "http://kobo.local:8686"
    assert settings.snapshot_dir == (cfg.parent / "snaps").resolve()
    assert settings.concurrency == 2
    assert settings.log_level == "DEBUG"
    assert settings.preferences.books_sort_key == "title"
    assert settings.preferences.books_sort_dir == "asc"
    assert settings.preferences.stats_trend_days == 365
    assert settings.preferences.trend_precedence == "narrowest"

    monkeypatch.setenv("READING_INSIGHTS_API_URL", "http://other:1")
    monkeypatch.setenv("READING_INSIGHTS_SNAPSHOT_DIR", str(tmp_path / "elsewhere"))
    settings = load_settings(cfg)
    assert settings.api_base_url == "http://other:1"
    assert settings.snapshot_dir == (tmp_path / "elsewhere").resolve()


def test_invalid_preferences_fall_back_to_defaults() -> None:
    prefs = load_preferences(
        {"books_filter": "everything", "stats_trend_days": "weekly", "highlights_sort": "count", "cover_version": -3}
    )
    assert prefs.books_filter == "all"
    assert prefs.stats_trend_days == 90
    assert prefs.highlights_sort == "count"
    assert prefs.cover_version == 0


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(cfg)
