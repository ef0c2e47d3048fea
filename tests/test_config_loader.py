"""配置加载测试"""
import json

import pytest

from fluxdigest.config_loader import (
    SchedulerSettings,
    load_miniflux_settings,
    load_scheduler_settings,
)

MINIFLUX_ENV = ("MINIFLUX_URL", "MINIFLUX_API_KEY", "MINIFLUX_USERNAME", "MINIFLUX_PASSWORD")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in MINIFLUX_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FLUXDIGEST_DATA_DIR", str(tmp_path))
    return tmp_path


class TestSchedulerSettings:
    """调度配置测试类"""

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_scheduler_settings(tmp_path / "missing.json") == SchedulerSettings()

    def test_reads_values(self, tmp_path):
        path = tmp_path / "digest_scheduler.json"
        path.write_text(
            json.dumps(
                {
                    "enabled": False,
                    "initial_delay_seconds": 30,
                    "check_offset_seconds": 2,
                    "max_concurrency": 5,
                    "timezone": "UTC",
                }
            ),
            encoding="utf-8",
        )

        assert load_scheduler_settings(path) == SchedulerSettings(
            enabled=False,
            initial_delay_seconds=30,
            check_offset_seconds=2,
            max_concurrency=5,
            timezone="UTC",
        )

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "digest_scheduler.json"
        path.write_text(
            json.dumps({"initial_delay_seconds": "soon", "max_concurrency": 0, "timezone": ""}),
            encoding="utf-8",
        )

        settings = load_scheduler_settings(path)
        assert settings.initial_delay_seconds == 10
        assert settings.max_concurrency == 3
        assert settings.timezone == "Asia/Shanghai"

    def test_broken_json(self, tmp_path):
        path = tmp_path / "digest_scheduler.json"
        path.write_text("{oops", encoding="utf-8")
        assert load_scheduler_settings(path) == SchedulerSettings()


class TestMinifluxSettings:
    """Miniflux 连接配置测试类"""

    def test_environment_wins(self, clean_env, monkeypatch):
        (clean_env / "miniflux-config.json").write_text(
            json.dumps({"url": "https://file.example.com", "apiKey": "file-key"}), encoding="utf-8"
        )
        monkeypatch.setenv("MINIFLUX_URL", "https://env.example.com")
        monkeypatch.setenv("MINIFLUX_API_KEY", "env-key")

        settings = load_miniflux_settings()
        assert settings.url == "https://env.example.com"
        assert settings.api_key == "env-key"

    def test_falls_back_to_config_file(self, clean_env):
        (clean_env / "miniflux-config.json").write_text(
            json.dumps({"url": "https://file.example.com", "username": "admin", "password": "pw"}),
            encoding="utf-8",
        )

        settings = load_miniflux_settings()
        assert settings.is_configured
        assert settings.url == "https://file.example.com"
        assert settings.username == "admin"

    def test_not_configured(self, clean_env):
        assert load_miniflux_settings().is_configured is False
