"""Tests for environment-backed configuration helpers."""

from __future__ import annotations

import os

import pytest

from callsense import config


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch, tmp_path):
    """Ensure each test starts with a clean configuration environment."""

    env_path = tmp_path / ".env"
    monkeypatch.setattr(config, "_ENV_PATH", env_path)
    monkeypatch.setattr(config, "_settings", None)

    for key in list(os.environ):
        if key.startswith("CALLSENSE_"):
            monkeypatch.delenv(key, raising=False)

    yield

    for key in list(os.environ):
        if key.startswith("CALLSENSE_"):
            os.environ.pop(key, None)


def test_list_environment_settings_reflects_defaults():
    entries = {entry.env_name: entry for entry in config.list_environment_settings()}

    assert "CALLSENSE_SAMPLE_RATE" in entries
    assert "CALLSENSE_TARGET_SEGMENT_BYTES" in entries
    assert "CALLSENSE_RETRY_ATTEMPTS" in entries
    assert entries["CALLSENSE_GEMINI_API_KEY"].is_secret
    assert entries["CALLSENSE_SAMPLE_RATE"].default == 16_000


def test_default_segment_budget_fits_transport_limit():
    settings = config.Settings()

    # base64 grows the payload by 4/3; the encoded segment must stay under 10 MiB
    assert settings.target_segment_bytes * 4 / 3 <= 10 * 1024 * 1024
    assert settings.max_segment_bytes >= settings.target_segment_bytes


def test_update_environment_setting_persists_and_reloads():
    updated = config.update_environment_setting("retry_attempts", "5")

    assert updated.retry_attempts == 5
    assert config.get_settings().retry_attempts == 5
    assert os.environ["CALLSENSE_RETRY_ATTEMPTS"] == "5"

    env_contents = config._ENV_PATH.read_text().strip().splitlines()  # type: ignore[attr-defined]
    assert "CALLSENSE_RETRY_ATTEMPTS=5" in env_contents


def test_update_environment_setting_rejects_invalid_value():
    with pytest.raises(config.EnvironmentSettingError):
        config.update_environment_setting("sample_rate", "not-a-number")

    assert "CALLSENSE_SAMPLE_RATE" not in os.environ
    assert config.get_settings().sample_rate == 16_000


def test_update_environment_setting_rejects_unknown_field():
    with pytest.raises(config.EnvironmentSettingError):
        config.update_environment_setting("no_such_setting", "1")


def test_clear_environment_setting_removes_override():
    config.update_environment_setting("sample_rate", "24000")
    cleared = config.clear_environment_setting("sample_rate")

    assert cleared.sample_rate == config.Settings().sample_rate
    assert "CALLSENSE_SAMPLE_RATE" not in os.environ
    assert not config._ENV_PATH.exists()  # type: ignore[attr-defined]


def test_segment_budget_above_transport_limit_is_rejected():
    with pytest.raises(config.EnvironmentSettingError):
        config.update_environment_setting("max_segment_bytes", str(9 * 1024 * 1024))

    assert "CALLSENSE_MAX_SEGMENT_BYTES" not in os.environ


def test_secret_values_are_masked_for_display():
    config.update_environment_setting("chat_api_key", "sk-live")
    entries = {entry.field: entry for entry in config.list_environment_settings()}

    assert entries["chat_api_key"].display_value == "****"
    assert entries["sample_rate"].display_value == 16_000
    assert entries["base_dir"].default == config.Settings().base_dir


def test_log_level_is_case_insensitive_and_validated():
    assert config.Settings().log_level == "INFO"
    assert config.update_environment_setting("log_level", "debug").log_level == "DEBUG"

    with pytest.raises(config.EnvironmentSettingError):
        config.update_environment_setting("log_level", "chatty")

    assert config.get_settings().log_level == "DEBUG"
