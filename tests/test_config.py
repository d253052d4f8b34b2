"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlsense import config as config_module
from sqlsense.completion.debounce import AdaptiveDelay
from sqlsense.config import (
    AppConfig,
    CompletionSettings,
    ConnectionProfileConfig,
    DebounceSettings,
    load_config,
    save_config,
)


def test_defaults_match_engine_constants() -> None:
    config = AppConfig()

    assert config.completion.max_results == 25
    assert config.completion.cache_ttl == 60.0
    assert config.completion.cache_capacity == 200
    assert config.completion.cache_min_token == 2
    assert config.completion.dialect == "postgres"
    assert config.profiles[0].name == "Local"


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == AppConfig()


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
active_profile = "Offline"
state_dir = "/tmp/sqlsense-state"

[completion]
dialect = "mysql"
max_results = 10
snippets_enabled = false

[completion.debounce]
long = 0.3

[[profiles]]
name = "Offline"

[profiles.metadata]
"public.users" = ["id", "email"]

[[profiles]]
name = "Local"
host = "localhost"
port = 5433
database = "postgres"
user = "postgres"
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.active_profile == "Offline"
    assert result.state_dir == Path("/tmp/sqlsense-state")
    assert result.completion.dialect == "mysql"
    assert result.completion.max_results == 10
    assert result.completion.snippets_enabled is False
    assert result.completion.debounce.long == 0.3
    assert result.completion.debounce.short == 0.08
    assert [profile.name for profile in result.profiles] == ["Offline", "Local"]
    assert list(result.profiles[0].metadata["public.users"]) == ["id", "email"]
    assert result.profiles[1].port == 5433


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("active_profile = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result == AppConfig()


def test_load_config_ignores_invalid_completion_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[completion]\nmax_results = 0\ndialect = "oracle"\n')
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.completion == CompletionSettings()


def test_save_config_persists_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    save_config(
        AppConfig(
            completion=CompletionSettings(dialect="mysql", max_results=12),
            profiles=[
                ConnectionProfileConfig(
                    name="Local Demo",
                    host="localhost",
                    database="postgres",
                    user="postgres",
                    metadata={"public.users": ("id", "email")},
                )
            ],
            active_profile="Local Demo",
        )
    )

    content = config_path.read_text()
    assert 'active_profile = "Local Demo"' in content
    assert "[completion]" in content
    assert 'dialect = "mysql"' in content
    assert "max_results = 12" in content
    assert "[completion.debounce]" in content
    assert "[[profiles]]" in content
    assert 'name = "Local Demo"' in content
    assert '"public.users" = ["id", "email"]' in content


def test_save_then_load_round_trips(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "nested" / "config.toml")
    original = AppConfig(
        completion=CompletionSettings(cache_ttl=30.0, debounce=DebounceSettings(short=0.05)),
        active_profile="Local",
    )

    save_config(original)
    result = load_config()

    assert result.completion == original.completion
    assert result.active_profile == "Local"
    assert result.profiles[0].host == "localhost"


def test_with_active_profile_updates_field() -> None:
    config = AppConfig()

    updated = config.with_active_profile("Local Demo")

    assert updated.active_profile == "Local Demo"


def test_with_completion_updates_settings() -> None:
    config = AppConfig()

    updated = config.with_completion(max_results=5)

    assert updated.completion.max_results == 5
    assert config.completion.max_results == 25


def test_profile_lookup_prefers_active_then_first() -> None:
    profiles = [ConnectionProfileConfig(name="A"), ConnectionProfileConfig(name="B")]
    config = AppConfig(profiles=profiles, active_profile="B")

    assert config.profile().name == "B"
    assert config.profile("A").name == "A"
    assert config.profile("missing") is None
    assert AppConfig(profiles=profiles).profile().name == "A"


def test_debounce_settings_build_adaptive_delay() -> None:
    delay = DebounceSettings(short=0.01, medium=0.02, long=0.03).to_delay()

    assert isinstance(delay, AdaptiveDelay)
    assert delay.for_length(10) == 0.01
    assert delay.for_length(201) == 0.02
    assert delay.for_length(501) == 0.03
