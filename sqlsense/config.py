"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Mapping, Sequence

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .completion.debounce import AdaptiveDelay

CONFIG_FILE = Path.home() / ".config" / "sqlsense" / "config.toml"
STATE_DIR = Path.home() / ".local" / "state" / "sqlsense"


class DebounceSettings(BaseModel):
    """Debounce delays in seconds, chosen by query length."""

    short: float = 0.08
    medium: float = 0.10
    long: float = 0.15
    medium_threshold: int = 200
    long_threshold: int = 500

    def to_delay(self) -> AdaptiveDelay:
        return AdaptiveDelay(
            short=self.short,
            medium=self.medium,
            long=self.long,
            medium_threshold=self.medium_threshold,
            long_threshold=self.long_threshold,
        )


class CompletionSettings(BaseModel):
    """Tuning knobs for the completion engine."""

    dialect: Literal["postgres", "mysql"] = "postgres"
    max_results: int = Field(default=25, ge=1)
    cache_ttl: float = Field(default=60.0, gt=0)
    cache_capacity: int = Field(default=200, ge=1)
    cache_min_token: int = Field(default=2, ge=0)
    min_token: int = Field(default=1, ge=0)
    snippets_enabled: bool = True
    training_batch_size: int = Field(default=50, ge=1)
    history_limit: int = Field(default=500, ge=0)
    debounce: DebounceSettings = Field(default_factory=DebounceSettings)


class ConnectionProfileConfig(BaseModel):
    """Connection profile configuration stored in config.toml."""

    name: str
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    metadata: Mapping[str, Sequence[str]] | None = None


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    completion: CompletionSettings = Field(default_factory=CompletionSettings)
    profiles: list[ConnectionProfileConfig] = Field(default_factory=lambda: list(_default_profiles()))
    active_profile: str | None = None
    state_dir: Path = STATE_DIR

    def profile(self, name: str | None = None) -> ConnectionProfileConfig | None:
        """Return the named profile, else the active one, else the first."""

        wanted = name or self.active_profile
        for profile in self.profiles:
            if profile.name == wanted:
                return profile
        if name is not None:
            return None
        return self.profiles[0] if self.profiles else None

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_completion(self, **updates: object) -> AppConfig:
        """Return a copy with completion settings changes applied."""

        completion = self.completion.model_copy(update=updates)
        return self.model_copy(update={"completion": completion})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    completion = CompletionSettings()
    completion_data = data.get("completion")
    if isinstance(completion_data, dict):
        try:
            completion = CompletionSettings(**completion_data)
        except ValidationError:
            completion = CompletionSettings()

    profiles_data = data.get("profiles")
    profiles: list[ConnectionProfileConfig] | None = None
    if isinstance(profiles_data, list):
        profiles = [
            ConnectionProfileConfig(**profile)
            for profile in profiles_data  # type: ignore[list-item]
            if isinstance(profile, dict)
        ]

    state_dir = data.get("state_dir")
    return AppConfig(
        completion=completion,
        profiles=profiles if profiles is not None else list(_default_profiles()),
        active_profile=data.get("active_profile"),
        state_dir=Path(state_dir).expanduser() if isinstance(state_dir, str) else STATE_DIR,
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    if config.active_profile:
        lines.append(f'active_profile = "{config.active_profile}"')
    if config.state_dir != STATE_DIR:
        lines.append(f'state_dir = "{config.state_dir}"')
    completion = config.completion
    lines.append("")
    lines.append("[completion]")
    lines.append(f'dialect = "{completion.dialect}"')
    lines.append(f"max_results = {completion.max_results}")
    lines.append(f"cache_ttl = {completion.cache_ttl}")
    lines.append(f"cache_capacity = {completion.cache_capacity}")
    lines.append(f"cache_min_token = {completion.cache_min_token}")
    lines.append(f"min_token = {completion.min_token}")
    lines.append(f"snippets_enabled = {str(completion.snippets_enabled).lower()}")
    lines.append(f"training_batch_size = {completion.training_batch_size}")
    lines.append(f"history_limit = {completion.history_limit}")
    lines.append("")
    lines.append("[completion.debounce]")
    lines.append(f"short = {completion.debounce.short}")
    lines.append(f"medium = {completion.debounce.medium}")
    lines.append(f"long = {completion.debounce.long}")
    lines.append(f"medium_threshold = {completion.debounce.medium_threshold}")
    lines.append(f"long_threshold = {completion.debounce.long_threshold}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f'name = "{profile.name}"')
            if profile.dsn:
                lines.append(f'dsn = "{profile.dsn}"')
            if profile.host:
                lines.append(f'host = "{profile.host}"')
            if profile.port is not None:
                lines.append(f"port = {profile.port}")
            if profile.database:
                lines.append(f'database = "{profile.database}"')
            if profile.user:
                lines.append(f'user = "{profile.user}"')
            if profile.metadata:
                lines.append("")
                lines.append("[profiles.metadata]")
                for table, columns in profile.metadata.items():
                    rendered = ", ".join(f'"{column}"' for column in columns)
                    lines.append(f'"{table}" = [{rendered}]')
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        state_dir = raw.get("state_dir")
        if isinstance(state_dir, str):
            data["state_dir"] = state_dir
        completion = raw.get("completion")
        if isinstance(completion, dict):
            data["completion"] = dict(completion)
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[dict[str, object]] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in ("name", "dsn", "host", "database", "user"):
                    value = profile.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                port = profile.get("port")
                if isinstance(port, int):
                    parsed["port"] = port
                metadata = profile.get("metadata")
                if isinstance(metadata, dict):
                    tables: dict[str, tuple[str, ...]] = {}
                    for table, columns in metadata.items():
                        if isinstance(table, str) and isinstance(columns, list):
                            tables[table] = tuple(str(col) for col in columns)
                    parsed["metadata"] = tables
                if parsed.get("name"):
                    parsed_profiles.append(parsed)
            if parsed_profiles:
                data["profiles"] = parsed_profiles
    return data


def _default_profiles() -> tuple[ConnectionProfileConfig, ...]:
    """Default profile used before config is customized."""

    return (
        ConnectionProfileConfig(
            name="Local",
            host="localhost",
            port=5432,
            database="postgres",
            user="postgres",
        ),
    )


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "CompletionSettings",
    "ConnectionProfileConfig",
    "DebounceSettings",
    "load_config",
    "save_config",
]
