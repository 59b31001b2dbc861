"""Watcher configuration: models, file loading and the rule catalog source."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from .core.models import Rule, Severity
from .core.rules import CatalogError, OverrideDirective, default_rules, load_catalog
from .core.rules.schema import ConfigLevel
from .core.tailer import DEFAULT_OVERLAP_BYTES

CONFIG_ENV = "BISQ_WATCHER_CONFIG"
DEFAULT_CONFIG_PATH = "bisq-watcher.yml"


class ConfigError(ValueError):
    """Configuration cannot be used; ``exit_code`` is what the CLI returns."""

    exit_code = 3


class ConfigNotFoundError(ConfigError):
    exit_code = 2


class RulesError(ConfigError):
    exit_code = 4


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class DebugConfig(_Model):
    at_start_build_event_cache_only: bool = Field(default=True, alias="atStartBuildEventCacheOnly")
    overlapping_go_back_n_positions: int = Field(
        default=DEFAULT_OVERLAP_BYTES, ge=0, alias="overlappingGoBackNPositions"
    )
    use_hash: bool = Field(default=False, alias="useHash")
    max_events: int | None = Field(default=None, ge=1, alias="maxEvents")


class _SinkConfigBase(_Model):
    timestamp: bool | str = False
    level: ConfigLevel = "debug"
    disabled: bool = False
    overwrite_rules: list[OverrideDirective] = Field(default_factory=list, alias="overwriteRules")

    @property
    def threshold(self) -> Severity:
        return Severity(self.level)


class ConsoleSinkConfig(_SinkConfigBase):
    type: Literal["console"]


class FileSinkConfig(_SinkConfigBase):
    type: Literal["file"]
    filename: str = Field(min_length=1)


class TelegramSinkConfig(_SinkConfigBase):
    type: Literal["telegram"]
    api_token: str = Field(alias="apiToken", min_length=1)
    chat_ids: list[str] = Field(alias="chatIds", min_length=1)

    @field_validator("chat_ids", mode="before")
    @classmethod
    def _stringify_chat_ids(cls, v: Any) -> Any:
        # Chat ids are numeric in Telegram but usually quoted in YAML.
        if isinstance(v, list):
            return [str(x) if isinstance(x, int) else x for x in v]
        return v


SinkConfig = Annotated[
    ConsoleSinkConfig | FileSinkConfig | TelegramSinkConfig,
    Field(discriminator="type"),
]


class WatcherConfig(_Model):
    name: str | None = None
    log_file: str = Field(alias="logFile", min_length=1)
    transports: list[SinkConfig] = Field(min_length=1)
    debug: DebugConfig = Field(default_factory=DebugConfig)
    overwrite_rules: list[OverrideDirective] = Field(default_factory=list, alias="overwriteRules")

    @property
    def enabled_transports(self) -> list[SinkConfig]:
        return [t for t in self.transports if not t.disabled]


class AppConfig(_Model):
    watchers: list[WatcherConfig] = Field(min_length=1)
    rules_file: str | None = Field(default=None, alias="rulesFile")

    # Directory relative paths (``rulesFile``) are resolved against.
    _base_dir: Path = PrivateAttr(default_factory=Path.cwd)

    @property
    def base_dir(self) -> Path:
        return self._base_dir


def resolve_config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    """Pick the config file: explicit argument, then env var, then the default."""
    if explicit:
        return Path(explicit)
    return Path(os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH)


def read_document(path: Path) -> Any:
    """Parse a JSON or YAML file (chosen by suffix, YAML otherwise)."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_config(path: str | os.PathLike[str]) -> AppConfig:
    """Load and validate the configuration file at ``path``.

    A bare list at the top level is read as the list of watchers.
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigNotFoundError(f"Config file not found: {p}")

    try:
        raw = read_document(p)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse config file {p}: {exc}") from exc

    if isinstance(raw, list):
        raw = {"watchers": raw}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {p} must contain a mapping or a list of watchers")

    try:
        cfg = AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {p}:\n{exc}") from exc
    cfg._base_dir = p.resolve().parent
    return cfg


def load_rules(config: AppConfig) -> list[Rule]:
    """Return the rule catalog: the configured ``rulesFile`` or the built-in one."""
    if not config.rules_file:
        return default_rules()

    path = Path(config.rules_file).expanduser()
    if not path.is_absolute():
        path = config.base_dir / path
    try:
        raw = read_document(path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise RulesError(f"Cannot read rules file {path}: {exc}") from exc

    if isinstance(raw, dict) and "rules" in raw:
        raw = raw["rules"]
    if not isinstance(raw, list):
        raise RulesError(f"Rules file {path} must contain a list of rules")
    try:
        return load_catalog(raw)
    except CatalogError as exc:
        raise RulesError(f"Invalid rules file {path}: {exc}") from exc
