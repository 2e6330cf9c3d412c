"""YAML configuration for the relay.

Secrets may also come from the environment (a `.env` file is honoured); an
environment value always wins over the YAML one.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from wallfeed.domain.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.yaml")
KNOWN_SINKS = ("matrix", "mastodon", "ntfy")

ENV_OVERRIDES = {
    "WALLHAVEN_API_TOKEN": ("wallhaven", "api_token"),
    "OPENAI_API_KEY": ("openai", "api_key"),
    "MATRIX_PASSWORD": ("matrix", "password"),
    "MASTODON_ACCESS_TOKEN": ("mastodon", "access_token"),
}


@dataclass(frozen=True)
class WallhavenConfig:
    api_token: str = ""
    categories: str = "111"
    purity: str = "100"
    sorting: str = "toplist"
    toprange: tuple[str, ...] = ("1d",)
    order: str = "desc"
    ai_filter: str = "1"
    user_agent: str = "wallfeed/0.1"
    base_url: str = "https://wallhaven.cc/api/v1"


@dataclass(frozen=True)
class MatrixConfig:
    server_url: str = ""
    user: str = ""
    password: str = ""
    room_id: str = ""
    token_file: str = "matrix_token.txt"


@dataclass(frozen=True)
class MastodonConfig:
    server: str = ""
    access_token: str = ""


@dataclass(frozen=True)
class NtfyConfig:
    server: str = "https://ntfy.sh"
    topic: str = ""
    priority: str = "low"


@dataclass(frozen=True)
class OpenAIConfig:
    api_key: str = ""
    model: str = "gpt-4o"
    prompt: str = "Describe this image in less than 200 characters."
    max_tokens: int = 120


@dataclass(frozen=True)
class PipelineConfig:
    max_concurrent_items: int = 3
    scratch_dir: str = "artifacts/scratch"
    sink_timeout_seconds: float = 300.0
    show_progress: bool = False
    journal_dir: str | None = None


@dataclass(frozen=True)
class AppConfig:
    wallhaven: WallhavenConfig = field(default_factory=WallhavenConfig)
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    mastodon: MastodonConfig = field(default_factory=MastodonConfig)
    ntfy: NtfyConfig = field(default_factory=NtfyConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    database: str = "sent_images.db"
    wait_time: int = 3600
    sinks: tuple[str, ...] = KNOWN_SINKS


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    load_dotenv()
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid config {config_path}: expected a top-level mapping.")
    return parse_config(raw, env=os.environ)


def parse_config(raw: dict[str, Any], env: dict[str, str] | None = None) -> AppConfig:
    sections = {
        name: dict(_section(raw, name))
        for name in ("wallhaven", "matrix", "mastodon", "ntfy", "openai", "pipeline")
    }

    # Flat keys used by older config files.
    if "openai_key" in raw and "api_key" not in sections["openai"]:
        sections["openai"]["api_key"] = raw["openai_key"]
    mastodon = sections["mastodon"]
    if "mastodon_server" in mastodon:
        mastodon.setdefault("server", mastodon.pop("mastodon_server"))
    if "mastodon_token" in mastodon:
        mastodon.setdefault("access_token", mastodon.pop("mastodon_token"))

    for var, (section, key) in ENV_OVERRIDES.items():
        value = (env or {}).get(var, "").strip()
        if value:
            sections[section][key] = value

    wallhaven = sections["wallhaven"]
    toprange = wallhaven.get("toprange", WallhavenConfig.toprange)
    if isinstance(toprange, str):
        toprange = [toprange]
    wallhaven["toprange"] = tuple(str(r).strip() for r in toprange if str(r).strip())
    if not wallhaven["toprange"]:
        raise ConfigError("wallhaven.toprange must list at least one range.")

    sinks = raw.get("sinks", KNOWN_SINKS)
    if isinstance(sinks, str):
        sinks = [sinks]
    sinks = tuple(str(s).strip().lower() for s in sinks)
    unknown = [s for s in sinks if s not in KNOWN_SINKS]
    if unknown:
        raise ConfigError(f"Unknown sink(s): {', '.join(unknown)}. Known: {', '.join(KNOWN_SINKS)}")

    try:
        config = AppConfig(
            wallhaven=WallhavenConfig(**_stringify(wallhaven, skip=("toprange",))),
            matrix=MatrixConfig(**_stringify(sections["matrix"])),
            mastodon=MastodonConfig(**_stringify(sections["mastodon"])),
            ntfy=NtfyConfig(**_stringify(sections["ntfy"])),
            openai=OpenAIConfig(**sections["openai"]),
            pipeline=PipelineConfig(**sections["pipeline"]),
            database=str(raw.get("database", AppConfig.database)),
            wait_time=int(raw.get("wait_time", AppConfig.wait_time)),
            sinks=sinks,
        )
        _validate(config)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    return config


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping.")
    return value


def _stringify(values: dict[str, Any], skip: tuple[str, ...] = ()) -> dict[str, Any]:
    return {k: (v if k in skip else str(v)) for k, v in values.items()}


def _validate(config: AppConfig) -> None:
    if config.pipeline.max_concurrent_items < 1:
        raise ConfigError("pipeline.max_concurrent_items must be >= 1.")
    if config.wait_time < 0:
        raise ConfigError("wait_time must be >= 0.")
    required = {
        "matrix": (config.matrix, ("server_url", "user", "room_id")),
        "mastodon": (config.mastodon, ("server", "access_token")),
        "ntfy": (config.ntfy, ("server", "topic")),
    }
    for sink in config.sinks:
        section, keys = required[sink]
        missing = [k for k in keys if not getattr(section, k)]
        if missing:
            raise ConfigError(f"Sink '{sink}' is enabled but missing: {', '.join(missing)}")
