"""
Configuration loader for the ReScheduler service.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from models.schemas import SchedulerOptions


@dataclass
class StoreConfig:
    backend: str = "memory"                      # "memory" for dev, "redis" for production
    redis_url: str = "redis://localhost:6379"
    decode_responses: bool = True
    connect_attempts: int = 3                    # readiness pings before giving up

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "redis_url": self.redis_url,
            "decode_responses": self.decode_responses,
            "connect_attempts": self.connect_attempts,
        }


@dataclass
class SchedulerConfig:
    queue_name: str = "delayed"
    check_interval_ms: int = 60 * 1000           # 0 disables auto-check
    force_fallback: bool = False                 # never use the Lua script
    pop_timeout_seconds: int = 0                 # 0 = wait forever

    def to_options(self) -> SchedulerOptions:
        return SchedulerOptions(
            check_interval_ms=self.check_interval_ms,
            force_fallback=self.force_fallback,
        )


@dataclass
class Settings:
    app_name: str = "ReScheduler"
    store: StoreConfig = field(default_factory=StoreConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    load_dotenv()

    if config_path is None:
        config_path = os.environ.get(
            "RESCHEDULER_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)

        if "store" in raw:
            st = raw["store"] or {}
            settings.store = StoreConfig(
                backend=st.get("backend", "memory"),
                redis_url=st.get("redis_url", "redis://localhost:6379"),
                decode_responses=_as_bool(st.get("decode_responses", True)),
                connect_attempts=int(st.get("connect_attempts", 3)),
            )

        if "scheduler" in raw:
            sc = raw["scheduler"] or {}
            settings.scheduler = SchedulerConfig(
                queue_name=sc.get("queue_name", "delayed"),
                check_interval_ms=int(sc.get("check_interval_ms", 60 * 1000)),
                force_fallback=_as_bool(sc.get("force_fallback", False)),
                pop_timeout_seconds=int(sc.get("pop_timeout_seconds", 0)),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
