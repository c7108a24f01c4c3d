from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_QUEUE_NAME = "slurmci:events"


def _required(env: Mapping[str, str], key: str) -> str:
    value = env.get(key)
    if not value:
        raise ConfigError(f"{key} is not set")
    return value


def _float_or_none(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Worker configuration, read from the environment."""
    github_token: str
    slurmrestd_url: str
    slurmrestd_user: str
    slurmrestd_token: str
    slurmrestd_api_version: str = "v0.0.39"
    redis_url: str = DEFAULT_REDIS_URL
    queue_name: str = DEFAULT_QUEUE_NAME
    actions_base_url: str = "https://github.com"
    dispatch_workers: int = 1
    poll_timeout: int = 5
    request_timeout: Optional[float] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> Settings:
        """
        Build settings from environment variables.

        Raises:
            ConfigError: a required variable is missing or malformed
        """
        env = os.environ if env is None else env
        dispatch_workers = _int(env, "DISPATCH_WORKERS", 1)
        if dispatch_workers < 1:
            raise ConfigError("DISPATCH_WORKERS must be >= 1")

        return cls(
            github_token=_required(env, "GITHUB_TOKEN"),
            slurmrestd_url=_required(env, "SLURMRESTD_URL"),
            slurmrestd_user=_required(env, "SLURMRESTD_USER"),
            slurmrestd_token=_required(env, "SLURMRESTD_TOKEN"),
            slurmrestd_api_version=env.get("SLURMRESTD_API_VERSION", "v0.0.39"),
            redis_url=env.get("REDIS_URL", DEFAULT_REDIS_URL),
            queue_name=env.get("QUEUE_NAME", DEFAULT_QUEUE_NAME),
            actions_base_url=env.get("ACTIONS_BASE_URL", "https://github.com"),
            dispatch_workers=dispatch_workers,
            poll_timeout=_int(env, "POLL_TIMEOUT", 5),
            request_timeout=_float_or_none(env, "REQUEST_TIMEOUT"),
        )
