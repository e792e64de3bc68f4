# runtime settings read from the environment (or a local .env file)
# cli flags override these; everything else reads a Settings instance

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import InvalidRequest

load_dotenv()  # no-op when there is no .env file

WEATHER_KEYS = ("address", "coordinates")


def _int_env(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidRequest(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise InvalidRequest(f"{name} must be >= {minimum} (got {value})")
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidRequest(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise InvalidRequest(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    ping_count: int = 10
    probe_timeout: float = 30.0
    max_hops: int = 30
    http_timeout: float = 10.0
    http_retries: int = 0
    max_workers: int = 4
    info_url: str = "http://ip-api.com/json/"
    weather_url: str = "https://wttr.in/"
    weather_format: str = "%C,%t,%w"
    weather_key: str = "address"
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.weather_key not in WEATHER_KEYS:
            raise InvalidRequest(
                f"weather key must be one of {', '.join(WEATHER_KEYS)} (got {self.weather_key!r})"
            )
        if self.ping_count < 1:
            raise InvalidRequest(f"ping count must be >= 1 (got {self.ping_count})")
        if self.max_workers < 1:
            raise InvalidRequest(f"max workers must be >= 1 (got {self.max_workers})")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            ping_count=_int_env(env, "IPREPORT_PING_COUNT", 10, minimum=1),
            probe_timeout=_float_env(env, "IPREPORT_PROBE_TIMEOUT", 30.0),
            max_hops=_int_env(env, "IPREPORT_MAX_HOPS", 30, minimum=1),
            http_timeout=_float_env(env, "IPREPORT_HTTP_TIMEOUT", 10.0),
            http_retries=_int_env(env, "IPREPORT_HTTP_RETRIES", 0),
            max_workers=_int_env(env, "IPREPORT_MAX_WORKERS", 4, minimum=1),
            info_url=env.get("IPREPORT_INFO_URL", cls.info_url),
            weather_url=env.get("IPREPORT_WEATHER_URL", cls.weather_url),
            weather_format=env.get("IPREPORT_WEATHER_FORMAT", cls.weather_format),
            weather_key=env.get("IPREPORT_WEATHER_KEY", cls.weather_key).strip().lower(),
            log_level=env.get("IPREPORT_LOG_LEVEL", cls.log_level),
        )

    def override(self, **changes) -> "Settings":
        # drop unset cli options so env values survive
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
