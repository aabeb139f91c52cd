from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeVar
import os

from dotenv import load_dotenv

from .errors import ConfigError
from .retry import RetryPolicy


MAIN_URL = "https://api.coinbase.com/v2"

T = TypeVar("T")


@dataclass(frozen=True)
class ClientConfig:
    api_url: str = MAIN_URL
    timeout_sec: float = 10.0
    max_attempts: int = 5
    backoff_base_sec: float = 0.5
    backoff_factor: float = 2.0
    backoff_jitter: float = 0.1
    backoff_max_sec: float = 30.0
    max_requests_per_sec: int = 0  # 0 disables client-side throttling
    pool_size: int = 10
    timestamp_window_sec: int = 30
    verify_ssl: bool = True
    logs_dir: str = "logs"

    def __post_init__(self) -> None:
        if not self.api_url.startswith(("https://", "http://")):
            raise ConfigError(f"COINBASE_API_URL must be an http(s) URL, got {self.api_url!r}")
        if self.timeout_sec <= 0:
            raise ConfigError("COINBASE_TIMEOUT_SEC must be positive")
        if self.max_attempts < 1:
            raise ConfigError("COINBASE_MAX_ATTEMPTS must be at least 1")
        if self.pool_size < 1:
            raise ConfigError("COINBASE_POOL_SIZE must be at least 1")
        if self.max_requests_per_sec < 0:
            raise ConfigError("COINBASE_MAX_REQUESTS_PER_SECOND must not be negative")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.backoff_base_sec,
            factor=self.backoff_factor,
            jitter=self.backoff_jitter,
            max_delay=self.backoff_max_sec,
        )


def _get_env(name: str, default: str, cast: Callable[[str], T]) -> T:
    value = os.getenv(name, default)
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"invalid value for {name}: {value!r}") from None


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValueError(value)


def load_config() -> ClientConfig:
    load_dotenv()
    return ClientConfig(
        api_url=os.getenv("COINBASE_API_URL", MAIN_URL),
        timeout_sec=_get_env("COINBASE_TIMEOUT_SEC", "10", float),
        max_attempts=_get_env("COINBASE_MAX_ATTEMPTS", "5", int),
        backoff_base_sec=_get_env("COINBASE_BACKOFF_BASE_SEC", "0.5", float),
        backoff_factor=_get_env("COINBASE_BACKOFF_FACTOR", "2.0", float),
        backoff_jitter=_get_env("COINBASE_BACKOFF_JITTER", "0.1", float),
        backoff_max_sec=_get_env("COINBASE_BACKOFF_MAX_SEC", "30", float),
        max_requests_per_sec=_get_env("COINBASE_MAX_REQUESTS_PER_SECOND", "0", int),
        pool_size=_get_env("COINBASE_POOL_SIZE", "10", int),
        timestamp_window_sec=_get_env("COINBASE_TIMESTAMP_WINDOW_SEC", "30", int),
        verify_ssl=_get_env("COINBASE_VERIFY_SSL", "true", _to_bool),
        logs_dir=os.getenv("LOGS_DIR", "logs"),
    )
