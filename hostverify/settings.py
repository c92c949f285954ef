from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import ENV_FILE


class IdnaPolicy(str, Enum):
    OFF = "off"
    PUNYCODE = "punycode"


def env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return default if v is None or v.strip() == "" else v.strip()


def env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    return default if v is None or v.strip() == "" else int(v.strip())


def env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    return default if v is None or v.strip() == "" else float(v.strip())


def env_bool(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None or v.strip() == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def parse_idna_policy(raw: str) -> IdnaPolicy:
    try:
        return IdnaPolicy(raw.strip().lower())
    except ValueError:
        raise ValueError(f"HOSTVERIFY_IDNA must be one of {[p.value for p in IdnaPolicy]}, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    http_host: str
    http_port: int
    idna_policy: IdnaPolicy
    probe_timeout_sec: float
    probe_ca_file: Optional[str]
    probe_verify_chain: bool
    event_log_enabled: bool
    app_env: str


def load_settings(env_file: Optional[Path] = ENV_FILE) -> Settings:
    if env_file is not None and env_file.exists():
        load_dotenv(dotenv_path=str(env_file), override=True)

    return Settings(
        http_host=env_str("HTTP_HOST", "0.0.0.0"),
        http_port=env_int("HTTP_PORT", 8080),
        idna_policy=parse_idna_policy(env_str("HOSTVERIFY_IDNA", IdnaPolicy.OFF.value)),
        probe_timeout_sec=env_float("PROBE_TIMEOUT_SEC", 5.0),
        probe_ca_file=env_str("PROBE_CA_FILE", "") or None,
        probe_verify_chain=env_bool("PROBE_VERIFY_CHAIN", True),
        event_log_enabled=env_bool("EVENT_LOG_ENABLED", True),
        app_env=env_str("APP_ENV", "dev").lower(),
    )
