"""Configuration for the socketworker command-line tools.

Loads settings from ~/.config/socketworker/config.cfg, falling back to a .env
file, with SOCKETWORKER_* environment variables taking precedence.
Provides WorkerSettings (socket/status paths, codec, shutdown behavior).
"""

import configparser
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from socketworker.protocol import CODECS

CONFIG_DIR = Path.home() / ".config" / "socketworker"
CONFIG_PATH = CONFIG_DIR / "config.cfg"
ENV_PATH = Path.cwd() / ".env"
ENV_PREFIX = "SOCKETWORKER_"

SETTING_KEYS = (
    "socket_path",
    "status_path",
    "codec",
    "reuse_socket_file",
    "shutdown_command",
    "log_level",
)


@dataclass
class WorkerSettings:
    socket_path: Path
    status_path: Path
    codec: str = "json"
    reuse_socket_file: bool = False
    shutdown_command: str = "shutdown"
    log_level: str = "INFO"


def load_raw_config(
    path: Path = CONFIG_PATH, env_path: Optional[Path] = ENV_PATH
) -> Dict[str, str]:
    """
    Load configuration values with lowercase keys.

    Precedence: environment variables, then config.cfg, then .env.
    """
    data: Dict[str, str] = {}

    if env_path is not None and env_path.exists():
        for key, value in dotenv_values(env_path).items():
            if key.upper().startswith(ENV_PREFIX) and value is not None:
                data[key[len(ENV_PREFIX):].lower()] = value

    if path.exists():
        cfg = configparser.ConfigParser()
        cfg.read(path)
        data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})

    for key in SETTING_KEYS:
        value = os.environ.get(ENV_PREFIX + key.upper())
        if value is not None and value.strip() != "":
            data[key] = value

    return data


def _get_bool(raw: Dict[str, str], key: str, default: bool = False) -> bool:
    value = raw.get(key)
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def get_worker_settings(raw: Optional[Dict[str, str]] = None) -> WorkerSettings:
    """
    Build WorkerSettings from raw configuration values.
    Raises ValueError for an unknown codec.
    """
    raw = load_raw_config() if raw is None else raw

    codec = raw.get("codec", "json").strip().lower() or "json"
    if codec not in CODECS:
        raise ValueError(
            f"Unknown codec '{codec}'. Available codecs: {', '.join(CODECS)}"
        )

    return WorkerSettings(
        socket_path=Path(raw.get("socket_path") or CONFIG_DIR / "worker.sock").expanduser(),
        status_path=Path(raw.get("status_path") or CONFIG_DIR / "worker.status").expanduser(),
        codec=codec,
        reuse_socket_file=_get_bool(raw, "reuse_socket_file", False),
        shutdown_command=raw.get("shutdown_command", "shutdown").strip() or "shutdown",
        log_level=raw.get("log_level", "INFO").strip().upper() or "INFO",
    )
