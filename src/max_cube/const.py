import os
import zoneinfo

import tzlocal

from max_cube import __version__

__all__ = [
    "CUBE_CONNECT_TIMEOUT",
    "CUBE_HANDSHAKE_TIMEOUT",
    "CUBE_HOST",
    "CUBE_IO_TIMEOUT",
    "CUBE_LINE_TERMINATOR",
    "CUBE_PORT",
    "CUBE_RECONNECT_INTERVAL",
    "CUBE_REPLY_TIMEOUT",
    "DISCOVERY_COMMAND",
    "DISCOVERY_TIMEOUT_SECONDS",
    "ENABLE_EXPORTER",
    "EXPORTER_PORT",
    "LOCAL_TZ",
    "MAX_CUBE_DB_PATH",
    "MAX_CUBE_DEBUG",
    "MAX_CUBE_LOG_FORMAT",
    "MAX_CUBE_LOG_HUMAN_OUTPUT",
    "MAX_CUBE_LOG_JSON_FILE",
    "MAX_CUBE_VERSION",
    "SCHEDULER_START_TASK_NAME",
    "WAKE_UP_DEFAULT_DURATION",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
LOCAL_TZ = zoneinfo.ZoneInfo(str(tzlocal.get_localzone()))
MAX_CUBE_VERSION: str = __version__


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Gateway link
CUBE_HOST: str = os.environ.get("MAX_CUBE_HOST", "192.168.0.153")
CUBE_PORT: int = _env_int("MAX_CUBE_PORT", 62910)
CUBE_CONNECT_TIMEOUT: float = _env_float("MAX_CUBE_CONNECT_TIMEOUT", 5.0)
CUBE_IO_TIMEOUT: float = _env_float("MAX_CUBE_IO_TIMEOUT", 5.0)
# The cube sends H: then a possibly large L: line right after accept
CUBE_HANDSHAKE_TIMEOUT: float = _env_float("MAX_CUBE_HANDSHAKE_TIMEOUT", 10.0)
CUBE_REPLY_TIMEOUT: float = _env_float("MAX_CUBE_REPLY_TIMEOUT", 10.0)
CUBE_RECONNECT_INTERVAL: float = _env_float("MAX_CUBE_RECONNECT_INTERVAL", 1.0)
CUBE_LINE_TERMINATOR: bytes = b"\r\n"

# n:003c asks the cube to listen 0x3c = 60s for a pairing button press;
# the caller gives up one second earlier.
DISCOVERY_COMMAND: str = "n:003c"
DISCOVERY_TIMEOUT_SECONDS: float = 59.0
WAKE_UP_DEFAULT_DURATION: int = 30

# Persistence
MAX_CUBE_DB_PATH: str = os.environ.get("MAX_CUBE_DB_PATH", "/data/max_cube.sqlite3")

MAX_CUBE_DEBUG: bool = os.environ.get("MAX_CUBE_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
MAX_CUBE_LOG_FORMAT: str = os.environ.get("MAX_CUBE_LOG_FORMAT", "human")  # "json", "human", or "both"
MAX_CUBE_LOG_JSON_FILE: str = os.environ.get("MAX_CUBE_LOG_JSON_FILE", "/var/log/max_cube.json")
MAX_CUBE_LOG_HUMAN_OUTPUT: str = os.environ.get("MAX_CUBE_LOG_HUMAN_OUTPUT", "stdout")

# Prometheus exporter
ENABLE_EXPORTER: bool = os.environ.get("MAX_CUBE_ENABLE_EXPORTER", "0").casefold() in YES_ANSWER
EXPORTER_PORT: int = _env_int("MAX_CUBE_EXPORTER_PORT", 9400)

SCHEDULER_START_TASK_NAME = "CronScheduler_START"
