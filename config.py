"""Configuration for the weather exporters.

Upstream endpoints, HTTP tuning and server defaults live here as constants.
Per-source polling settings come from a JSON config file (see load_config).
Secrets (API keys, passwords) live in the environment or a .env file, not here.
"""

import json
import os
import re
from dataclasses import dataclass, field

from errors import ConfigError

# ---------------------------------------------------------------------------
# Netatmo API
# ---------------------------------------------------------------------------
NETATMO_API_URL = "https://api.netatmo.com/api"
NETATMO_OAUTH_URL = "https://api.netatmo.com/oauth2"
NETATMO_STATIONS_SCOPE = "read_station"
NETATMO_NAMESPACE = "netatmo"

# ---------------------------------------------------------------------------
# OpenWeather API
# ---------------------------------------------------------------------------
OPEN_WEATHER_API_URL = "https://api.openweathermap.org/data/2.5"
OPEN_WEATHER_NAMESPACE = "open_weather"

# ---------------------------------------------------------------------------
# HTTP resilience
# ---------------------------------------------------------------------------
HTTP_CONNECT_TIMEOUT = 5     # seconds
HTTP_READ_TIMEOUT = 30       # seconds
HTTP_TIMEOUT = (HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT)

# ---------------------------------------------------------------------------
# Server / process
# ---------------------------------------------------------------------------
DEFAULT_ADDR = ":80"
DEFAULT_CONFIG_PATH = "./config.json"
SHUTDOWN_GRACE_SECONDS = 1.0

# Environment variables holding credentials
OPEN_WEATHER_ENV = ("OPEN_WEATHER_APP_ID",)
NETATMO_ENV = (
    "NETATMO_CLIENT_ID",
    "NETATMO_CLIENT_SECRET",
    "NETATMO_USERNAME",
    "NETATMO_PASSWORD",
)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def __str__(self):
        return f"{self.lat},{self.lon}"


@dataclass
class NetatmoStationsData:
    enabled: bool = False
    interval: float = 0.0             # seconds


@dataclass
class OpenWeatherCurrentWeatherData:
    enabled: bool = False
    interval: float = 0.0             # seconds
    coords: list = field(default_factory=list)   # [Coordinates]


@dataclass
class Config:
    netatmo_stations_data: NetatmoStationsData = field(default_factory=NetatmoStationsData)
    open_weather_current_weather_data: OpenWeatherCurrentWeatherData = field(
        default_factory=OpenWeatherCurrentWeatherData
    )


# ---------------------------------------------------------------------------
# Durations ("300ms", "1.5s", "5m", "1h30m")
# ---------------------------------------------------------------------------
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text):
    """Parse a duration string into seconds.

    Accepts a sequence of decimal numbers each followed by a unit, with an
    optional leading sign. A bare "0" is allowed.
    """
    if not isinstance(text, str):
        raise ConfigError(f"duration must be a string, got {text!r}")

    s = text.strip()
    sign = 1.0
    if s[:1] in ("+", "-"):
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]

    if s == "0":
        return 0.0
    if not s:
        raise ConfigError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(s):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(s):
        raise ConfigError(f"invalid duration {text!r}")

    return sign * total


# ---------------------------------------------------------------------------
# Config file
# ---------------------------------------------------------------------------

def _get(data, key, default=None):
    """Case-insensitive dict lookup."""
    if not isinstance(data, dict):
        return default
    wanted = key.lower()
    for k, v in data.items():
        if k.lower() == wanted:
            return v
    return default


def _enabled(section, name):
    raw = _get(section, "Enabled")
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ConfigError(f"{name}.Enabled: expected true or false, got {raw!r}")
    return raw


def _interval(section, name):
    raw = _get(section, "Interval")
    if raw is None:
        return 0.0
    try:
        return parse_duration(raw)
    except ConfigError as e:
        raise ConfigError(f"{name}.Interval: {e}") from e


def _coords(section):
    coords = []
    for i, item in enumerate(_get(section, "Coords") or []):
        try:
            coords.append(Coordinates(lat=float(_get(item, "Lat", 0)), lon=float(_get(item, "Lon", 0))))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"OpenWeather.CurrentWeatherData.Coords[{i}]: {e}") from e
    return coords


def parse_config(data):
    """Build a Config from already-decoded JSON."""
    if not isinstance(data, dict):
        raise ConfigError("config root must be a JSON object")

    sd = _get(_get(data, "Netatmo", {}), "StationsData", {})
    cwd = _get(_get(data, "OpenWeather", {}), "CurrentWeatherData", {})

    cfg = Config(
        netatmo_stations_data=NetatmoStationsData(
            enabled=_enabled(sd, "Netatmo.StationsData"),
            interval=_interval(sd, "Netatmo.StationsData"),
        ),
        open_weather_current_weather_data=OpenWeatherCurrentWeatherData(
            enabled=_enabled(cwd, "OpenWeather.CurrentWeatherData"),
            interval=_interval(cwd, "OpenWeather.CurrentWeatherData"),
            coords=_coords(cwd),
        ),
    )

    if cfg.netatmo_stations_data.enabled and cfg.netatmo_stations_data.interval <= 0:
        raise ConfigError("Netatmo.StationsData.Interval must be positive")
    if cfg.open_weather_current_weather_data.enabled and cfg.open_weather_current_weather_data.interval <= 0:
        raise ConfigError("OpenWeather.CurrentWeatherData.Interval must be positive")

    return cfg


def load_config(path):
    """Read and parse the JSON config file at path."""
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"reading config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"unmarshaling config: {e}") from e
    return parse_config(data)


def require_env(*keys):
    """Return the values of all keys, or raise one ConfigError naming every missing key."""
    values = []
    missing = []
    for key in keys:
        val = os.getenv(key, "")
        if not val:
            missing.append(key)
        values.append(val)
    if missing:
        raise ConfigError(f"missing environment variables: {', '.join(missing)}")
    return values


def parse_addr(addr):
    """Split a ":80" / "127.0.0.1:9100" style address into (host, port)."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigError(f"invalid listen address {addr!r}")
    try:
        port = int(port)
    except ValueError as e:
        raise ConfigError(f"invalid listen port in {addr!r}") from e
    return host.strip("[]") or "0.0.0.0", port
