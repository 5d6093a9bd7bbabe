"""OpenWeather — current weather data for a coordinate pair.

API docs: https://openweathermap.org/current

Errors come back as {"cod": <code>, "message": "..."} where cod may be an
int or a numeric string. A successful response carries cod == 200.
"""

import logging
from dataclasses import dataclass

import config
from errors import UpstreamError
from sources.http import create_session, decode_json, number, request, section, text

log = logging.getLogger(__name__)

PROVIDER = "openweather"


@dataclass(frozen=True)
class Main:
    temp: float = 0.0
    feels_like: float = 0.0
    temp_min: float = 0.0
    temp_max: float = 0.0
    pressure: float = 0.0
    humidity: float = 0.0


@dataclass(frozen=True)
class Wind:
    speed: float = 0.0
    deg: float = 0.0


@dataclass(frozen=True)
class Clouds:
    all: float = 0.0


@dataclass(frozen=True)
class CurrentWeatherData:
    id: int
    name: str
    main: Main
    wind: Wind
    clouds: Clouds


def _cod(payload):
    cod = payload.get("cod")
    if cod is None:
        return None
    try:
        return int(cod)
    except (TypeError, ValueError):
        return cod


def check_error(payload, status_code=200, reason=""):
    """Raise UpstreamError for an error payload or a non-2xx status."""
    cod = _cod(payload)
    if cod is not None and cod != 200:
        raise UpstreamError(PROVIDER, cod, text(payload, "message"))
    if status_code >= 400:
        raise UpstreamError(PROVIDER, status_code, text(payload, "message") or reason or "HTTP error")


def decode_current_weather_data(payload):
    """Decode a /weather payload. Raises UpstreamError on error payloads."""
    check_error(payload)
    main = section(payload, "main")
    wind = section(payload, "wind")
    return CurrentWeatherData(
        id=int(number(payload, "id")),
        name=text(payload, "name"),
        main=Main(
            temp=number(main, "temp"),
            feels_like=number(main, "feels_like"),
            temp_min=number(main, "temp_min"),
            temp_max=number(main, "temp_max"),
            pressure=number(main, "pressure"),
            humidity=number(main, "humidity"),
        ),
        wind=Wind(speed=number(wind, "speed"), deg=number(wind, "deg")),
        clouds=Clouds(all=number(section(payload, "clouds"), "all")),
    )


class OpenWeatherClient:
    """Reads current weather for coordinates using an app id."""

    def __init__(self, app_id, url=config.OPEN_WEATHER_API_URL, session=None):
        self.url = url
        self.app_id = app_id
        self.session = session or create_session()

    def current_weather_data(self, coords):
        """GET /weather?lat=..&lon=... Returns CurrentWeatherData.

        Raises TransportError, DecodeError or UpstreamError.
        """
        resp = request(
            self.session, "GET", f"{self.url}/weather",
            params={
                "lat": repr(coords.lat),
                "lon": repr(coords.lon),
                "appid": self.app_id,
            },
        )
        payload = decode_json(resp)
        check_error(payload, resp.status_code, resp.reason)
        return decode_current_weather_data(payload)
