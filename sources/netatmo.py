"""Netatmo Weather API — personal weather stations via /getstationsdata.

Authentication uses the OAuth2 password grant, which only works with the
account that owns the API application. A fresh token is requested before
every stations data fetch.

Response tree:
  body.devices[]            one per station (NAMain), dashboard_data = indoor module
    .modules[]              satellites; type tag picks the dashboard layout
      NAModule1             outdoor module (temperature, humidity)
      NAModule2             wind gauge (wind/gust strength and angle)
"""

import logging
from dataclasses import dataclass, field

import config
from errors import DecodeError, UpstreamError
from sources.http import create_session, decode_json, number, request, section, text

log = logging.getLogger(__name__)

PROVIDER = "netatmo"

DEVICE_TYPE_INDOOR = "NAMain"
DEVICE_TYPE_OUTDOOR = "NAModule1"
DEVICE_TYPE_WIND = "NAModule2"


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    expires_in: int
    refresh_token: str


@dataclass(frozen=True)
class IndoorModuleData:
    temperature: float = 0.0       # degC
    co2: float = 0.0               # ppm
    humidity: float = 0.0          # %
    noise: float = 0.0             # dB
    pressure: float = 0.0          # mbar, sea level
    absolute_pressure: float = 0.0  # mbar, station level
    min_temp: float = 0.0
    max_temp: float = 0.0
    pressure_trend: str = ""


@dataclass(frozen=True)
class OutdoorModuleData:
    temperature: float = 0.0
    humidity: float = 0.0
    min_temp: float = 0.0
    max_temp: float = 0.0
    temp_trend: str = ""


@dataclass(frozen=True)
class WindModuleData:
    wind_strength: float = 0.0     # km/h
    wind_angle: float = 0.0        # degrees
    gust_strength: float = 0.0
    gust_angle: float = 0.0
    max_wind_str: float = 0.0
    max_wind_angle: float = 0.0


@dataclass(frozen=True)
class Module:
    id: str
    type: str
    module_name: str
    dashboard: object = None       # OutdoorModuleData | WindModuleData | None (unsupported)


@dataclass(frozen=True)
class Device:
    id: str
    type: str
    station_name: str
    home_id: str
    home_name: str
    dashboard: IndoorModuleData
    modules: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class StationsData:
    devices: tuple = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def check_error(payload, status_code=200, reason=""):
    """Raise UpstreamError for an error payload or a non-2xx status."""
    err = payload.get("error")
    if isinstance(err, dict):
        raise UpstreamError(PROVIDER, int(number(err, "code")), text(err, "message"))
    if isinstance(err, str):
        # OAuth endpoint style: {"error": "invalid_grant", "error_description": ...}
        message = err
        if payload.get("error_description"):
            message = f"{err}: {payload['error_description']}"
        raise UpstreamError(PROVIDER, status_code, message)
    if status_code >= 400:
        raise UpstreamError(PROVIDER, status_code, reason or "HTTP error")


def decode_indoor(data):
    return IndoorModuleData(
        temperature=number(data, "Temperature"),
        co2=number(data, "CO2"),
        humidity=number(data, "Humidity"),
        noise=number(data, "Noise"),
        pressure=number(data, "Pressure"),
        absolute_pressure=number(data, "AbsolutePressure"),
        min_temp=number(data, "min_temp"),
        max_temp=number(data, "max_temp"),
        pressure_trend=text(data, "pressure_trend"),
    )


def decode_outdoor(data):
    return OutdoorModuleData(
        temperature=number(data, "Temperature"),
        humidity=number(data, "Humidity"),
        min_temp=number(data, "min_temp"),
        max_temp=number(data, "max_temp"),
        temp_trend=text(data, "temp_trend"),
    )


def decode_wind(data):
    return WindModuleData(
        wind_strength=number(data, "WindStrength"),
        wind_angle=number(data, "WindAngle"),
        gust_strength=number(data, "GustStrength"),
        gust_angle=number(data, "GustAngle"),
        max_wind_str=number(data, "max_wind_str"),
        max_wind_angle=number(data, "max_wind_angle"),
    )


MODULE_DECODERS = {
    DEVICE_TYPE_OUTDOOR: decode_outdoor,
    DEVICE_TYPE_WIND: decode_wind,
}


def decode_module(data):
    module_type = text(data, "type")
    decoder = MODULE_DECODERS.get(module_type)
    dashboard = None
    if decoder is None:
        log.warning("Unsupported module type: %s (%s)", module_type, text(data, "_id"))
    else:
        dashboard = decoder(section(data, "dashboard_data"))
    return Module(
        id=text(data, "_id"),
        type=module_type,
        module_name=text(data, "module_name"),
        dashboard=dashboard,
    )


def decode_device(data):
    return Device(
        id=text(data, "_id"),
        type=text(data, "type"),
        station_name=text(data, "station_name"),
        home_id=text(data, "home_id"),
        home_name=text(data, "home_name"),
        dashboard=decode_indoor(section(data, "dashboard_data")),
        modules=tuple(decode_module(m) for m in data.get("modules") or [] if isinstance(m, dict)),
    )


def decode_stations_data(payload):
    """Decode a /getstationsdata payload. Raises UpstreamError on error payloads."""
    check_error(payload)
    devices = section(payload, "body").get("devices") or []
    if not isinstance(devices, list):
        raise DecodeError("body.devices: expected a list")
    return StationsData(devices=tuple(decode_device(d) for d in devices if isinstance(d, dict)))


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

class NetatmoOAuth:
    """Obtains access tokens with the password grant."""

    def __init__(self, client_id, client_secret, username, password,
                 url=config.NETATMO_OAUTH_URL, session=None):
        self.url = url
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.session = session or create_session()

    def token(self, scope):
        """POST /token. Returns an OAuthToken."""
        resp = request(
            self.session, "POST", f"{self.url}/token",
            data={
                "grant_type": "password",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "username": self.username,
                "password": self.password,
                "scope": scope,
            },
        )
        payload = decode_json(resp)
        check_error(payload, resp.status_code, resp.reason)

        access_token = text(payload, "access_token")
        if not access_token:
            raise DecodeError("token response has no access_token", resp.content)

        return OAuthToken(
            access_token=access_token,
            expires_in=int(number(payload, "expires_in")),
            refresh_token=text(payload, "refresh_token"),
        )


class NetatmoClient:
    """Reads all stations of the authenticated account."""

    def __init__(self, oauth, url=config.NETATMO_API_URL, session=None):
        self.url = url
        self.oauth = oauth
        self.session = session or create_session()

    def stations_data(self):
        """GET /getstationsdata. Returns StationsData.

        Raises TransportError, DecodeError or UpstreamError.
        """
        token = self.oauth.token(config.NETATMO_STATIONS_SCOPE)
        resp = request(
            self.session, "GET", f"{self.url}/getstationsdata",
            headers={"Authorization": f"Bearer {token.access_token}"},
        )
        payload = decode_json(resp)
        check_error(payload, resp.status_code, resp.reason)
        return decode_stations_data(payload)
