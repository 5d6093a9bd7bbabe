"""Tests for the Netatmo OAuth/client and the stations data decoder."""

from unittest.mock import Mock
from urllib.parse import parse_qs

import pytest
import requests

from errors import DecodeError, TransportError, UpstreamError
from sources import netatmo
from sources.netatmo import (
    NetatmoClient,
    NetatmoOAuth,
    OAuthToken,
    OutdoorModuleData,
    WindModuleData,
    decode_stations_data,
)

from conftest import STATIONS_DATA_RESPONSE

API_URL = "https://netatmo.test/api"
OAUTH_URL = "https://netatmo.test/oauth2"

TOKEN = OAuthToken(access_token="f1894h0quehf", expires_in=3600, refresh_token="1uu01huiefffa")


def fake_oauth():
    oauth = Mock()
    oauth.token.return_value = TOKEN
    return oauth


class TestDecodeStationsData:
    """Tests for decode_stations_data."""

    def test_device_tree(self, stations_data_payload):
        data = decode_stations_data(stations_data_payload)

        assert len(data.devices) == 1
        device = data.devices[0]
        assert device.id == "70:ee:50:80:26:fa"
        assert device.type == "NAMain"
        assert device.station_name == "My home (Indoor)"
        assert device.home_id == "61b646afb535277ce721d1a4"
        assert device.home_name == "My home"
        assert device.dashboard.temperature == 20.9
        assert device.dashboard.co2 == 762
        assert device.dashboard.humidity == 49
        assert device.dashboard.noise == 50
        assert device.dashboard.pressure == 1012
        assert device.dashboard.absolute_pressure == 965.5
        assert device.dashboard.pressure_trend == "down"

    def test_module_type_selects_dashboard_layout(self, stations_data_payload):
        wind, outdoor = decode_stations_data(stations_data_payload).devices[0].modules

        assert wind.type == "NAModule2"
        assert wind.module_name == "Veternica"
        assert isinstance(wind.dashboard, WindModuleData)
        assert wind.dashboard.wind_strength == 1
        assert wind.dashboard.wind_angle == 270
        assert wind.dashboard.gust_strength == 5
        assert wind.dashboard.gust_angle == 23

        assert outdoor.type == "NAModule1"
        assert isinstance(outdoor.dashboard, OutdoorModuleData)
        assert outdoor.dashboard.temperature == 11.9
        assert outdoor.dashboard.humidity == 91

    def test_unsupported_module_type_is_kept_without_dashboard(self, stations_data_payload, caplog):
        modules = stations_data_payload["body"]["devices"][0]["modules"]
        modules.append({
            "_id": "05:00:00:00:00:01",
            "type": "NAModule3",
            "module_name": "Rain gauge",
            "dashboard_data": {"Rain": 0.1},
        })

        with caplog.at_level("WARNING", logger="sources.netatmo"):
            data = decode_stations_data(stations_data_payload)

        rain = data.devices[0].modules[2]
        assert rain.type == "NAModule3"
        assert rain.dashboard is None
        assert "Unsupported module type: NAModule3" in caplog.text
        # siblings unaffected
        assert isinstance(data.devices[0].modules[0].dashboard, WindModuleData)

    def test_missing_numeric_fields_decode_to_zero(self):
        data = decode_stations_data({
            "body": {"devices": [{"_id": "x", "type": "NAMain", "dashboard_data": {"Temperature": 3.5}}]},
            "status": "ok",
        })
        dashboard = data.devices[0].dashboard
        assert dashboard.temperature == 3.5
        assert dashboard.co2 == 0.0
        assert dashboard.noise == 0.0
        assert data.devices[0].modules == ()

    def test_zero_devices(self):
        assert decode_stations_data({"body": {"devices": []}, "status": "ok"}).devices == ()
        assert decode_stations_data({"status": "ok"}).devices == ()

    def test_error_payload(self):
        with pytest.raises(UpstreamError) as exc:
            decode_stations_data({"error": {"code": 123, "message": "something went wrong"}})
        assert exc.value.code == 123
        assert exc.value.message == "something went wrong"

    def test_non_numeric_measurement(self):
        with pytest.raises(DecodeError):
            decode_stations_data({"body": {"devices": [
                {"_id": "x", "type": "NAMain", "dashboard_data": {"Temperature": "warm"}},
            ]}})


class TestNetatmoOAuth:
    """Tests for the password grant token exchange."""

    def test_token(self, requests_mock):
        requests_mock.post(f"{OAUTH_URL}/token", json={
            "access_token": "i2c34r3480rc8n02yu34uhf",
            "expires_in": 3600,
            "refresh_token": "2423u-9fc-8y2y8-9fy",
        })
        oauth = NetatmoOAuth("my-clientID", "my-clientSecret", "my-username", "my-password", url=OAUTH_URL)

        token = oauth.token("my-scope")

        assert token == OAuthToken(
            access_token="i2c34r3480rc8n02yu34uhf",
            expires_in=3600,
            refresh_token="2423u-9fc-8y2y8-9fy",
        )
        req = requests_mock.last_request
        assert req.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert parse_qs(req.text) == {
            "grant_type": ["password"],
            "client_id": ["my-clientID"],
            "client_secret": ["my-clientSecret"],
            "username": ["my-username"],
            "password": ["my-password"],
            "scope": ["my-scope"],
        }

    def test_invalid_grant(self, requests_mock):
        requests_mock.post(f"{OAUTH_URL}/token", status_code=400, json={"error": "invalid_grant"})
        oauth = NetatmoOAuth("id", "secret", "user", "wrong", url=OAUTH_URL)

        with pytest.raises(UpstreamError) as exc:
            oauth.token("read_station")
        assert exc.value.code == 400
        assert exc.value.message == "invalid_grant"

    def test_malformed_body(self, requests_mock):
        requests_mock.post(f"{OAUTH_URL}/token", text="<html>bad gateway</html>")
        oauth = NetatmoOAuth("id", "secret", "user", "pass", url=OAUTH_URL)

        with pytest.raises(DecodeError) as exc:
            oauth.token("read_station")
        assert "bad gateway" in str(exc.value)


class TestNetatmoClient:
    """Tests for NetatmoClient.stations_data."""

    def test_stations_data(self, requests_mock):
        requests_mock.get(f"{API_URL}/getstationsdata", text=STATIONS_DATA_RESPONSE)
        oauth = fake_oauth()
        client = NetatmoClient(oauth, url=API_URL)

        data = client.stations_data()

        oauth.token.assert_called_once_with("read_station")
        assert requests_mock.last_request.headers["Authorization"] == "Bearer f1894h0quehf"
        assert data.devices[0].station_name == "My home (Indoor)"

    def test_fresh_token_every_call(self, requests_mock):
        requests_mock.get(f"{API_URL}/getstationsdata", text=STATIONS_DATA_RESPONSE)
        oauth = fake_oauth()
        client = NetatmoClient(oauth, url=API_URL)

        client.stations_data()
        client.stations_data()

        assert oauth.token.call_count == 2

    def test_error_payload(self, requests_mock):
        requests_mock.get(f"{API_URL}/getstationsdata", json={
            "error": {"code": 123, "message": "something went wrong"},
        })
        client = NetatmoClient(fake_oauth(), url=API_URL)

        with pytest.raises(UpstreamError) as exc:
            client.stations_data()
        assert exc.value == UpstreamError(netatmo.PROVIDER, 123, "something went wrong")

    def test_error_payload_with_http_status(self, requests_mock):
        requests_mock.get(f"{API_URL}/getstationsdata", status_code=403, json={
            "error": {"code": 3, "message": "Access token expired"},
        })
        client = NetatmoClient(fake_oauth(), url=API_URL)

        with pytest.raises(UpstreamError) as exc:
            client.stations_data()
        assert exc.value.code == 3

    def test_transport_error(self, requests_mock):
        requests_mock.get(f"{API_URL}/getstationsdata", exc=requests.exceptions.ConnectTimeout)
        client = NetatmoClient(fake_oauth(), url=API_URL)

        with pytest.raises(TransportError):
            client.stations_data()

    def test_token_failure_propagates(self, requests_mock):
        oauth = Mock()
        oauth.token.side_effect = UpstreamError(netatmo.PROVIDER, 400, "invalid_grant")
        client = NetatmoClient(oauth, url=API_URL)

        with pytest.raises(UpstreamError):
            client.stations_data()
        assert not requests_mock.called
