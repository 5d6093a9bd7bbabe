"""Shared fixtures: literal upstream payloads and a fresh scrape registry."""

import json

import pytest
from prometheus_client import CollectorRegistry

STATIONS_DATA_RESPONSE = """{
  "body": {
    "devices": [
      {
        "_id": "70:ee:50:80:26:fa",
        "date_setup": 1639335599,
        "last_setup": 1651169293,
        "type": "NAMain",
        "last_status_store": 1651477546,
        "firmware": 181,
        "wifi_status": 41,
        "reachable": true,
        "co2_calibrating": false,
        "data_type": ["Temperature", "CO2", "Humidity", "Noise", "Pressure"],
        "place": {
          "altitude": 395,
          "city": "Kranj",
          "country": "SI",
          "timezone": "Europe/Belgrade",
          "location": [14.3548565, 46.246113]
        },
        "station_name": "My home (Indoor)",
        "home_id": "61b646afb535277ce721d1a4",
        "home_name": "My home",
        "dashboard_data": {
          "time_utc": 1651477543,
          "Temperature": 20.9,
          "CO2": 762,
          "Humidity": 49,
          "Noise": 50,
          "Pressure": 1012,
          "AbsolutePressure": 965.5,
          "min_temp": 18.8,
          "max_temp": 28,
          "date_max_temp": 1651475120,
          "date_min_temp": 1651465946,
          "temp_trend": "down",
          "pressure_trend": "down"
        },
        "modules": [
          {
            "_id": "06:00:00:05:c6:48",
            "type": "NAModule2",
            "module_name": "Veternica",
            "last_setup": 1651333088,
            "data_type": ["Wind"],
            "battery_percent": 100,
            "reachable": true,
            "firmware": 25,
            "last_message": 1651477539,
            "last_seen": 1651477539,
            "rf_status": 74,
            "battery_vp": 6285,
            "dashboard_data": {
              "time_utc": 1651477539,
              "WindStrength": 1,
              "WindAngle": 270,
              "GustStrength": 5,
              "GustAngle": 23,
              "max_wind_str": 11,
              "max_wind_angle": 355,
              "date_max_wind_str": 1651467760
            }
          },
          {
            "_id": "02:00:00:7f:e6:96",
            "type": "NAModule1",
            "module_name": "Zunanji modul",
            "last_setup": 1651475006,
            "data_type": ["Temperature", "Humidity"],
            "battery_percent": 100,
            "reachable": true,
            "firmware": 50,
            "last_message": 1651477539,
            "last_seen": 1651477494,
            "rf_status": 87,
            "battery_vp": 6312,
            "dashboard_data": {
              "time_utc": 1651477494,
              "Temperature": 11.9,
              "Humidity": 91,
              "min_temp": 11.9,
              "max_temp": 20.8,
              "date_max_temp": 1651475085,
              "date_min_temp": 1651477494,
              "temp_trend": "down"
            }
          }
        ]
      }
    ],
    "user": {
      "mail": "someone@example.com",
      "administrative": {
        "lang": "en",
        "reg_locale": "en-US",
        "country": "SI",
        "unit": 0,
        "windunit": 0,
        "pressureunit": 2,
        "feel_like_algo": 0
      }
    }
  },
  "status": "ok",
  "time_exec": 0.08455610275268555,
  "time_server": 1651477647
}"""

CURRENT_WEATHER_RESPONSE = """{
  "coord": { "lon": 14.3556, "lat": 46.2389 },
  "weather": [
    {
      "id": 803,
      "main": "Clouds",
      "description": "broken clouds",
      "icon": "04d"
    }
  ],
  "base": "stations",
  "main": {
    "temp": 287.88,
    "feels_like": 287.29,
    "temp_min": 284.16,
    "temp_max": 289.04,
    "pressure": 1015,
    "humidity": 72
  },
  "visibility": 10000,
  "wind": { "speed": 3.6, "deg": 290 },
  "clouds": { "all": 75 },
  "dt": 1651487420,
  "sys": {
    "type": 1,
    "id": 6815,
    "country": "SI",
    "sunrise": 1651463259,
    "sunset": 1651515081
  },
  "timezone": 7200,
  "id": 3197378,
  "name": "Kranj",
  "cod": 200
}"""

STATION_LABELS = {
    "home_id": "61b646afb535277ce721d1a4",
    "home_name": "My home",
    "id": "70:ee:50:80:26:fa",
    "type": "NAMain",
    "station_name": "My home (Indoor)",
}
OUTDOOR_LABELS = {
    "home_id": "61b646afb535277ce721d1a4",
    "home_name": "My home",
    "id": "02:00:00:7f:e6:96",
    "type": "NAModule1",
    "module_name": "Zunanji modul",
}
WIND_LABELS = {
    "home_id": "61b646afb535277ce721d1a4",
    "home_name": "My home",
    "id": "06:00:00:05:c6:48",
    "type": "NAModule2",
    "module_name": "Veternica",
}
KRANJ_LABELS = {"id": "3197378", "name": "Kranj"}


def all_samples(registry):
    """{(name, frozenset(labels)): value} for every sample in registry."""
    return {
        (s.name, frozenset(s.labels.items())): s.value
        for family in registry.collect()
        for s in family.samples
    }


@pytest.fixture
def stations_data_payload():
    return json.loads(STATIONS_DATA_RESPONSE)


@pytest.fixture
def current_weather_payload():
    return json.loads(CURRENT_WEATHER_RESPONSE)


@pytest.fixture
def registry():
    return CollectorRegistry()
