"""Metric mapping tables and the gauge registry.

Each table is a tuple of MetricSpec entries: one gauge per entry, named
<namespace>_<subsystem>_<name>, whose value is the entry's extractor applied
to one decoded sample (a whole OpenWeather response, or one Netatmo
module's dashboard data). Tables are keyed by kind so the update cycle can
dispatch on the decoded module/response type.

Series are never removed: a label combination that stops appearing upstream
keeps its last value.
"""

import logging
from dataclasses import dataclass

from prometheus_client import Gauge

import config
from errors import RegistrationError

log = logging.getLogger(__name__)

# Kinds (table keys)
INDOOR = "indoor_module"
OUTDOOR = "outdoor_module"
WIND = "wind_module"
CURRENT_WEATHER = "current_weather"

STATION_LABELS = ("home_id", "home_name", "id", "type", "station_name")
MODULE_LABELS = ("home_id", "home_name", "id", "type", "module_name")
CURRENT_WEATHER_LABELS = ("id", "name")


@dataclass(frozen=True)
class MetricSpec:
    subsystem: str
    name: str
    documentation: str
    extract: object        # callable(sample) -> float


@dataclass(frozen=True)
class MetricTable:
    labelnames: tuple
    specs: tuple


# ---------------------------------------------------------------------------
# Netatmo
# ---------------------------------------------------------------------------
INDOOR_MODULE_TABLE = MetricTable(STATION_LABELS, (
    MetricSpec(INDOOR, "absolute_pressure", "Station level pressure (mbar)", lambda d: d.absolute_pressure),
    MetricSpec(INDOOR, "co2", "CO2 concentration (ppm)", lambda d: d.co2),
    MetricSpec(INDOOR, "humidity", "Indoor relative humidity (%)", lambda d: d.humidity),
    MetricSpec(INDOOR, "noise", "Noise level (dB)", lambda d: d.noise),
    MetricSpec(INDOOR, "pressure", "Sea level pressure (mbar)", lambda d: d.pressure),
    MetricSpec(INDOOR, "temperature", "Indoor temperature (C)", lambda d: d.temperature),
))

OUTDOOR_MODULE_TABLE = MetricTable(MODULE_LABELS, (
    MetricSpec(OUTDOOR, "humidity", "Outdoor relative humidity (%)", lambda d: d.humidity),
    MetricSpec(OUTDOOR, "temperature", "Outdoor temperature (C)", lambda d: d.temperature),
))

WIND_MODULE_TABLE = MetricTable(MODULE_LABELS, (
    MetricSpec(WIND, "gust_angle", "Direction of the last 5 min highest gust (degrees)", lambda d: d.gust_angle),
    MetricSpec(WIND, "gust_strength", "Speed of the last 5 min highest gust (km/h)", lambda d: d.gust_strength),
    MetricSpec(WIND, "wind_angle", "Wind direction (degrees)", lambda d: d.wind_angle),
    MetricSpec(WIND, "wind_strength", "Wind strength (km/h)", lambda d: d.wind_strength),
))

NETATMO_TABLES = {
    INDOOR: INDOOR_MODULE_TABLE,
    OUTDOOR: OUTDOOR_MODULE_TABLE,
    WIND: WIND_MODULE_TABLE,
}

# ---------------------------------------------------------------------------
# OpenWeather
# ---------------------------------------------------------------------------
CURRENT_WEATHER_TABLE = MetricTable(CURRENT_WEATHER_LABELS, (
    MetricSpec("main", "temp", "Temperature", lambda r: r.main.temp),
    MetricSpec("main", "feels_like", "Temperature accounting for human perception", lambda r: r.main.feels_like),
    MetricSpec("main", "temp_min", "Minimum temperature at the moment", lambda r: r.main.temp_min),
    MetricSpec("main", "temp_max", "Maximum temperature at the moment", lambda r: r.main.temp_max),
    MetricSpec("main", "pressure", "Atmospheric pressure (hPa)", lambda r: r.main.pressure),
    MetricSpec("main", "humidity", "Humidity (%)", lambda r: r.main.humidity),
    MetricSpec("wind", "speed", "Wind speed", lambda r: r.wind.speed),
    MetricSpec("wind", "deg", "Wind direction (degrees)", lambda r: r.wind.deg),
    MetricSpec("clouds", "all", "Cloudiness (%)", lambda r: r.clouds.all),
))

OPEN_WEATHER_TABLES = {
    CURRENT_WEATHER: CURRENT_WEATHER_TABLE,
}


def full_name(namespace, spec):
    return f"{namespace}_{spec.subsystem}_{spec.name}"


class GaugeRegistry:
    """Owns one labeled gauge per table entry for a single data source.

    Implements the prometheus_client collector protocol (describe/collect)
    so it can be registered into an explicit CollectorRegistry. Writes go
    through set()/apply(); each series is guarded by its own lock inside
    prometheus_client, so a scrape sees either the old or the new value.
    """

    def __init__(self, namespace, tables):
        self.namespace = namespace
        self.tables = tables
        self._registered = False
        self._by_kind = {}
        self._by_name = {}

        for kind, table in tables.items():
            entries = []
            for spec in table.specs:
                gauge = Gauge(
                    spec.name,
                    spec.documentation,
                    labelnames=table.labelnames,
                    namespace=namespace,
                    subsystem=spec.subsystem,
                    registry=None,
                )
                name = full_name(namespace, spec)
                if name in self._by_name:
                    raise RegistrationError(f"duplicate metric {name} in {namespace} tables")
                self._by_name[name] = (gauge, table.labelnames)
                entries.append((spec, gauge))
            self._by_kind[kind] = entries

    @classmethod
    def netatmo(cls):
        return cls(config.NETATMO_NAMESPACE, NETATMO_TABLES)

    @classmethod
    def open_weather(cls):
        return cls(config.OPEN_WEATHER_NAMESPACE, OPEN_WEATHER_TABLES)

    def gauges(self):
        return [gauge for entries in self._by_kind.values() for _, gauge in entries]

    def names(self):
        return sorted(self._by_name)

    def register(self, registry):
        """Register into registry. Returns the underlying gauges.

        Allowed once per instance; a second call, or a name clash inside
        registry, raises RegistrationError.
        """
        if self._registered:
            raise RegistrationError(f"{self.namespace} gauges are already registered")
        try:
            registry.register(self)
        except ValueError as e:
            raise RegistrationError(f"registering {self.namespace} gauges: {e}") from e
        self._registered = True
        return self.gauges()

    def describe(self):
        for gauge in self.gauges():
            yield from gauge.describe()

    def collect(self):
        for gauge in self.gauges():
            yield from gauge.collect()

    def set(self, metric_name, labels, value):
        """Overwrite the value of one series, creating it on first use."""
        try:
            gauge, labelnames = self._by_name[metric_name]
        except KeyError:
            raise KeyError(f"unknown metric {metric_name}") from None
        gauge.labels(**{k: labels[k] for k in labelnames}).set(value)

    def apply(self, kind, sample, labels):
        """Run every extractor of the kind's table on sample. Returns the number of writes."""
        writes = 0
        for spec, gauge in self._by_kind[kind]:
            gauge.labels(**labels).set(spec.extract(sample))
            writes += 1
        return writes
