"""Update cycles — one polling pass per data source.

Each pass:
  1. Enumerate work units (one per coordinate pair, or one for all Netatmo stations)
  2. Fetch every unit concurrently, one thread per unit, no cap
  3. Join: wait for every fetch to finish before touching any gauge
  4. Apply each successful result through the source's mapping tables
  5. Log per-unit failures and the pass duration

A pass never raises. A failing unit keeps its previously published series.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial

import metrics
from resilience import guarded
from sources import netatmo

log = logging.getLogger(__name__)


@dataclass
class PassSummary:
    units: int = 0
    succeeded: int = 0
    failed: int = 0
    writes: int = 0
    duration: float = 0.0     # seconds


class UpdateCycle:
    """Fan-out/join skeleton shared by the data sources.

    Subclasses provide work_units(), unit_name(), fetch() and apply().
    """

    name = "update"

    def __init__(self, gauges, health=None):
        self.gauges = gauges
        self.health = health

    def work_units(self):
        raise NotImplementedError

    def unit_name(self, unit):
        raise NotImplementedError

    def fetch(self, unit):
        raise NotImplementedError

    def apply(self, unit, sample):
        raise NotImplementedError

    def fetch_all(self, units):
        """Fetch all units in parallel. Returns [(unit, sample, error)] in unit order."""
        if not units:
            return []
        with ThreadPoolExecutor(max_workers=len(units), thread_name_prefix=self.name) as pool:
            futures = [
                pool.submit(guarded, partial(self.fetch, unit), self.unit_name(unit), self.health)
                for unit in units
            ]
            # join point: nothing is published until every fetch has returned
            outcomes = [f.result() for f in futures]
        return [(unit, sample, err) for unit, (sample, err) in zip(units, outcomes)]

    def update(self):
        """Run one pass. Returns a PassSummary, never raises."""
        start = time.monotonic()
        units = list(self.work_units())
        summary = PassSummary(units=len(units))

        log.info("Fetching %s (%d work unit(s))", self.name, len(units))

        for unit, sample, err in self.fetch_all(units):
            if err is not None:
                summary.failed += 1
                continue
            try:
                summary.writes += self.apply(unit, sample)
            except Exception:
                summary.failed += 1
                log.exception("%s: applying fetched data failed", self.unit_name(unit))
                continue
            summary.succeeded += 1

        summary.duration = time.monotonic() - start
        log.info("Updated %s: %d/%d unit(s) ok, %d series written, took %.3fs",
                 self.name, summary.succeeded, summary.units, summary.writes, summary.duration)
        return summary


class StationsDataCycle(UpdateCycle):
    """Netatmo: one combined fetch covering every station of the account."""

    name = "netatmo_stations_data"

    # Module type tag -> mapping table kind
    MODULE_KINDS = {
        netatmo.DEVICE_TYPE_OUTDOOR: metrics.OUTDOOR,
        netatmo.DEVICE_TYPE_WIND: metrics.WIND,
    }

    def __init__(self, client, gauges=None, health=None):
        super().__init__(gauges or metrics.GaugeRegistry.netatmo(), health)
        self.client = client

    def work_units(self):
        return ["all_stations"]

    def unit_name(self, unit):
        return f"netatmo/{unit}"

    def fetch(self, unit):
        return self.client.stations_data()

    def apply(self, unit, stations_data):
        writes = 0
        for device in stations_data.devices:
            station_labels = {
                "home_id": device.home_id,
                "home_name": device.home_name,
                "id": device.id,
                "type": device.type,
                "station_name": device.station_name,
            }
            writes += self.gauges.apply(metrics.INDOOR, device.dashboard, station_labels)
            log.info("Processed dashboard data of %s device %s (%s)",
                     device.type, device.station_name, device.id)

            for module in device.modules:
                kind = self.MODULE_KINDS.get(module.type)
                if kind is None or module.dashboard is None:
                    continue
                module_labels = {
                    "home_id": device.home_id,
                    "home_name": device.home_name,
                    "id": module.id,
                    "type": module.type,
                    "module_name": module.module_name,
                }
                writes += self.gauges.apply(kind, module.dashboard, module_labels)
                log.info("Processed dashboard data of %s module %s (%s)",
                         module.type, module.module_name, module.id)
        return writes


class CurrentWeatherDataCycle(UpdateCycle):
    """OpenWeather: one fetch per configured coordinate pair."""

    name = "open_weather_current_weather_data"

    def __init__(self, client, coords, gauges=None, health=None):
        super().__init__(gauges or metrics.GaugeRegistry.open_weather(), health)
        self.client = client
        self.coords = tuple(coords)

    def work_units(self):
        return self.coords

    def unit_name(self, coords):
        return f"openweather/{coords}"

    def fetch(self, coords):
        return self.client.current_weather_data(coords)

    def apply(self, coords, data):
        labels = {"id": str(data.id), "name": data.name}
        writes = self.gauges.apply(metrics.CURRENT_WEATHER, data, labels)
        log.info("Processed current weather data of %s (%s) at %s", data.name, data.id, coords)
        return writes
