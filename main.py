"""Weather exporters — republish Netatmo and OpenWeather readings as Prometheus gauges.

Startup:
  1. Parse flags, load the optional .env file, read the JSON config
  2. For each enabled source: read credentials, build the client and its
     update cycle, register its gauges into the scrape registry
  3. Start one scheduler thread per source (first pass fires immediately)
  4. Serve /metrics until SIGINT/SIGTERM, then stop the schedulers at their
     sleep boundary and shut the HTTP server down
"""

import argparse
import logging
import os
import signal
import sys
import threading

from dotenv import load_dotenv
from prometheus_client import CollectorRegistry
from werkzeug.serving import make_server

import config
from collector import CurrentWeatherDataCycle, StationsDataCycle
from errors import ConfigError, RegistrationError
from resilience import HealthBook
from scheduler import Scheduler
from sources.netatmo import NetatmoClient, NetatmoOAuth
from sources.openweather import OpenWeatherClient
from web.app import InFlightRequests, create_app

log = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="weather-exporters",
        description="Prometheus exporter for Netatmo and OpenWeather data",
    )
    parser.add_argument("--addr", default=config.DEFAULT_ADDR,
                        help="Address to serve HTTP metrics on (default: %(default)s)")
    parser.add_argument("--config", default=config.DEFAULT_CONFIG_PATH,
                        help="Config file location (default: %(default)s)")
    parser.add_argument("--env-file", default="",
                        help="Environment variables file to load (dotenv)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: %(default)s)")
    return parser.parse_args(argv)


def load_env(env_file):
    if env_file:
        if not os.path.isfile(env_file):
            raise ConfigError(f"loading .env file: {env_file} does not exist")
        log.info("Loading environment variables from %s", env_file)
        load_dotenv(env_file)
    else:
        load_dotenv()


def setup_open_weather(cfg, health):
    """Build the OpenWeather update cycle, or None when disabled."""
    cwd = cfg.open_weather_current_weather_data
    if not cwd.enabled:
        log.info("OpenWeather Current Weather Data is disabled")
        return None

    (app_id,) = config.require_env(*config.OPEN_WEATHER_ENV)
    if not cwd.coords:
        log.warning("OpenWeather Current Weather Data has no coordinates configured")

    client = OpenWeatherClient(app_id)
    return CurrentWeatherDataCycle(client, cwd.coords, health=health)


def setup_netatmo(cfg, health):
    """Build the Netatmo update cycle, or None when disabled."""
    sd = cfg.netatmo_stations_data
    if not sd.enabled:
        log.info("Netatmo Stations Data is disabled")
        return None

    client_id, client_secret, username, password = config.require_env(*config.NETATMO_ENV)
    oauth = NetatmoOAuth(client_id, client_secret, username, password)
    return StationsDataCycle(NetatmoClient(oauth), health=health)


def build_schedulers(cfg, registry, health):
    """Register every enabled source and return its (not yet started) scheduler.

    A registration failure disables that source only.
    """
    sources = [
        (setup_open_weather(cfg, health), cfg.open_weather_current_weather_data.interval),
        (setup_netatmo(cfg, health), cfg.netatmo_stations_data.interval),
    ]

    schedulers = []
    for cycle, interval in sources:
        if cycle is None:
            continue
        try:
            cycle.gauges.register(registry)
        except RegistrationError as e:
            log.error("Not starting %s: %s", cycle.name, e)
            continue
        schedulers.append(Scheduler(cycle.name, cycle.update, interval))
    return schedulers


def serve(addr, app, schedulers, stop_event):
    """Serve app on addr until stop_event is set, then shut everything down."""
    host, port = config.parse_addr(addr)
    in_flight = InFlightRequests(app)
    server = make_server(host, port, in_flight, threaded=True)
    server_thread = threading.Thread(target=server.serve_forever, name="http", daemon=True)

    for s in schedulers:
        log.info("Starting %s update job", s.name)
        s.start()

    log.info("Starting HTTP server on %s", addr)
    server_thread.start()

    stop_event.wait()

    for s in schedulers:
        s.stop()

    log.info("Shutting down HTTP server")
    server.shutdown()
    server_thread.join(config.SHUTDOWN_GRACE_SECONDS)
    if not in_flight.wait_idle(config.SHUTDOWN_GRACE_SECONDS):
        log.warning("%d scrape request(s) still in flight at shutdown", in_flight.count)
    server.server_close()

    for s in schedulers:
        if not s.join(config.SHUTDOWN_GRACE_SECONDS):
            log.warning("%s pass still in flight at shutdown", s.name)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    stop_event = threading.Event()

    def on_signal(signum, frame):
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    try:
        load_env(args.env_file)
        log.info("Reading config file from %s", args.config)
        cfg = config.load_config(args.config)

        registry = CollectorRegistry()
        health = HealthBook()
        schedulers = build_schedulers(cfg, registry, health)
        serve(args.addr, create_app(registry, health), schedulers, stop_event)
    except ConfigError as e:
        log.error("Fatal error: %s", e)
        return 1
    except OSError as e:
        log.error("Fatal error: serving HTTP: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
