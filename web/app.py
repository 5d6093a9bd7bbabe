"""Flask app serving the Prometheus scrape endpoint.

Reads only: every request renders the current state of the registry. The
update cycles write into the same gauges from their own threads.
"""

import logging
import threading

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from werkzeug.wsgi import ClosingIterator

log = logging.getLogger(__name__)

INDEX_HTML = """<html>
<head><title>Weather Exporters</title></head>
<body>
<h1>Weather Exporters</h1>
<p><a href="/metrics">Metrics</a></p>
<p><a href="/api/health">Health</a></p>
</body>
</html>
"""


class InFlightRequests:
    """WSGI middleware that counts requests whose response is not closed yet.

    Lets shutdown wait a bounded time for scrapes that are still being
    written out; werkzeug's request threads are daemons and are not joined.
    """

    def __init__(self, app):
        self.app = app
        self.count = 0
        self._cond = threading.Condition()

    def __call__(self, environ, start_response):
        with self._cond:
            self.count += 1
        try:
            body = self.app(environ, start_response)
        except Exception:
            self._done()
            raise
        return ClosingIterator(body, self._done)

    def _done(self):
        with self._cond:
            self.count -= 1
            self._cond.notify_all()

    def wait_idle(self, timeout):
        """Block until no request is in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self.count == 0, timeout)


def create_app(registry, health=None):
    """Build the app around an explicit CollectorRegistry and optional HealthBook."""
    app = Flask(__name__)

    @app.route("/")
    def index():
        return Response(INDEX_HTML, mimetype="text/html")

    @app.route("/metrics")
    def metrics():
        try:
            body = generate_latest(registry)
        except Exception:
            log.exception("Error rendering metrics")
            return Response("error rendering metrics\n", status=500, mimetype="text/plain")
        return Response(body, headers={"Content-Type": CONTENT_TYPE_LATEST})

    @app.route("/api/health")
    def api_health():
        units = health.snapshot() if health is not None else []
        return jsonify({
            "ok": all(u["consecutive_failures"] == 0 for u in units),
            "units": units,
        })

    return app
