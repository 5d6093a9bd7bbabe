"""Shared plumbing for the upstream REST clients.

Every request goes through ``request()`` so that transport failures surface
as ``TransportError`` and a default timeout is always applied. No retry
adapter is mounted: a failing unit is skipped for the pass and picked up
again on the next one.
"""

import json
import logging
import math

import requests

import config
from errors import DecodeError, TransportError

log = logging.getLogger(__name__)

USER_AGENT = "weather-exporters/0.1"


def create_session():
    s = requests.Session()
    s.headers["User-Agent"] = USER_AGENT
    return s


def request(session, method, url, **kwargs):
    """Send one request. Returns the response regardless of HTTP status."""
    kwargs.setdefault("timeout", config.HTTP_TIMEOUT)
    try:
        return session.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise TransportError(f"sending HTTP {method} request to {url}: {e}") from e


def decode_json(resp):
    """Decode a response body as a JSON object."""
    body = resp.content
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"unmarshaling response body: {e}", body) from e
    if not isinstance(data, dict):
        raise DecodeError("unmarshaling response body: expected a JSON object", body)
    return data


def number(data, key):
    """Numeric field, absent or null decodes to 0.0. NaN and infinities are rejected."""
    val = data.get(key) if isinstance(data, dict) else None
    if val is None:
        return 0.0
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise DecodeError(f"field {key!r}: expected a number, got {val!r}")
    try:
        val = float(val)
    except OverflowError as e:
        raise DecodeError(f"field {key!r}: {e}") from e
    if not math.isfinite(val):
        raise DecodeError(f"field {key!r}: expected a finite number, got {val!r}")
    return val


def text(data, key):
    """String field, absent or null decodes to ''."""
    val = data.get(key) if isinstance(data, dict) else None
    return "" if val is None else str(val)


def section(data, key):
    """Nested object, absent or non-object decodes to {}."""
    val = data.get(key) if isinstance(data, dict) else None
    return val if isinstance(val, dict) else {}
