"""Exception taxonomy shared by the upstream clients and the update cycle."""


class ExporterError(Exception):
    """Base class for everything the exporter raises on purpose."""


class ConfigError(ExporterError):
    """Config file or environment is missing or invalid. Fatal at startup."""


class RegistrationError(ExporterError):
    """A collector could not be registered (duplicate metric names)."""


class TransportError(ExporterError):
    """Network, DNS or timeout failure talking to an upstream API."""


class DecodeError(ExporterError):
    """Upstream returned a body that is not valid JSON."""

    def __init__(self, message, body=b""):
        super().__init__(message)
        self.body = body

    def __str__(self):
        body = self.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        return f"{self.args[0]}, content: {body[:500]}"


class UpstreamError(ExporterError):
    """Provider answered with a structured error payload."""

    def __init__(self, provider, code, message):
        super().__init__(f"{provider}: code={code} msg={message}")
        self.provider = provider
        self.code = code
        self.message = message

    def __eq__(self, other):
        if not isinstance(other, UpstreamError):
            return NotImplemented
        return (self.provider, self.code, self.message) == (other.provider, other.code, other.message)

    def __hash__(self):
        return hash((self.provider, self.code, self.message))
