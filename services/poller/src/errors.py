class PollerError(Exception):
    """Base class for poller failures."""


class ConfigurationError(PollerError):
    """Required configuration is missing or invalid. Fatal at startup."""


class ParseFailure(PollerError):
    """Upstream device fields could not be parsed (schema drift)."""


class UpstreamUnavailable(PollerError):
    """Transport or HTTP failure while talking to the monitoring API."""


class EnrichmentFailure(PollerError):
    """Weather lookup failed. Never fatal for the cycle."""


class DeliveryFailure(PollerError):
    """Sink write or submission failed. The reading is dropped."""


class SkipCycle(Exception):
    """No plant or device data this cycle. Not an error."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
