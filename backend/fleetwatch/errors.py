"""Error taxonomy shared by the ingestion path, the store and the API layer."""
from __future__ import annotations


class FleetWatchError(Exception):
    """Base class for all FleetWatch errors."""


class ValidationError(FleetWatchError, ValueError):
    """Malformed report or request payload. Dropped or rejected, never retried."""


class NotFoundError(FleetWatchError, LookupError):
    """Entity absent or a derived result unavailable.

    Query paths return None; the HTTP layer raises this to produce a 404.
    """

    def __init__(self, detail: str, reason: str = "not_found"):
        super().__init__(detail)
        self.detail = detail
        self.reason = reason


class DuplicateKeyError(FleetWatchError):
    """Store-level identity collision on station_id or registry_id."""

    def __init__(self, field: str, value: str):
        super().__init__(f"{field} {value!r} already exists")
        self.field = field
        self.value = value


class UpstreamConnectionError(FleetWatchError):
    """Report feed unreachable after the reconnect attempt cap."""


class DownstreamDeliveryError(FleetWatchError):
    """An observer could not accept an event; the observer is dropped."""


class ConfigurationError(FleetWatchError):
    """Startup-time configuration problem (e.g. missing feed token)."""
