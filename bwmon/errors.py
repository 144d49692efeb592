"""Exception types raised by the measurement pipeline."""
from typing import Optional


class BwmonError(Exception):
    """Base class for all bwmon errors."""


class ConfigError(BwmonError):
    """Invalid configuration or unusable process environment."""


class SourceInitError(BwmonError):
    """The sample source could not be set up or list its endpoints."""


class MeasurementError(BwmonError):
    """The sample source failed while producing samples."""


class EmptySampleStreamError(BwmonError):
    """A measurement finished without producing a single sample."""


class LineProtocolError(BwmonError):
    """A line could not be decoded."""


class DeliveryError(BwmonError):
    """The database rejected a line or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
