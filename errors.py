"""Error types for the DSMR metrics exporter"""


class ExporterError(Exception):
    """Base class for all exporter errors"""


class ConfigError(ExporterError):
    """Required configuration is missing or invalid; fatal at startup"""


class UpstreamUnavailable(ExporterError):
    """The DSMR logger could not be reached or answered with a non-success status"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ExporterError):
    """The DSMR logger response was not the expected JSON shape"""
