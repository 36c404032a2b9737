"""Errors shared by the geocoding clients."""

from __future__ import annotations


class GeocodingError(RuntimeError):
    """Base error for geocoding client failures."""

    def __init__(self, message: str, code: str = "GEOCODING_ERROR") -> None:
        super().__init__(message)
        self.code = code


class GeocodingRateLimitError(GeocodingError):
    """Raised when the provider reports quota exhaustion or HTTP 429."""

    def __init__(self, message: str = "Geocoding quota exhausted") -> None:
        super().__init__(message, code="GEOCODING_429")


class GeocodingTimeoutError(GeocodingError):
    """Raised when a geocoding request times out."""

    def __init__(self, message: str = "Geocoding request timed out") -> None:
        super().__init__(message, code="GEOCODING_TIMEOUT")


class GeocodingSchemaError(GeocodingError):
    """Raised when a geocoding response cannot be interpreted."""

    def __init__(self, message: str = "Unexpected geocoding response schema") -> None:
        super().__init__(message, code="GEOCODING_SCHEMA_ERR")
