from typing import Any, Optional


class AirQualityError(Exception):
    """Base class for air quality lookup errors"""


class ValidationError(AirQualityError, ValueError):
    """A caller-supplied argument is outside its allowed range"""

    def __init__(self, argument: str, value: Any, bound: str):
        self.argument = argument
        self.value = value
        self.bound = bound
        super().__init__(f"{argument} must be {bound}, got {value!r}")


class UpstreamError(AirQualityError):
    """The upstream air quality API failed or returned an unusable payload"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message if status is None else f"{message} (HTTP {status})")
