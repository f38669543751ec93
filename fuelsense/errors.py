"""
Error taxonomy for the weather-routing pipeline.

InvalidInput is fatal and never retried. UpstreamUnavailable is retried
when transient and then degrades to an estimate. StructuralResponse is
never retried and degrades to an estimate immediately.
"""
from typing import Optional


class FuelSenseError(Exception):
    """Base class for all pipeline errors."""

    code = "FUELSENSE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "code": self.code, "detail": self.message}


class InvalidInput(FuelSenseError):
    """Malformed or out-of-range request."""

    code = "VALIDATION_ERROR"


class UpstreamUnavailable(FuelSenseError):
    """Forecast provider could not be reached or answered with an error status."""

    code = "UPSTREAM_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class StructuralResponse(FuelSenseError):
    """Provider answered with a payload the parser cannot use."""

    code = "STRUCTURAL_RESPONSE"


class PipelineCancelled(FuelSenseError):
    """Caller cancelled the run while forecast calls were in flight."""

    code = "CANCELLED"
