"""Common shared schemas used across multiple domains."""

from typing import Optional

from pydantic import BaseModel, Field


class Position(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class ErrorResponse(BaseModel):
    """Body returned for typed pipeline errors."""
    error: str
    code: str
    detail: str
    request_id: Optional[str] = None
