"""Pydantic schemas for API responses outside the search core."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned when a request fails inside the search core."""

    success: bool = False
    error: str
    message: str


class FrameworkInfo(BaseModel):
    """A registered framework and where its documentation comes from."""

    name: str
    type: str
    source: str
    docs_url: str | None = None
    latest_version_url: str | None = None
