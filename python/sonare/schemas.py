"""Pydantic schemas for Sonare API requests and responses."""

from pydantic import BaseModel


class LeadCreate(BaseModel):
    """Lead-capture form payload.

    ``hours_est`` and ``store_count`` arrive from form inputs, so numeric
    strings such as ``"12"`` are accepted.
    """
    name: str = ""
    business: str = ""
    system: str = ""
    email: str = ""
    message: str = ""
    palette: str = ""
    hours_est: int = 0
    store_count: int = 0


class LeadAck(BaseModel):
    status: str = "received"


class PreviewSources(BaseModel):
    open: str = ""
    peak: str = ""
    offpeak: str = ""
    close: str = ""
    beacon: str = ""


class PreviewSourcesResponse(BaseModel):
    """Preview catalog for one normalized palette."""
    palette: str
    sources: PreviewSources


class HealthResponse(BaseModel):
    status: str
    db: str
