from typing import Optional
from pydantic import BaseModel


class IngestCommand(BaseModel):
    identifier: str
    payload: Optional[str] = None


class ReadCommand(BaseModel):
    identifier: str


class HealthResponse(BaseModel):
    uptime_sec: int
    identifiers: int
    clients: int
