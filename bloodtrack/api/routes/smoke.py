"""Smoke Probes — unversioned operational checks outside the versioned API paths.

Invariants:
    - GET /smoke/ping returns {"status": "ok", "service": <service_name>}
    - GET /smoke/whoami returns the running service name as plain text
    - Neither probe touches the database
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from bloodtrack.config import Settings, get_settings

router = APIRouter(prefix="/smoke", tags=["smoke"])


class PingResponse(BaseModel):
    status: str
    service: str


@router.get("/ping", response_model=PingResponse)
async def ping(settings: Settings = Depends(get_settings)):
    """Lightweight health ping."""
    return PingResponse(status="ok", service=settings.service_name)


@router.get("/whoami", response_class=PlainTextResponse)
async def whoami(settings: Settings = Depends(get_settings)):
    """Service identity."""
    return settings.service_name
