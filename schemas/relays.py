from datetime import datetime
from typing import Optional

from schemas.common import CamelModel


class RegisterRelayRequest(CamelModel):
    relay_id: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    public_key: Optional[str] = None

class RelayInfo(CamelModel):
    id: str
    location: str
    country: str
    status: str

class RelayStatus(CamelModel):
    id: str
    status: str
    registered_at: datetime
    uptime_seconds: float
    last_seen: datetime

class RelayResponse(CamelModel):
    success: bool = True
    relay: RelayInfo

class RelayListResponse(CamelModel):
    success: bool = True
    relays: list[RelayInfo]

class RelayStatusResponse(CamelModel):
    success: bool = True
    relay: RelayStatus
