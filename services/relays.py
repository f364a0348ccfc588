from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from errors import NotFoundError
from logging_config import get_logger
from models import Clock, utcnow
from validation import require_text

logger = get_logger(__name__)


@dataclass
class Relay:
    relay_id: str
    location: str
    country: str
    public_key: Optional[str]
    registered_at: datetime
    status: str = "active"


class RelayRegistry:
    """Process-local directory of relay nodes clients may route through."""

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._relays: Dict[str, Relay] = {}

    def register(self, relay_id: Optional[str], location: Optional[str], country: Optional[str],
                 public_key: Optional[str] = None) -> Relay:
        relay = Relay(
            relay_id=require_text(relay_id, "relayId"),
            location=require_text(location, "location"),
            country=require_text(country, "country"),
            public_key=public_key,
            registered_at=self.clock(),
        )
        replaced = relay.relay_id in self._relays
        self._relays[relay.relay_id] = relay
        logger.info(f"Relay {relay.relay_id} {'re-registered' if replaced else 'registered'} ({relay.location}, {relay.country})")
        return relay

    def list(self) -> List[Relay]:
        return list(self._relays.values())

    def get(self, relay_id: str) -> Relay:
        relay = self._relays.get(relay_id)
        if relay is None:
            raise NotFoundError("Relay not found")
        return relay
