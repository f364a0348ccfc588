import time
from dataclasses import dataclass, field
from typing import Optional

from access import AccessGate
from backend import EntityStore, build_backend
from broadcast import BroadcastFabric
from constants import Settings
from models import Clock, utcnow
from services.messages import MessageService
from services.relays import RelayRegistry
from services.rooms import RoomLifecycleManager
from sweeper import ExpirySweeper


@dataclass
class ChatRuntime:
    """Everything one relay process owns, wired once at startup."""

    settings: Settings
    store: EntityStore
    fabric: BroadcastFabric
    gate: AccessGate
    rooms: RoomLifecycleManager
    messages: MessageService
    relays: RelayRegistry
    sweeper: ExpirySweeper
    started_at: float = field(default_factory=time.monotonic)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at


def build_runtime(settings: Optional[Settings] = None, store: Optional[EntityStore] = None,
                  clock: Clock = utcnow) -> ChatRuntime:
    settings = settings or Settings.from_env()
    store = store or build_backend(settings, clock=clock)
    fabric = BroadcastFabric()
    gate = AccessGate(store)
    return ChatRuntime(
        settings=settings,
        store=store,
        fabric=fabric,
        gate=gate,
        rooms=RoomLifecycleManager(store, gate, fabric, settings, clock=clock),
        messages=MessageService(store, gate, fabric, settings, clock=clock),
        relays=RelayRegistry(clock=clock),
        sweeper=ExpirySweeper(store, fabric, interval_seconds=settings.sweep_interval_seconds),
    )
