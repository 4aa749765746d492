"""In-memory stand-ins for the transport and the event loop."""

from .scheduler import ManualScheduler, ManualTimer
from .transport import LoopbackChannel, LoopbackNetwork, LoopbackRegistration

__all__ = [
    "LoopbackChannel",
    "LoopbackNetwork",
    "LoopbackRegistration",
    "ManualScheduler",
    "ManualTimer",
]
