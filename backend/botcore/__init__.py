"""Platform-agnostic command dispatch core shared by the chat connectors."""

from .config import DispatchSettings, get_settings
from .dispatcher import DispatchPolicy, DispatchResult, DispatchState, Dispatcher
from .engine import Engine, build_engine
from .models import ChatEvent, Reply, UserRef

__all__ = [
    "ChatEvent",
    "DispatchPolicy",
    "DispatchResult",
    "DispatchSettings",
    "DispatchState",
    "Dispatcher",
    "Engine",
    "Reply",
    "UserRef",
    "build_engine",
    "get_settings",
]
