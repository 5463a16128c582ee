"""Discord connector: forwards guild messages to the dispatch engine."""

from .bot import DispatchClient, event_from_message

__all__ = ["DispatchClient", "event_from_message"]
