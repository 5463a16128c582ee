"""Twitch connector: forwards chat messages to the dispatch engine."""

from .bot import TwitchBot, event_from_chat_message

__all__ = ["TwitchBot", "event_from_chat_message"]
