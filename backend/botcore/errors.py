"""Error types raised across the dispatch core."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Why a dispatch ended the way it did."""

    PARSE_SKIP = "parse_skip"
    UNKNOWN_COMMAND = "unknown_command"
    PERMISSION_DENIED = "permission_denied"
    ON_COOLDOWN = "on_cooldown"
    USAGE = "usage"
    HANDLER_ERROR = "handler_error"
    PERSISTENCE_UNAVAILABLE = "persistence_unavailable"
    TIMEOUT = "timeout"


class BotCoreError(Exception):
    """Base class for dispatch core errors."""


class DuplicateCommand(BotCoreError):
    """A static command name (or alias) was registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Command '{name}' is already registered")
        self.name = name


class ReservedName(BotCoreError):
    """A custom command tried to take the name of a static command."""

    def __init__(self, name: str) -> None:
        super().__init__(f"'{name}' is reserved by a built-in command")
        self.name = name


class InvalidCommandName(BotCoreError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid command name: {name!r}")
        self.name = name


class PersistenceUnavailable(BotCoreError):
    """The backing store could not be reached or failed mid-operation."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause else "unavailable"
        super().__init__(f"Persistence error during {operation} ({detail})")
        self.operation = operation
        self.cause = cause


class UsageError(BotCoreError):
    """Raised by handlers when arguments are missing or malformed.

    The message is sent back to the user as-is.
    """
