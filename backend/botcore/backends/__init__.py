"""Concrete persistence gateway backends."""

from .json_file import JsonFileGateway
from .memory import MemoryGateway
from .postgres import PostgresGateway

__all__ = ["JsonFileGateway", "MemoryGateway", "PostgresGateway"]
