"""
Adapters layer - Storage, cache, geocoding and sender implementations.
"""

from .cache import NullCache, TTLCache
from .geocoding import GeocodingClient
from .json_store import JsonFileStore
from .memory import InMemoryStore, RecordingEmailSender, RecordingNotificationSender
from .senders import LoggingEmailSender, LoggingNotificationSender

__all__ = [
    "GeocodingClient",
    "InMemoryStore",
    "JsonFileStore",
    "LoggingEmailSender",
    "LoggingNotificationSender",
    "NullCache",
    "RecordingEmailSender",
    "RecordingNotificationSender",
    "TTLCache",
]
