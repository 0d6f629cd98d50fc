"""Recording layer — HAR data model, entry builder, stores and the cache.

Recordings are HAR 1.2 logs keyed by recording id.  The RecordingCache sits
between the disposition engine and a pluggable Store and is the only
component that talks to the store.
"""

from fixturenet.recording.cache import PendingBucket, RecordingCache
from fixturenet.recording.entry import build_entry
from fixturenet.recording.filesystem import FilesystemStore
from fixturenet.recording.models import CREATOR_NAME, Entry, Recording
from fixturenet.recording.registry import StoreRegistry
from fixturenet.recording.rest import RestStore
from fixturenet.recording.store import InMemoryStore, SQLiteStore, Store

__all__ = [
    "CREATOR_NAME",
    "Entry",
    "FilesystemStore",
    "InMemoryStore",
    "PendingBucket",
    "Recording",
    "RecordingCache",
    "RestStore",
    "SQLiteStore",
    "Store",
    "StoreRegistry",
    "build_entry",
]
