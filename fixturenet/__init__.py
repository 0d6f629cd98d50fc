"""fixturenet — record and replay outbound HTTP traffic for deterministic tests.

Requests captured by an adapter are disposed of by the engine: passed
through, answered by a synthetic route, recorded to a store, or replayed
from a HAR recording.
"""

__version__ = "0.1.0"

from fixturenet.config import Mode, RequestConfig, Settings, get_settings  # noqa: E402
from fixturenet.engine import DispositionEngine, FixtureSession, Interceptor, RouteTable  # noqa: E402
from fixturenet.recording import (  # noqa: E402
    FilesystemStore,
    InMemoryStore,
    RestStore,
    SQLiteStore,
    Store,
    StoreRegistry,
)
from fixturenet.timing import Timing  # noqa: E402
from fixturenet.transport import FixtureTransport  # noqa: E402

__all__ = [
    "DispositionEngine",
    "FilesystemStore",
    "FixtureSession",
    "FixtureTransport",
    "InMemoryStore",
    "Interceptor",
    "Mode",
    "RequestConfig",
    "RestStore",
    "RouteTable",
    "SQLiteStore",
    "Settings",
    "Store",
    "StoreRegistry",
    "Timing",
    "__version__",
    "get_settings",
]
