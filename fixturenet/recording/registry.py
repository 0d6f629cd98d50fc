"""Store registry.

Maps backend names to Store classes.  One registry is built at startup and
handed to each session; there is no module-level registration state, so
tests can register fakes without leaking them into other tests.

Usage::

    registry = StoreRegistry.with_builtins()
    registry.register(MyS3Store)
    store = registry.create("s3", bucket="fixtures")
"""

from __future__ import annotations

from typing import Any, Type

from fixturenet.exceptions import StoreNotFoundError
from fixturenet.logging import get_logger
from fixturenet.recording.filesystem import FilesystemStore
from fixturenet.recording.rest import RestStore
from fixturenet.recording.store import InMemoryStore, SQLiteStore, Store

log = get_logger(__name__)


class StoreRegistry:
    def __init__(self) -> None:
        self._classes: dict[str, Type[Store]] = {}

    @classmethod
    def with_builtins(cls) -> "StoreRegistry":
        registry = cls()
        for store_class in (InMemoryStore, FilesystemStore, SQLiteStore, RestStore):
            registry.register(store_class)
        return registry

    def register(self, store_class: Type[Store]) -> None:
        name = store_class.NAME
        if not name:
            raise ValueError(f"Store class {store_class.__name__} has no NAME.")
        if name in self._classes:
            log.warning("store_already_registered", name=name)
        self._classes[name] = store_class
        log.debug("store_registered", name=name)

    def get(self, name: str) -> Type[Store]:
        """Return the class registered under *name*.

        Raises:
            StoreNotFoundError: No backend with this name is registered.
        """
        try:
            return self._classes[name]
        except KeyError:
            raise StoreNotFoundError(name) from None

    def create(self, name: str, **options: Any) -> Store:
        """Instantiate the backend registered under *name* with *options*."""
        return self.get(name)(**options)

    def names(self) -> list[str]:
        return sorted(self._classes)

    def __contains__(self, name: object) -> bool:
        return name in self._classes
