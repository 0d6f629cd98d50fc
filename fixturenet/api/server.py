"""API layer — recordings server factory.

The server exposes a Store over HTTP under ``server.api_namespace`` so that
RestStore clients in other processes (or other machines) can share one
recordings directory.
"""

from __future__ import annotations

from fastapi import FastAPI

from fixturenet import __version__
from fixturenet.api.middleware import RecordingsTraceMiddleware, build_error_handler
from fixturenet.api.routes import health, recordings
from fixturenet.config import Settings, get_settings
from fixturenet.exceptions import ConfigurationError, FixtureNetError
from fixturenet.logging import configure_logging, get_logger
from fixturenet.recording.filesystem import FilesystemStore
from fixturenet.recording.store import Store

log = get_logger(__name__)


def _route_prefix(settings: Settings) -> str:
    segment = settings.server.api_namespace.strip("/")
    if not segment:
        raise ConfigurationError(
            "server.api_namespace must not be empty",
            context={"api_namespace": settings.server.api_namespace},
        )
    return "/" + segment


def create_app(settings: Settings | None = None, store: Store | None = None) -> FastAPI:
    """Build the recordings server.

    Args:
        settings: Defaults to ``get_settings()``.
        store:    Defaults to a FilesystemStore over
                  ``settings.server.recordings_dir``.  Tests inject an
                  InMemoryStore here.
    """
    settings = settings or get_settings()
    prefix = _route_prefix(settings)

    log_settings = settings.logging
    configure_logging(
        level=log_settings.level,
        format=log_settings.format,
        log_file=str(log_settings.file) if log_settings.file else None,
    )

    backing: Store = store or FilesystemStore(settings.server.recordings_dir)

    app = FastAPI(
        title="fixturenet recordings",
        description="HAR recordings served for fixturenet's REST store.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.store = backing

    app.add_middleware(RecordingsTraceMiddleware)
    app.add_exception_handler(FixtureNetError, build_error_handler())  # type: ignore[arg-type]
    app.include_router(health.router)
    app.include_router(recordings.router, prefix=prefix)

    @app.on_event("startup")
    async def open_store() -> None:
        await backing.init()
        log.info("recordings_server_ready", store=backing.NAME, prefix=prefix, version=__version__)

    @app.on_event("shutdown")
    async def close_store() -> None:
        await backing.close()
        log.info("recordings_server_closed", store=backing.NAME)

    return app
