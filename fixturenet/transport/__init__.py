"""Capture adapters that route a client's requests through a FixtureSession."""

from fixturenet.transport.httpx_adapter import FixtureTransport

__all__ = ["FixtureTransport"]
