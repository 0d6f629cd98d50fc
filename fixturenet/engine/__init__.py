"""Engine layer — request disposition, synthetic routes and the session."""

from fixturenet.engine.disposition import DispositionEngine, normalize_recorded_response
from fixturenet.engine.intercept import Interceptor, Route, RouteTable
from fixturenet.engine.session import FixtureSession

__all__ = [
    "DispositionEngine",
    "FixtureSession",
    "Interceptor",
    "Route",
    "RouteTable",
    "normalize_recorded_response",
]
