"""Protocol layer — captured requests, responses, headers and fingerprints."""

from fixturenet.protocol.deferred import Deferred
from fixturenet.protocol.fingerprint import identify, recording_id_for
from fixturenet.protocol.headers import HTTPHeaders
from fixturenet.protocol.models import (
    BEFORE_PERSIST,
    BEFORE_REPLAY,
    CapturedRequest,
    CapturedResponse,
    Disposition,
)

__all__ = [
    "BEFORE_PERSIST",
    "BEFORE_REPLAY",
    "CapturedRequest",
    "CapturedResponse",
    "Deferred",
    "Disposition",
    "HTTPHeaders",
    "identify",
    "recording_id_for",
]
