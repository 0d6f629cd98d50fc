"""Request fingerprints and recording identifiers.

A fingerprint is the md5 of a stable JSON dump of the request parts selected
by ``MatchRequestsBy``.  Two requests with the same fingerprint inside one
recording are told apart by their ``order``.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from fixturenet.config import MatchRequestsBy, UrlMatchConfig
    from fixturenet.protocol.headers import HTTPHeaders

_SLUG_RE = re.compile(r"[^a-zA-Z0-9]+")


def stable_stringify(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()  # noqa: S324


def normalize_url(url: str, rules: "UrlMatchConfig") -> str:
    """Rebuild *url* keeping only the components enabled in *rules*."""
    parts = urlsplit(url)
    out = ""
    if rules.protocol and parts.scheme:
        out += f"{parts.scheme}:"
    if parts.netloc:
        out += "//"
        userinfo = ""
        if rules.username and parts.username:
            userinfo = parts.username
        if rules.password and parts.password:
            userinfo += f":{parts.password}"
        if userinfo:
            out += f"{userinfo}@"
        if rules.hostname and parts.hostname:
            out += parts.hostname
        if rules.port and parts.port is not None:
            out += f":{parts.port}"
    if rules.pathname:
        out += parts.path or "/"
    if rules.query and parts.query:
        out += f"?{parts.query}"
    if rules.hash and parts.fragment:
        out += f"#{parts.fragment}"
    return out


def identify(
    method: str,
    url: str,
    headers: "HTTPHeaders",
    body: str | None,
    rules: "MatchRequestsBy",
) -> tuple[str, dict[str, Any]]:
    """Return ``(fingerprint, identifiers)`` for a request."""
    identifiers: dict[str, Any] = {}

    if rules.method:
        identifiers["method"] = method.upper()

    identifiers["url"] = normalize_url(url, rules.url)

    if rules.headers:
        excluded = {name.lower() for name in rules.exclude_headers}
        identifiers["headers"] = {
            name: value for name, value in headers.items() if name not in excluded
        }

    if rules.body and body:
        identifiers["body"] = body

    return _md5(stable_stringify(identifiers)), identifiers


def _guid_for(segment: str) -> str:
    slug = _SLUG_RE.sub("-", segment).strip("-")
    return f"{slug}_{_md5(segment)}"


def recording_id_for(recording_name: str) -> str:
    """Map a recording name to a store-safe id.

    Each ``/``-separated segment becomes ``<slug>_<md5>`` so nested names
    produce nested ids (``"suite/test"`` -> ``"suite_<h1>/test_<h2>"``).
    """
    if not recording_name:
        raise ValueError("A recording name is required")
    return "/".join(_guid_for(segment) for segment in recording_name.split("/"))
