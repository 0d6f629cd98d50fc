"""Unit tests — HTTPHeaders case-insensitive multimap."""

from __future__ import annotations

import pytest

from fixturenet.protocol.headers import HTTPHeaders


@pytest.mark.unit
class TestHTTPHeaders:
    def test_keys_are_lower_cased(self) -> None:
        headers = HTTPHeaders({"Content-Type": "text/plain"})
        assert list(headers) == ["content-type"]
        assert headers["CONTENT-TYPE"] == "text/plain"
        assert "Content-type" in headers

    def test_assigning_none_removes_header(self) -> None:
        headers = HTTPHeaders({"X-Trace": "1"})
        headers["x-trace"] = None
        assert "x-trace" not in headers
        assert len(headers) == 0

    def test_none_values_skipped_on_construction(self) -> None:
        headers = HTTPHeaders({"A": "1", "B": None})
        assert headers.to_dict() == {"a": "1"}

    def test_list_values_kept_as_lists(self) -> None:
        headers = HTTPHeaders({"Set-Cookie": ["a=1", "b=2"]})
        assert headers["set-cookie"] == ["a=1", "b=2"]

    def test_add_turns_single_value_into_list(self) -> None:
        headers = HTTPHeaders()
        headers.add("Accept", "text/html")
        assert headers["accept"] == "text/html"
        headers.add("ACCEPT", "application/json")
        assert headers["accept"] == ["text/html", "application/json"]
        headers.add("accept", "*/*")
        assert headers["accept"] == ["text/html", "application/json", "*/*"]

    def test_first(self) -> None:
        headers = HTTPHeaders({"Via": ["a", "b"], "Host": "example.com"})
        assert headers.first("via") == "a"
        assert headers.first("host") == "example.com"
        assert headers.first("missing") is None

    def test_copy_is_independent(self) -> None:
        headers = HTTPHeaders({"Via": ["a"]})
        clone = headers.copy()
        clone.add("via", "b")
        assert headers["via"] == ["a"]
        assert clone["via"] == ["a", "b"]

    def test_accepts_pairs(self) -> None:
        headers = HTTPHeaders([("X-A", "1"), ("X-B", "2")])
        assert headers.to_dict() == {"x-a": "1", "x-b": "2"}

    def test_non_string_key_not_contained(self) -> None:
        assert 1 not in HTTPHeaders({"a": "1"})

    def test_values_coerced_to_str(self) -> None:
        headers = HTTPHeaders({"Content-Length": 5})
        assert headers["content-length"] == "5"
