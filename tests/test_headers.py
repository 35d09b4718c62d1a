"""Tests for perch.http.headers — case-insensitive Headers."""

import pytest

from perch.http.headers import Headers


class TestHeaders:
    def test_case_insensitive_lookup(self) -> None:
        h = Headers(((b"Content-Type", b"application/json"),))
        assert h["content-type"] == "application/json"
        assert h["CONTENT-TYPE"] == "application/json"
        assert "Content-Type" in h

    def test_missing_raises(self) -> None:
        with pytest.raises(KeyError):
            Headers()["x-missing"]

    def test_get_list(self) -> None:
        h = Headers(((b"accept", b"text/html"), (b"Accept", b"*/*")))
        assert h.get_list("accept") == ["text/html", "*/*"]
        assert h["accept"] == "text/html"

    def test_iter_and_len_dedupe(self) -> None:
        h = Headers(((b"a", b"1"), (b"a", b"2"), (b"b", b"3")))
        assert list(h) == ["a", "b"]
        assert len(h) == 2

    def test_non_string_key_not_contained(self) -> None:
        assert 1 not in Headers(((b"a", b"1"),))

    def test_raw_preserved(self) -> None:
        raw = ((b"X-Trace", b"abc"),)
        assert Headers(raw).raw == raw
