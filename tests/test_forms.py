"""Tests for perch.http.forms — URL-encoded and multipart parsing."""

import pytest

from perch.http.forms import FormData, UploadFile, parse_form_data

BOUNDARY = "perchboundary"


def _multipart(*parts: bytes) -> bytes:
    body = b""
    for part in parts:
        body += f"--{BOUNDARY}\r\n".encode() + part + b"\r\n"
    return body + f"--{BOUNDARY}--\r\n".encode()


class TestUrlEncoded:
    async def test_fields(self) -> None:
        form = await parse_form_data(b"a=1&b=two&b=three", "application/x-www-form-urlencoded")

        assert form["a"] == "1"
        assert form["b"] == "two"
        assert form.get_list("b") == ["two", "three"]
        assert dict(form) == {"a": "1", "b": "two"}

    async def test_unsupported_type(self) -> None:
        with pytest.raises(ValueError, match="Unsupported form content type"):
            await parse_form_data(b"{}", "application/json")


class TestMultipart:
    async def test_fields_and_files(self) -> None:
        body = _multipart(
            b'Content-Disposition: form-data; name="title"\r\n\r\nHello',
            b'Content-Disposition: form-data; name="doc"; filename="a.txt"\r\n'
            b"Content-Type: text/plain\r\n\r\nfile body",
        )
        form = await parse_form_data(body, f"multipart/form-data; boundary={BOUNDARY}")

        assert form["title"] == "Hello"
        upload = form["doc"]
        assert isinstance(upload, UploadFile)
        assert upload.filename == "a.txt"
        assert upload.content_type == "text/plain"
        assert upload.content == b"file body"
        assert upload.size == 9
        assert set(form) == {"title", "doc"}
        assert set(form.files) == {"doc"}

    async def test_missing_boundary(self) -> None:
        with pytest.raises(ValueError, match="boundary"):
            await parse_form_data(b"", "multipart/form-data")


class TestFormData:
    def test_empty(self) -> None:
        form = FormData()
        assert len(form) == 0
        assert "x" not in form
