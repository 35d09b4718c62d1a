"""Form body parsing — URL-encoded and multipart.

URL-encoded bodies use stdlib ``urllib.parse``; multipart bodies go
through ``python-multipart``'s callback parser. Both produce a
``FormData`` whose first-value view is what ``bind_body`` reads.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    Content is held in memory; large uploads should stream the raw body.
    """

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(Mapping[str, Any]):
    """Immutable parsed form data.

    Field values map to their first value; uploaded files are exposed under
    their field name too, so a body binding sees one flat mapping.
    """

    __slots__ = ("_data", "_files")

    def __init__(
        self,
        data: dict[str, list[str]] | None = None,
        files: dict[str, UploadFile] | None = None,
    ) -> None:
        object.__setattr__(self, "_data", data or {})
        object.__setattr__(self, "_files", files or {})

    def __getitem__(self, key: str) -> Any:
        if key in self._data:
            return self._data[key][0]
        return self._files[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data or key in self._files

    def __iter__(self) -> Iterator[str]:
        yield from self._data
        yield from (name for name in self._files if name not in self._data)

    def __len__(self) -> int:
        return len(self._data.keys() | self._files.keys())

    def __repr__(self) -> str:
        return f"FormData({dict(self)!r})"

    def get_list(self, key: str) -> list[str]:
        """Return all string values for *key*."""
        return list(self._data.get(key, []))

    @property
    def files(self) -> Mapping[str, UploadFile]:
        return dict(self._files)


async def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a form body according to its Content-Type.

    Raises:
        ValueError: If the content type is not a form encoding, or a
            multipart body has no boundary.
    """
    if content_type.startswith("application/x-www-form-urlencoded"):
        return FormData(parse_qs(body.decode("utf-8"), keep_blank_values=True))
    if content_type.startswith("multipart/form-data"):
        return _parse_multipart(body, content_type)
    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    """Parse ``multipart/form-data`` with python-multipart."""
    from python_multipart.multipart import MultipartParser, parse_options_header

    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}

    part: dict[str, Any] = {}
    header_name = bytearray()
    header_value = bytearray()

    def on_part_begin() -> None:
        part.clear()
        part["headers"] = {}
        part["content"] = bytearray()

    def on_header_field(chunk: bytes, start: int, end: int) -> None:
        header_name.extend(chunk[start:end])

    def on_header_value(chunk: bytes, start: int, end: int) -> None:
        header_value.extend(chunk[start:end])

    def on_header_end() -> None:
        name = header_name.decode("latin-1").lower()
        part["headers"][name] = header_value.decode("latin-1")
        header_name.clear()
        header_value.clear()

    def on_part_data(chunk: bytes, start: int, end: int) -> None:
        part["content"].extend(chunk[start:end])

    def on_part_end() -> None:
        disposition = part["headers"].get("content-disposition", "")
        _, params = parse_options_header(disposition)
        name = params.get(b"name")
        if name is None:
            return
        field_name = name.decode("utf-8")
        filename = params.get(b"filename")
        if filename is not None:
            files[field_name] = UploadFile(
                filename=filename.decode("utf-8"),
                content_type=part["headers"].get("content-type", "application/octet-stream"),
                content=bytes(part["content"]),
            )
        else:
            value = part["content"].decode("utf-8", errors="replace")
            data.setdefault(field_name, []).append(value)

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
        },
    )
    parser.write(body)
    parser.finalize()
    return FormData(data, files)
