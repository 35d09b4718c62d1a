"""Async test client for perch applications.

Drives the app through its ASGI interface without sockets and returns the
same ``Response`` type the app produces.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from perch.app import App
from perch.http.response import Response


class TestClient:
    __test__ = False  # Tell pytest this is not a test class
    """Async test client for perch applications.

    Entering the client freezes the app (running before-start hooks, so
    decorator routes get registered) and runs startup hooks; leaving it
    runs shutdown hooks::

        async with TestClient(app) as client:
            response = await client.get("/users/1", query={"verbose": "true"})
            assert response.status == 200
    """

    __slots__ = ("app",)

    def __init__(self, app: App) -> None:
        self.app = app

    async def __aenter__(self) -> TestClient:
        self.app._ensure_frozen()
        await self.app.run_startup_hooks()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.app.run_shutdown_hooks()

    async def get(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> Response:
        return await self.request("GET", path, headers=headers, query=query)

    async def post(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request(
            "POST", path, headers=headers, query=query, body=body, json=json, data=data
        )

    async def put(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request(
            "PUT", path, headers=headers, query=query, body=body, json=json, data=data
        )

    async def delete(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Response:
        return await self.request("DELETE", path, headers=headers, query=query, json=json)

    async def options(
        self,
        path: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> Response:
        return await self.request("OPTIONS", path, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
        body: bytes | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
    ) -> Response:
        """Send an arbitrary request through the ASGI app.

        ``query`` values that are lists produce repeated keys. ``json``
        and ``data`` encode the body and set its Content-Type.
        """
        path_part, _, query_string = path.partition("?")
        if query:
            encoded = urlencode(query, doseq=True)
            query_string = f"{query_string}&{encoded}" if query_string else encoded

        request_headers: dict[str, str] = {}
        request_body = body or b""
        if json is not None:
            request_body = json_module.dumps(json).encode("utf-8")
            request_headers["content-type"] = "application/json"
        elif data is not None:
            request_body = urlencode(data, doseq=True).encode("utf-8")
            request_headers["content-type"] = "application/x-www-form-urlencoded"
        request_headers.update({k.lower(): v for k, v in (headers or {}).items()})
        if request_body:
            request_headers.setdefault("content-length", str(len(request_body)))

        scope: dict[str, Any] = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": method.upper(),
            "path": path_part,
            "raw_path": path_part.encode("latin-1"),
            "query_string": query_string.encode("latin-1"),
            "root_path": "",
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in request_headers.items()
            ],
            "server": ("testserver", 80),
            "client": ("127.0.0.1", 0),
        }

        body_sent = False

        async def receive() -> dict[str, Any]:
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": request_body, "more_body": False}
            return {"type": "http.disconnect"}

        status = 200
        raw_headers: list[tuple[bytes, bytes]] = []
        body_parts: list[bytes] = []

        async def send(message: dict[str, Any]) -> None:
            nonlocal status, raw_headers
            if message["type"] == "http.response.start":
                status = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                body_parts.append(message.get("body", b""))

        await self.app(scope, receive, send)

        content_type = ""
        extra_headers: list[tuple[str, str]] = []
        for name_b, value_b in raw_headers:
            name, value = name_b.decode("latin-1"), value_b.decode("latin-1")
            if name == "content-type":
                content_type = value
            elif name != "content-length":
                extra_headers.append((name, value))

        return Response(
            body=b"".join(body_parts),
            status=status,
            content_type=content_type,
            headers=tuple(extra_headers),
        )
