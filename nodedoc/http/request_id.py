"""Request ID middleware.

Assigns a stable X-Request-Id header to each response. A well-formed id sent
by the client is echoed back instead of generating a new one.
"""

from __future__ import annotations

import re
import uuid

_CLIENT_ID_RE = re.compile(rb"^[A-Za-z0-9._-]{1,128}$")


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        header_bytes = self.header_name.lower().encode("latin-1")
        request_id = None
        for key, value in scope.get("headers") or []:
            if key.lower() == header_bytes and _CLIENT_ID_RE.match(value):
                request_id = value
                break
        if request_id is None:
            request_id = str(uuid.uuid4()).encode("latin-1")
        scope.setdefault("state", {})["request_id"] = request_id.decode("latin-1")

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers") or [])
                lower = [k.lower() for k, _ in headers]
                if header_bytes not in lower:
                    headers.append((self.header_name.encode("latin-1"), request_id))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)


__all__ = ["RequestIdMiddleware"]
