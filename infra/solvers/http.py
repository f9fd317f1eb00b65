from __future__ import annotations

import asyncio
import json
import urllib.parse
import urllib.request
from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class JsonHttpClient(Protocol):
    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        ...

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        ...


class UrllibJsonClient:
    """Blocking urllib calls pushed onto a worker thread."""

    def __init__(self, timeout_seconds: float = 30.0) -> None:
        self._timeout = timeout_seconds

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        query = urllib.parse.urlencode(dict(params))
        return await asyncio.to_thread(self._sync_request, f"{url}?{query}", None)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        body = json.dumps(dict(payload)).encode("utf-8")
        return await asyncio.to_thread(self._sync_request, url, body)

    def _sync_request(self, url: str, body: bytes | None) -> Any:
        req = urllib.request.Request(url, data=body, method="POST" if body else "GET")
        if body is not None:
            req.add_header("Content-Type", "application/json")
        with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # nosec B310
            return json.loads(resp.read().decode("utf-8"))
