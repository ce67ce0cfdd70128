"""Client for the Firebase Realtime Database REST api.

Paths look like `comments/716429/-Nx3...`; each is sent as `/<path>.json`.
Writes that need a server-assigned time use `SERVER_TIMESTAMP`, which comes
back as epoch milliseconds.
"""

import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from domain.errors import AuthRequired, InvalidResponse, NotAuthorized
from domain.http import check_status, client_factory, request_json, transport_errors


logger = logging.getLogger(__name__)


SERVER_TIMESTAMP = {".sv": "timestamp"}


TokenProvider = Callable[[], Awaitable[str | None]]


class ChangeEvent:
    def __init__(self, *, event: str, path: str, data: Any) -> None:
        self.event = event
        self.path = path
        self.data = data

    def __repr__(self) -> str:
        return f"<ChangeEvent(event={self.event}, path={self.path})>"


def realtime_client_factory(
    base_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return client_factory(base_url, transport=transport)


def join(*parts: str | int) -> str:
    return "/".join(str(p).strip("/") for p in parts)


def apply_change(tree: Any, change: ChangeEvent) -> Any:
    """Apply a streamed put/patch to a local copy of the data and return it."""
    keys = [k for k in change.path.split("/") if k]

    if change.event == "patch":
        for key, value in change.data.items():
            tree = apply_change(
                tree, ChangeEvent(event="put", path=join(*keys, key), data=value)
            )
        return tree

    if not keys:
        return change.data

    root = tree if isinstance(tree, dict) else {}
    node = root
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    if change.data is None:
        node.pop(keys[-1], None)
    else:
        node[keys[-1]] = change.data
    return root


class RealtimeDatabase:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        token: TokenProvider | None = None,
    ) -> None:
        self._client = client
        self._token = token

    async def _params(self, **params: Any) -> dict[str, Any]:
        token = None if self._token is None else await self._token()
        if token is not None:
            params["auth"] = token
        return params

    async def get(
        self,
        path: str,
        *,
        order_by: str | None = None,
        limit_to_last: int | None = None,
    ) -> Any:
        query: dict[str, Any] = {}
        if order_by is not None:
            # The REST api wants the child key as a JSON string.
            query["orderBy"] = json.dumps(order_by)
        if limit_to_last is not None:
            query["limitToLast"] = limit_to_last
        return await request_json(
            self._client, "GET", f"/{path}.json", params=await self._params(**query)
        )

    async def set(self, path: str, value: Any) -> None:
        await request_json(
            self._client, "PUT", f"/{path}.json", json=value, params=await self._params()
        )

    async def update(self, path: str, value: dict[str, Any]) -> None:
        await request_json(
            self._client,
            "PATCH",
            f"/{path}.json",
            json=value,
            params=await self._params(),
        )

    async def push(self, path: str, value: Any) -> str:
        data = await request_json(
            self._client,
            "POST",
            f"/{path}.json",
            json=value,
            params=await self._params(),
        )
        try:
            return str(data["name"])
        except (KeyError, TypeError) as e:
            raise InvalidResponse(f"No key in push response: {data!r}") from e

    async def remove(self, path: str) -> None:
        await request_json(
            self._client, "DELETE", f"/{path}.json", params=await self._params()
        )

    async def listen(self, path: str) -> AsyncIterator[ChangeEvent]:
        """Stream changes under `path` until the server closes the stream.

        The first event is a put at "/" carrying the current data.
        """
        params = await self._params()
        with transport_errors():
            async with self._client.stream(
                "GET",
                f"/{path}.json",
                params=params,
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(None, connect=10),
                follow_redirects=True,
            ) as resp:
                check_status(resp)
                event: str | None = None
                data: list[str] = []
                async for line in resp.aiter_lines():
                    if line.startswith("event:"):
                        event = line[len("event:") :].strip()
                    elif line.startswith("data:"):
                        data.append(line[len("data:") :].strip())
                    elif not line and event is not None:
                        change = self._dispatch(event, "\n".join(data))
                        event, data = None, []
                        if change is not None:
                            yield change

    async def close(self) -> None:
        await self._client.aclose()

    def _dispatch(self, event: str, data: str) -> ChangeEvent | None:
        match event:
            case "put" | "patch":
                try:
                    payload = json.loads(data)
                    return ChangeEvent(
                        event=event, path=payload["path"], data=payload["data"]
                    )
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    raise InvalidResponse(f"Bad {event} event: {data!r}") from e
            case "keep-alive":
                return None
            case "cancel":
                raise NotAuthorized("You are not allowed to read this data")
            case "auth_revoked":
                raise AuthRequired()
            case _:
                logger.debug("Ignoring stream event %s", event)
                return None
