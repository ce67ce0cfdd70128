"""Shared plumbing for the remote collaborators.

Every remote call goes through `send` (or `transport_errors` for streams) so
that transport failures come out as the same small set of errors whichever
service raised them.
"""

import contextlib
import json
import logging
from typing import Any, Iterator

import httpx

from domain.errors import (
    HttpStatus,
    InvalidRequest,
    InvalidResponse,
    NoConnectivity,
    Timeout,
    Unknown,
)


logger = logging.getLogger(__name__)


TIMEOUT = 30


def client_factory(
    base_url: str = "",
    *,
    headers: dict[str, str] | None = None,
    timeout: float = TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"Accept": "application/json", **(headers or {})},
        timeout=timeout,
        transport=transport,
    )


@contextlib.contextmanager
def transport_errors() -> Iterator[None]:
    try:
        yield
    # Timeouts first: ConnectTimeout is also a transport error.
    except httpx.TimeoutException as e:
        raise Timeout(str(e)) from e
    except httpx.NetworkError as e:
        raise NoConnectivity(str(e)) from e
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        raise InvalidRequest(str(e)) from e
    except httpx.HTTPError as e:
        raise Unknown(str(e)) from e


def check_status(resp: httpx.Response, detail: str = "") -> None:
    if not resp.is_success:
        logger.warning(
            "%s %s -> %s", resp.request.method, resp.request.url.path, resp.status_code
        )
        raise HttpStatus(resp.status_code, detail=detail)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    with transport_errors():
        resp = await client.request(method, url, **kwargs)
    check_status(resp, resp.text)
    return resp


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    resp = await send(client, method, url, **kwargs)
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidResponse(str(e)) from e
