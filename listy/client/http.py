"""Bare JSON request helpers.

Unlike :mod:`listy.client.rpc` these never raise for a bad body or a dead
connection: the result is an empty dict, which callers must read as "no
data" rather than "confirmed empty".
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


async def _http(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
    try:
        response = await client.request(method, path, **kwargs)
    except httpx.TransportError as exc:
        logger.warning("%s %s failed: %r", method.upper(), path, exc)
        return {}
    try:
        return response.json()
    except ValueError:
        return {}


async def get(path: str, *, client: httpx.AsyncClient) -> Any:
    return await _http(client, "get", path)


async def post(path: str, body: Any, *, client: httpx.AsyncClient) -> Any:
    # raw bodies (file bytes, text) go out untouched
    if isinstance(body, (bytes, str)):
        return await _http(client, "post", path, content=body)
    return await _http(client, "post", path, json=body)


async def put(path: str, body: Any, *, client: httpx.AsyncClient) -> Any:
    return await _http(client, "put", path, json=body)
