"""Async HTTP access to the engine REST API."""

from __future__ import annotations

from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from ..config import EngineConfig
from ..constants import DEFAULT_ENGINE_URL, DEFAULT_HTTP_TIMEOUT
from ..errors import DecodeError, TransportError

ModelT = TypeVar("ModelT", bound=BaseModel)


class EngineClient:
    """Thin wrapper around ``httpx.AsyncClient`` that maps failures onto
    :class:`TransportError` and :class:`DecodeError`.

    Args:
        base_url: Root of the REST API, e.g. ``http://localhost:8080/engine-rest``.
        username: Optional HTTP basic auth user.
        password: Optional HTTP basic auth password.
        timeout: Fixed per-request timeout in seconds.
        http_transport: Optional httpx transport, used by tests to fake the engine.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ENGINE_URL,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        auth = httpx.BasicAuth(username, password) if username and password else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=http_transport,
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "EngineClient":
        return cls(
            base_url=config.base_url,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            http_transport=http_transport,
        )

    async def __aenter__(self) -> "EngineClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def ping(self) -> None:
        """Check that the engine answers; raises :class:`TransportError` if not."""
        await self.request("GET", "/engine")

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json_body: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, params=params, json=json_body
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Engine API error {response.status_code} on {method} {path}: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def get_list(
        self, path: str, model: Type[ModelT], params: Optional[dict] = None
    ) -> List[ModelT]:
        response = await self.request("GET", path, params=params)
        return self.decode_list(response, model)

    @staticmethod
    def decode_list(response: httpx.Response, model: Type[ModelT]) -> List[ModelT]:
        try:
            payload = response.json()
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError both land here.
            raise DecodeError(f"Malformed JSON from {response.request.url}: {exc}") from exc
        try:
            return TypeAdapter(List[model]).validate_python(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Unexpected payload from {response.request.url}: {exc}"
            ) from exc
