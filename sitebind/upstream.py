from __future__ import annotations

from typing import Any

import httpx


_BODYLESS_METHODS = {"GET", "HEAD"}


class UpstreamError(RuntimeError):
    """Base error for calls to a configured site API."""


class UpstreamRequestError(UpstreamError):
    """Raised when the request never produced an HTTP response (DNS, connect, timeout, bad URL)."""

    def __init__(self, *, method: str, url: str, detail: str) -> None:
        self.method = method.upper()
        self.url = url
        self.detail = detail
        super().__init__(detail)


class UpstreamAPIError(UpstreamError):
    """Raised when the upstream API answers with a non-success status code."""

    def __init__(self, *, method: str, url: str, status_code: int, data: Any) -> None:
        self.method = method.upper()
        self.url = url
        self.status_code = status_code
        self.data = data
        super().__init__(f"Request failed with status code {status_code}")


def decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return ""

    try:
        return response.json()
    except ValueError:
        return response.text


def _body_kwargs(method: str, body: Any) -> dict[str, Any]:
    if body is None or method in _BODYLESS_METHODS:
        return {}
    if isinstance(body, (dict, list)):
        return {"json": body}
    if isinstance(body, bytes):
        return {"content": body}
    return {"content": str(body).encode("utf-8")}


class UpstreamClient:
    """Small httpx-based client used for every outbound call to a site's APIs."""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    async def call(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        resolved_method = (method or "GET").strip().upper() or "GET"
        try:
            response = await self._client.request(
                resolved_method,
                url,
                headers=headers or None,
                params=params or None,
                **_body_kwargs(resolved_method, body),
            )
        except httpx.TimeoutException as exc:
            raise UpstreamRequestError(
                method=resolved_method,
                url=url,
                detail=f"timeout of upstream request exceeded: {exc}",
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamRequestError(method=resolved_method, url=url, detail=str(exc) or exc.__class__.__name__) from exc
        except Exception as exc:
            # Stored headers, params or bodies httpx cannot encode into a request.
            raise UpstreamRequestError(
                method=resolved_method,
                url=url,
                detail=f"invalid upstream request: {exc.__class__.__name__}: {exc}",
            ) from exc

        if not response.is_success:
            raise UpstreamAPIError(
                method=resolved_method,
                url=str(response.request.url),
                status_code=response.status_code,
                data=decode_body(response),
            )
        return response
