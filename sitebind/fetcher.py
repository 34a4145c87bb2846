from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from sitebind.schemas import ApiDefinitionRead
from sitebind.upstream import UpstreamClient, UpstreamError, decode_body


META_KEY = "__meta__"
ERROR_KEY = "_error"
ERROR_STATUS = "error"

logger = logging.getLogger("sitebind.fetch")


async def _fetch_one(client: UpstreamClient, api: ApiDefinitionRead) -> tuple[Any, dict[str, Any]]:
    method = (api.method or "GET").upper()
    try:
        response = await client.call(
            method=method,
            url=api.url,
            headers=api.headers,
            params=api.params,
            body=api.body_template,
        )
    except UpstreamError as exc:
        logger.warning("api_fetch_failed api=%s method=%s url=%s error=%s", api.name, method, api.url, exc)
        return {ERROR_KEY: str(exc)}, {"method": method, "status": ERROR_STATUS, "url": api.url}

    return decode_body(response), {"method": method, "status": response.status_code, "url": api.url}


async def fetch_site_apis(apis: Sequence[ApiDefinitionRead], *, client: UpstreamClient) -> dict[str, Any]:
    """
    Call every API of a site once and key the results by API name.

    The returned mapping always carries ``__meta__`` with one ``{method, status, url}``
    entry per API. A failing API stores ``{"_error": message}`` and ``status="error"``;
    it never aborts the batch.
    """

    outcomes = await asyncio.gather(*(_fetch_one(client, api) for api in apis))

    results: dict[str, Any] = {META_KEY: {}}
    for api, (body, meta) in zip(apis, outcomes):
        results[api.name] = body
        results[META_KEY][api.name] = meta

    logger.debug("api_fetch_completed count=%s", len(apis))
    return results
