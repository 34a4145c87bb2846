from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sitebind.actions import ActionRule, inject_actions
from sitebind.fetcher import fetch_site_apis
from sitebind.schemas import ActionRead, ApiDefinitionRead, MappingRead
from sitebind.templating import MappingRule, apply_mappings, expand_loops, resolve_direct_placeholders
from sitebind.upstream import UpstreamClient


logger = logging.getLogger("sitebind.render")


@dataclass(frozen=True)
class SiteBindings:
    """Everything the render path reads from the store for one site."""

    apis: list[ApiDefinitionRead] = field(default_factory=list)
    mappings: list[MappingRead] = field(default_factory=list)
    actions: list[ActionRead] = field(default_factory=list)


def render_page(
    content: str,
    *,
    site_name: str,
    page_path: str,
    data: Mapping[str, Any],
    mappings: Sequence[MappingRule] = (),
    actions: Sequence[ActionRule] = (),
) -> str:
    html = expand_loops(content, data)
    html = apply_mappings(html, mappings, data=data, page_path=page_path)
    html = resolve_direct_placeholders(html, data)
    return inject_actions(html, actions, site_name=site_name, page_path=page_path)


async def render_site_page(
    content: str,
    *,
    site_name: str,
    page_path: str,
    bindings: SiteBindings,
    client: UpstreamClient,
) -> str:
    data = await fetch_site_apis(bindings.apis, client=client)
    html = render_page(
        content,
        site_name=site_name,
        page_path=page_path,
        data=data,
        mappings=bindings.mappings,
        actions=bindings.actions,
    )
    logger.info(
        "page_rendered site=%s page=%s apis=%s mappings=%s actions=%s",
        site_name,
        page_path,
        len(bindings.apis),
        len(bindings.mappings),
        len(bindings.actions),
    )
    return html
