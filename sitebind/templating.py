"""
Placeholder passes applied to a page, in order:

1. ``expand_loops``: ``{{#each path}} ... {{/each}}`` blocks, element-scoped.
2. ``apply_mappings``: page-scoped ``{{placeholder}}`` table.
3. ``resolve_direct_placeholders``: any remaining ``{{dotted.path}}``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sitebind.paths import resolve_path, stringify


_MARKER_RE = re.compile(r"\{\{(?:#each\s+(?P<path>[^{}]+?)|\s*/each)\s*\}\}")
_SCOPED_TOKEN_RE = re.compile(r"\{\{\s*(?:this(?:\.(?P<path>[\w$.-]+))?|(?P<field>[\w$-]+))\s*\}\}")
_DIRECT_TOKEN_RE = re.compile(r"\{\{\s*([\w$.-]+)\s*\}\}")


@dataclass
class EachBlock:
    path: str
    opening: str
    children: list[str | EachBlock] = field(default_factory=list)


Node = str | EachBlock


class MappingRule(Protocol):
    placeholder: str
    api_name: str
    json_path: str
    pages: list[str]


def parse_loops(text: str) -> list[Node]:
    """
    Split ``text`` into literal chunks and ``EachBlock`` trees.

    Blocks nest: every ``{{/each}}`` closes the innermost open block. A closing
    marker with nothing open, or an opening marker never closed, stays literal.
    """

    root: list[Node] = []
    stack: list[EachBlock] = []

    def container() -> list[Node]:
        return stack[-1].children if stack else root

    pos = 0
    for match in _MARKER_RE.finditer(text):
        if match.start() > pos:
            container().append(text[pos : match.start()])
        pos = match.end()

        path = match.group("path")
        if path is not None:
            stack.append(EachBlock(path=path.strip(), opening=match.group(0)))
        elif stack:
            block = stack.pop()
            container().append(block)
        else:
            container().append(match.group(0))

    if pos < len(text):
        container().append(text[pos:])

    while stack:
        block = stack.pop()
        container().append(block.opening)
        container().extend(block.children)

    return root


def _loop_target(scope: Any, path: str) -> Any:
    if path == "this":
        return scope
    if path.startswith("this."):
        path = path[len("this.") :]
    return resolve_path(scope, path)


def _substitute_scoped(text: str, element: Any) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group("field") or match.group("path")
        return stringify(resolve_path(element, key))

    return _SCOPED_TOKEN_RE.sub(replace, text)


def _render_nodes(nodes: Iterable[Node], scope: Any, *, in_loop: bool) -> str:
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, EachBlock):
            target = _loop_target(scope, node.path)
            if not isinstance(target, (list, tuple)):
                continue
            for element in target:
                parts.append(_render_nodes(node.children, element, in_loop=True))
        elif in_loop:
            parts.append(_substitute_scoped(node, scope))
        else:
            parts.append(node)
    return "".join(parts)


def expand_loops(text: str, data: Any) -> str:
    """Expand every ``{{#each}}`` block of ``text`` against ``data``."""
    return _render_nodes(parse_loops(text), data, in_loop=False)


def applicable_mappings(mappings: Iterable[MappingRule], page_path: str) -> list[MappingRule]:
    selected: list[MappingRule] = []
    for mapping in mappings:
        if not mapping.placeholder or not mapping.api_name:
            continue
        if mapping.pages and page_path not in mapping.pages:
            continue
        selected.append(mapping)
    return selected


def apply_mappings(
    text: str,
    mappings: Sequence[MappingRule],
    *,
    data: Mapping[str, Any],
    page_path: str,
) -> str:
    # Later records overwrite earlier ones for the same placeholder.
    values: dict[str, str] = {}
    for mapping in applicable_mappings(mappings, page_path):
        resolved = resolve_path(data.get(mapping.api_name), mapping.json_path)
        values["{{" + mapping.placeholder + "}}"] = stringify(resolved)

    if not values:
        return text

    pattern = re.compile("|".join(re.escape(token) for token in sorted(values, key=len, reverse=True)))
    return pattern.sub(lambda match: values[match.group(0)], text)


def resolve_direct_placeholders(text: str, data: Any) -> str:
    return _DIRECT_TOKEN_RE.sub(lambda match: stringify(resolve_path(data, match.group(1))), text)
