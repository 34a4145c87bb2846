from __future__ import annotations

import pytest

from sitebind.paths import resolve_path, stringify


DATA = {
    "users": [{"id": 1, "name": "Ann", "tags": ["a", "b"]}, {"id": 2, "name": "Bo"}],
    "site": {"title": "Demo", "owner": {"email": "ops@example.test"}},
    "empty": None,
    "count": 0,
    "with-dash": {"$value": "ok"},
}


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("site", DATA["site"]),
        ("site.title", "Demo"),
        ("site.owner.email", "ops@example.test"),
        ("users.0.name", "Ann"),
        ("users.1.id", 2),
        ("users.0.tags.1", "b"),
        ("count", 0),
        ("with-dash.$value", "ok"),
    ],
)
def test_resolve_path_descends_segment_by_segment(path: str, expected: object) -> None:
    assert resolve_path(DATA, path) == expected


@pytest.mark.parametrize("path", ["", None])
def test_resolve_path_empty_path_returns_root(path: str | None) -> None:
    assert resolve_path(DATA, path) is DATA


@pytest.mark.parametrize(
    "path",
    [
        "missing",
        "site.missing.deeper",
        "users.5.name",
        "users.name",
        "users.-1.name",
        "site.title.length",
        "count.value",
        "empty.anything",
    ],
)
def test_resolve_path_returns_default_when_unreachable(path: str) -> None:
    assert resolve_path(DATA, path) is None
    assert resolve_path(DATA, path, "fallback") == "fallback"


def test_resolve_path_keeps_explicit_none_value() -> None:
    assert resolve_path(DATA, "empty", "fallback") is None


def test_resolve_path_does_not_index_into_strings() -> None:
    assert resolve_path({"word": "hello"}, "word.0", "") == ""


def test_resolve_path_on_none_root() -> None:
    assert resolve_path(None, "a.b", "x") == "x"


def test_resolve_path_does_not_mutate_input() -> None:
    data = {"a": {"b": [1, 2]}}
    resolve_path(data, "a.b.1")
    resolve_path(data, "a.c")
    assert data == {"a": {"b": [1, 2]}}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ""),
        ("text", "text"),
        (3, "3"),
        (2.0, "2"),
        (2.5, "2.5"),
        (True, "true"),
        (False, "false"),
        ({"a": 1}, '{"a":1}'),
        ([1, "x"], '[1,"x"]'),
    ],
)
def test_stringify(value: object, expected: str) -> None:
    assert stringify(value) == expected
