from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Any


HTML_EXTENSIONS = {".html", ".htm"}
DEFAULT_PAGE = "index.html"
_SITE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class SitePathError(ValueError):
    """Raised when a site name or relative path would escape the site folder."""


class SiteFileNotFound(LookupError):
    """Raised when a requested site file does not exist."""


def _is_within(parent: Path, child: Path) -> bool:
    return parent == child or parent in child.parents


def is_html(path: str | Path) -> bool:
    return PurePosixPath(str(path)).suffix.lower() in HTML_EXTENSIONS


def normalize_page_path(rel_path: str | None) -> str:
    value = (rel_path or "").replace("\\", "/").lstrip("/")
    if not value:
        return DEFAULT_PAGE
    if value.endswith("/"):
        return f"{value}{DEFAULT_PAGE}"
    return value


def site_folder(websites_root: Path, site_name: str) -> Path:
    if not _SITE_NAME_RE.match(site_name or ""):
        raise SitePathError(f"Invalid site name: {site_name!r}")
    return websites_root / site_name


def resolve_site_file(websites_root: Path, site_name: str, rel_path: str) -> Path:
    folder = site_folder(websites_root, site_name).resolve()
    value = (rel_path or "").replace("\\", "/")
    parts = PurePosixPath(value).parts
    if value.startswith("/") or ".." in parts:
        raise SitePathError(f"Invalid path: {rel_path!r}")

    resolved = (folder / value).resolve()
    if not _is_within(folder, resolved):
        raise SitePathError(f"Path `{rel_path}` is outside site folder `{folder}`")
    return resolved


def locate_site_file(websites_root: Path, site_name: str, rel_path: str) -> tuple[Path, str]:
    """Resolve a request path to an existing file, falling back to a folder's index page."""

    page_path = normalize_page_path(rel_path)
    resolved = resolve_site_file(websites_root, site_name, page_path)
    if resolved.is_dir():
        page_path = f"{page_path.rstrip('/')}/{DEFAULT_PAGE}"
        resolved = resolve_site_file(websites_root, site_name, page_path)
    if not resolved.is_file():
        raise SiteFileNotFound(f"Not found: {site_name}/{page_path}")
    return resolved, page_path


def read_page(websites_root: Path, site_name: str, rel_path: str) -> str:
    resolved, _ = locate_site_file(websites_root, site_name, rel_path)
    return resolved.read_text(encoding="utf-8")


def write_page(websites_root: Path, site_name: str, rel_path: str, content: str) -> Path:
    resolved = resolve_site_file(websites_root, site_name, rel_path)
    if resolved == site_folder(websites_root, site_name).resolve():
        raise SitePathError("Path must name a file")
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(content, encoding="utf-8")
    return resolved


def ensure_site_folder(websites_root: Path, site_name: str) -> Path:
    folder = site_folder(websites_root, site_name)
    folder.mkdir(parents=True, exist_ok=True)
    return folder


def discover_site_folders(websites_root: Path) -> list[str]:
    if not websites_root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in websites_root.iterdir()
        if entry.is_dir() and _SITE_NAME_RE.match(entry.name)
    )


def _existing_folder(websites_root: Path, site_name: str) -> Path:
    folder = site_folder(websites_root, site_name)
    if not folder.is_dir():
        raise SiteFileNotFound(f"Site folder not found: {site_name}")
    return folder


def list_pages(websites_root: Path, site_name: str) -> list[str]:
    folder = _existing_folder(websites_root, site_name)
    return sorted(
        path.relative_to(folder).as_posix()
        for path in folder.rglob("*")
        if path.is_file() and is_html(path)
    )


def _tree(directory: Path, base: Path) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for entry in sorted(directory.iterdir(), key=lambda item: item.name):
        rel = entry.relative_to(base).as_posix()
        if entry.is_dir():
            items.append({"name": entry.name, "path": f"{rel}/", "type": "dir", "children": _tree(entry, base)})
        else:
            items.append({"name": entry.name, "path": rel, "type": "file"})
    return items


def read_tree(websites_root: Path, site_name: str) -> list[dict[str, Any]]:
    folder = _existing_folder(websites_root, site_name)
    return _tree(folder, folder)
