"""Asset helpers: directory hashing, Vite manifest and tag rendering."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from markupsafe import Markup

logger = logging.getLogger(__name__)

_CSS_RE = re.compile(r"\.(css|less|sass|scss|styl|stylus|pcss|postcss)\Z")
_HEAD_SIZE = 4
_PANEL_PREFIX = "././internal/control_panel/"


def _hash_bytes(content: bytes) -> str:
    # The content itself is kept in front of its digest.
    return (content + hashlib.md5(content).digest()).hex()


def _walk(root: str) -> Iterator[str]:
    yield root
    if os.path.isdir(root) and not os.path.islink(root):
        for name in sorted(os.listdir(root)):
            yield from _walk(os.path.join(root, name))


def _read_head(path: str) -> bytes | None:
    with open(path, "rb") as handle:
        head = handle.read(_HEAD_SIZE)
    return head if len(head) == _HEAD_SIZE else None


def hash_dir(directory: str | os.PathLike[str]) -> str:
    """Return a version hash for an assets path.

    Entries are visited in lexical order; the walk stops at the first entry
    that cannot be read for its leading bytes, directories included.
    """
    root = os.fspath(directory)
    fin_hash = root
    try:
        for path in _walk(root):
            head = _read_head(path)
            if head is None:
                break
            fin_hash = (
                _hash_bytes(fin_hash.encode())
                + _hash_bytes(head)
                + _hash_bytes(path.encode())
            )
    except OSError:
        pass
    return _hash_bytes(fin_hash.encode())


@dataclass
class ManifestChunk:
    """One entry of a Vite build manifest."""

    file: str = ""
    css: list[str] = field(default_factory=list)
    is_entry: bool = False
    imports: list[str] = field(default_factory=list)
    dynamic_imports: list[str] = field(default_factory=list)
    is_dynamic_entry: bool = False
    src: str = ""


def _chunk_from_dict(raw: dict) -> ManifestChunk:
    return ManifestChunk(
        file=raw.get("file", ""),
        css=list(raw.get("css") or []),
        is_entry=bool(raw.get("isEntry", False)),
        imports=list(raw.get("imports") or []),
        dynamic_imports=list(raw.get("dynamicImports") or []),
        is_dynamic_entry=bool(raw.get("isDynamicEntry", False)),
        src=raw.get("src", ""),
    )


def load_manifest(build_directory: str | os.PathLike[str] = "") -> dict[str, ManifestChunk]:
    """Read ``public/build/manifest.json`` under the build directory."""
    path = Path(build_directory, "public", "build", "manifest.json")
    logger.debug("manifest path: %s", path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    return {name: _chunk_from_dict(chunk) for name, chunk in raw.items()}


def make_stylesheet_tag(url: str) -> str:
    return f'<link rel="stylesheet" href="{url}" />'


def make_script_tag(url: str) -> str:
    return f'<script type="module" src="{url}"></script>'


def is_css_path(path: str) -> bool:
    return _CSS_RE.search(path) is not None


def make_tag_for_chunk(url: str) -> Markup:
    """Return a stylesheet tag for CSS URLs and a module script tag otherwise."""
    if is_css_path(url):
        return Markup(make_stylesheet_tag(url))
    return Markup(make_script_tag(url))


def hot_file(*build_directory: str) -> str:
    """Path of the dev-server ``hot`` file under the build directory."""
    return os.path.normpath(os.path.join(*build_directory, "public", "hot"))


def hot_asset(asset: str, *build_directory: str) -> str:
    """URL of an asset served by the running dev server."""
    base = Path(hot_file(*build_directory)).read_text(encoding="utf-8").removesuffix("\n")
    if asset.find("vite") == 1:
        return f"{base}/{asset}"
    return f"{base}/{asset.removeprefix(_PANEL_PREFIX)}"


def is_running_hot(*build_directory: str) -> bool:
    filename = hot_file(*build_directory)
    if not filename:
        return False
    try:
        os.stat(filename)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def vite(entrypoints: Iterable[str], *build_directory: str) -> Markup:
    """Return the HTML tags that load the given entrypoints."""
    entrypoints = list(entrypoints)
    if is_running_hot(*build_directory):
        tags = [make_tag_for_chunk(hot_asset("@vite/client", *build_directory))]
        tags.extend(make_tag_for_chunk(hot_asset(entry, *build_directory)) for entry in entrypoints)
        return Markup("".join(str(tag) for tag in tags))

    manifest = load_manifest(Path(*build_directory) if build_directory else "")
    parts: list[str] = []
    for entry in entrypoints:
        chunk = manifest.get(entry)
        if chunk is None:
            continue
        parts.extend(make_stylesheet_tag(css) for css in chunk.css)
        parts.append(make_script_tag(chunk.file))
    return Markup("".join(parts))