import json
import os

import pytest

from retrybill.assets import (
    ManifestChunk,
    hash_dir,
    hot_asset,
    hot_file,
    is_css_path,
    is_running_hot,
    load_manifest,
    make_script_tag,
    make_stylesheet_tag,
    make_tag_for_chunk,
    vite,
)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("app.css", True),
        ("theme.scss", True),
        ("main.postcss", True),
        ("app.js", False),
        ("style.css.map", False),
        ("app.css\n", False),
    ],
)
def test_is_css_path(path, expected):
    assert is_css_path(path) is expected


def test_tags():
    assert make_stylesheet_tag("/a.css") == '<link rel="stylesheet" href="/a.css" />'
    assert make_script_tag("/a.js") == '<script type="module" src="/a.js"></script>'


def test_make_tag_for_chunk_dispatches():
    assert str(make_tag_for_chunk("/x.css")) == make_stylesheet_tag("/x.css")
    assert str(make_tag_for_chunk("/x.js")) == make_script_tag("/x.js")


def test_hot_file_paths():
    assert hot_file("root") == os.path.join("root", "public", "hot")
    assert hot_file() == os.path.join("public", "hot")
    assert hot_file("././internal/control_panel") == os.path.join(
        "internal", "control_panel", "public", "hot"
    )


def _write_hot(root):
    (root / "public").mkdir(parents=True, exist_ok=True)
    (root / "public" / "hot").write_text("http://localhost:5173\n")


def test_is_running_hot(tmp_path):
    assert is_running_hot(str(tmp_path)) is False
    _write_hot(tmp_path)
    assert is_running_hot(str(tmp_path)) is True


def test_hot_asset(tmp_path):
    _write_hot(tmp_path)
    root = str(tmp_path)
    assert hot_asset("@vite/client", root) == "http://localhost:5173/@vite/client"
    assert (
        hot_asset("././internal/control_panel/resources/js/app.js", root)
        == "http://localhost:5173/resources/js/app.js"
    )


def test_vite_hot_mode(tmp_path):
    _write_hot(tmp_path)
    html = vite(["resources/js/app.js"], str(tmp_path))
    assert html == (
        make_script_tag("http://localhost:5173/@vite/client")
        + make_script_tag("http://localhost:5173/resources/js/app.js")
    )


def _write_manifest(root, data):
    build = root / "public" / "build"
    build.mkdir(parents=True)
    (build / "manifest.json").write_text(json.dumps(data))


def test_vite_manifest_mode(tmp_path):
    _write_manifest(
        tmp_path,
        {
            "resources/js/app.js": {
                "file": "assets/app-1.js",
                "css": ["assets/app-1.css"],
                "isEntry": True,
            }
        },
    )
    html = vite(["resources/js/app.js", "resources/js/Pages/Missing.vue"], str(tmp_path))
    assert html == make_stylesheet_tag("assets/app-1.css") + make_script_tag("assets/app-1.js")


def test_load_manifest(tmp_path):
    _write_manifest(
        tmp_path,
        {"a.js": {"file": "out.js", "isEntry": True, "imports": ["b.js"], "src": "a.js"}},
    )
    manifest = load_manifest(tmp_path)
    assert manifest == {
        "a.js": ManifestChunk(file="out.js", is_entry=True, imports=["b.js"], src="a.js")
    }


def test_load_manifest_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_manifest(tmp_path)


def test_hash_dir_is_deterministic(tmp_path):
    assert hash_dir(tmp_path) == hash_dir(str(tmp_path))


def test_hash_dir_starts_with_path_bytes(tmp_path):
    missing = str(tmp_path / "missing")
    raw = bytes.fromhex(hash_dir(missing))
    assert raw[: len(missing.encode())] == missing.encode()
    assert len(raw) == len(missing.encode()) + 16


def test_hash_dir_of_directory_ignores_contents(tmp_path):
    before = hash_dir(tmp_path)
    (tmp_path / "app.js").write_text("console.log(1)")
    assert hash_dir(tmp_path) == before


def test_hash_dir_of_file_depends_on_leading_bytes(tmp_path):
    target = tmp_path / "bundle.js"
    target.write_bytes(b"abcdXXXX")
    first = hash_dir(target)
    target.write_bytes(b"abcdYYYY")
    assert hash_dir(target) == first
    target.write_bytes(b"zbcdYYYY")
    assert hash_dir(target) != first