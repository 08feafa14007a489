from __future__ import annotations

from pathlib import Path

import pytest

from npm_lens.discovery import find_manifests


def _touch_manifest(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text("{}", encoding="utf-8")
    return path


def test_find_manifests_skips_node_modules(tmp_path: Path) -> None:
    """
    应返回所有层级的 package.json，且跳过 node_modules 下的内容。
    """
    expected = {
        _touch_manifest(tmp_path),
        _touch_manifest(tmp_path / "pkgs" / "foo"),
        _touch_manifest(tmp_path / "pkgs" / "bar" / "deep"),
    }
    _touch_manifest(tmp_path / "node_modules" / "left-pad")
    _touch_manifest(tmp_path / "pkgs" / "foo" / "node_modules" / "lodash")
    (tmp_path / "pkgs" / "foo" / "index.js").write_text("", encoding="utf-8")

    found = find_manifests(tmp_path)
    assert len(found) == 3
    assert set(found) == {p.resolve() for p in expected}
    assert all(p.is_absolute() for p in found)


def test_find_manifests_custom_exclude_dirs(tmp_path: Path) -> None:
    """
    exclude_dirs 可替换默认的跳过目录集合。
    """
    _touch_manifest(tmp_path / "dist")
    _touch_manifest(tmp_path / "node_modules" / "x")

    found = find_manifests(tmp_path, exclude_dirs=("dist",))
    assert [p.parent.name for p in found] == ["x"]


def test_find_manifests_missing_root_raises(tmp_path: Path) -> None:
    """
    根目录不存在时应抛出 FileNotFoundError。
    """
    with pytest.raises(FileNotFoundError):
        find_manifests(tmp_path / "missing")
