from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from npm_lens.models import DependencyItem, DependencyKind
from npm_lens.names import module_label


class ManifestError(ValueError):
    """
    package.json 无法读取或解析。
    """

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


_GROUPS: tuple[tuple[str, DependencyKind], ...] = (
    ("dependencies", DependencyKind.PRODUCTION),
    ("devDependencies", DependencyKind.DEVELOPMENT),
)


def load_manifest(manifest_path: Path) -> dict[str, Any]:
    """
    读取并解析 package.json，返回 JSON 对象。
    """
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ManifestError(manifest_path, f"invalid json: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(manifest_path, "top-level value is not an object")
    return data


def extract_dependencies(manifest_data: dict[str, Any], *, module: str) -> list[DependencyItem]:
    """
    从 package.json 数据中提取生产/开发依赖（缺失的分组视为空）。
    """
    items: list[DependencyItem] = []
    for key, kind in _GROUPS:
        group = manifest_data.get(key) or {}
        if not isinstance(group, dict):
            continue
        for name, declared_range in group.items():
            items.append(
                DependencyItem(
                    name=str(name),
                    declared_range=str(declared_range),
                    kind=kind,
                    module=module,
                )
            )
    return items


def parse_manifest(manifest_path: Path, root_name: str) -> list[DependencyItem]:
    """
    解析单个 package.json 并为每条依赖打上模块标签。
    """
    data = load_manifest(manifest_path)
    return extract_dependencies(data, module=module_label(manifest_path, root_name))
