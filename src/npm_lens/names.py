from __future__ import annotations

from pathlib import Path
from urllib.parse import quote


def module_label(manifest_path: Path, root_name: str) -> str:
    """
    根据 package.json 所在目录名生成模块标签（根目录本身即为 root_name）。
    """
    dir_name = manifest_path.parent.name
    if dir_name == root_name:
        return dir_name
    return f"{root_name}/{dir_name}"


def registry_path(package_name: str) -> str:
    """
    将包名转换为 registry URL 路径片段（作用域包的 / 需转义为 %2F）。
    """
    return quote(package_name, safe="@")
