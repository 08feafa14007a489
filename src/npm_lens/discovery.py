from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = ("node_modules",)


def find_manifests(root: Path, *, exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS) -> list[Path]:
    """
    递归查找 root 下所有 package.json（跳过 exclude_dirs 中的目录，不跟随符号链接目录）。

    返回绝对路径列表，顺序与目录遍历顺序一致。
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(str(root))

    excluded = set(exclude_dirs)
    found: list[Path] = []

    def walk(directory: Path) -> None:
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in excluded:
                        logger.debug("skip excluded directory %s", entry.path)
                        continue
                    walk(Path(entry.path))
                elif entry.name == MANIFEST_NAME and entry.is_file():
                    found.append(Path(entry.path))

    walk(root.resolve())
    return found
