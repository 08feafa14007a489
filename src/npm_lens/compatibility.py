from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from npm_lens.models import CompatibilityResult, DependencyItem, RegistrySnapshot
from npm_lens.registry_client import RegistrySettings, fetch_package_metadata
from npm_lens.versions import InvalidRange, ranges_intersect, runtime_range

logger = logging.getLogger(__name__)

NOT_INFORMED = "Not informed"
NOT_AVAILABLE = "N/A"
DEFAULT_NODE_VERSIONS: tuple[int, ...] = (16, 18, 20)


def is_compatible_with_node(engine_range: str | None, node_range: str) -> bool:
    """
    判断版本声明的 engines.node 是否与目标 Node 范围有交集；未声明视为不兼容。
    """
    if not engine_range:
        return False
    try:
        return ranges_intersect(engine_range, node_range)
    except InvalidRange:
        logger.debug("cannot compare engine range %r with %r", engine_range, node_range)
        return False


def _engine_node(metadata: dict) -> str | None:
    engines = metadata.get("engines")
    if not isinstance(engines, dict):
        return None
    node = engines.get("node")
    return str(node) if node else None


def latest_compatible_version(snapshot: RegistrySnapshot | None, node_range: str) -> str:
    """
    返回 versions 迭代顺序中最后一个与 node_range 兼容的版本。

    registry 的 versions 键并不保证按发布时间排序，因此结果未必是“最新”。
    """
    if snapshot is None:
        return NOT_INFORMED

    compatible = [
        version
        for version, metadata in snapshot.versions.items()
        if is_compatible_with_node(_engine_node(metadata), node_range)
    ]
    if compatible:
        return compatible[-1]
    return NOT_INFORMED


async def find_node_compatibility(
    package_name: str,
    *,
    settings: RegistrySettings,
    client: httpx.AsyncClient,
    node_versions: Sequence[int] = DEFAULT_NODE_VERSIONS,
) -> CompatibilityResult:
    """
    查询单个依赖在各 Node 主版本下的最新兼容版本。
    """
    snapshot = await fetch_package_metadata(package_name, settings=settings, client=client)
    if snapshot is None:
        return CompatibilityResult(name=package_name, versions={major: NOT_AVAILABLE for major in node_versions})

    return CompatibilityResult(
        name=package_name,
        versions={major: latest_compatible_version(snapshot, runtime_range(major)) for major in node_versions},
    )


async def resolve_node_compatibility(
    items: Sequence[DependencyItem],
    *,
    settings: RegistrySettings,
    client: httpx.AsyncClient,
    node_versions: Sequence[int] = DEFAULT_NODE_VERSIONS,
) -> list[CompatibilityResult]:
    """
    依次（非并发）为每个依赖查询 Node 兼容性。
    """
    results: list[CompatibilityResult] = []
    for item in items:
        results.append(
            await find_node_compatibility(
                item.name,
                settings=settings,
                client=client,
                node_versions=node_versions,
            )
        )
    return results
