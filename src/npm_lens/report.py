from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ReportRow:
    """
    单个依赖合并 libyear / npm-check / registry 三方数据后的一行报告（已格式化为文本）。
    """

    module: str
    dependency: str
    type: str
    current_version: str
    libyear_latest: str
    npm_latest: str
    npm_wanted: str
    easy_upgrade: str
    unused: str
    node_versions: tuple[tuple[int, str], ...]
    drift: str
    pulse: str
    releases: str
    major: str
    minor: str
    patch: str


@dataclass(frozen=True, slots=True)
class SkippedManifest:
    """
    因 libyear 无可用数据而被跳过的 package.json。
    """

    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class Report:
    """
    一次目录扫描的完整报告。
    """

    root: str
    root_name: str
    node_versions: tuple[int, ...]
    rows: list[ReportRow]
    manifests: int
    skipped: list[SkippedManifest]
