from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

import httpx
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from npm_lens.compatibility import resolve_node_compatibility
from npm_lens.config import AppConfig
from npm_lens.discovery import find_manifests
from npm_lens.external import run_drift_analysis, run_outdated_check
from npm_lens.formatters import build_rows
from npm_lens.manifest import parse_manifest
from npm_lens.models import DriftRecord, DriftStatus
from npm_lens.registry_client import create_async_client
from npm_lens.report import Report, ReportRow, SkippedManifest

logger = logging.getLogger(__name__)


def root_name_for(root: Path) -> str:
    """
    根目录的名称（用于模块标签与输出文件名）。
    """
    return root.resolve().name


async def analyze_manifest(
    manifest_path: Path,
    *,
    root_name: str,
    config: AppConfig,
    client: httpx.AsyncClient,
) -> tuple[list[ReportRow], SkippedManifest | None]:
    """
    分析单个 package.json：解析 → libyear → npm-check → Node 兼容性 → 合并。

    libyear 失败（或仅输出诊断文本且策略为 skip）时返回空行与跳过原因。
    """
    items = parse_manifest(manifest_path, root_name)

    logger.info("running libyear analysis on %s", manifest_path.parent)
    outcome = await run_drift_analysis(manifest_path, command=config.libyear_command)
    drift_records: list[DriftRecord] = []
    if outcome.status == DriftStatus.FAILED:
        logger.error("no valid data from libyear for %s: %s", manifest_path, outcome.error)
        return [], SkippedManifest(path=str(manifest_path), reason=outcome.error or "libyear failed")
    if outcome.status == DriftStatus.DIAGNOSTIC:
        if config.drift_diagnostics == "skip":
            logger.warning("libyear reported diagnostics for %s, skipping: %s", manifest_path, outcome.diagnostic)
            return [], SkippedManifest(path=str(manifest_path), reason=f"libyear: {outcome.diagnostic}")
        logger.warning(
            "libyear reported diagnostics for %s, drift fields left empty: %s", manifest_path, outcome.diagnostic
        )
    else:
        drift_records = outcome.records

    logger.info("running npm-check analysis on %s", manifest_path.parent)
    outdated_records = await run_outdated_check(manifest_path, command=config.npm_check_command)

    logger.info("running node compatibility analysis for %d dependencies", len(items))
    compatibility = await resolve_node_compatibility(
        items,
        settings=config.registry,
        client=client,
        node_versions=config.node_versions,
    )

    rows = build_rows(
        items,
        drift_records=drift_records,
        outdated_records=outdated_records,
        compatibility=compatibility,
        node_versions=config.node_versions,
    )
    return rows, None


async def analyze_tree(
    root: Path,
    *,
    config: AppConfig,
    on_manifest_start: Callable[[int], Any] | None = None,
    on_manifest_complete: Callable[[Path], Any] | None = None,
) -> Report:
    """
    扫描 root 下所有 package.json，依次分析并汇总为报告。
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(str(root))

    root_name = root_name_for(root)
    manifests = find_manifests(root, exclude_dirs=config.exclude_dirs)
    if on_manifest_start:
        on_manifest_start(len(manifests))

    rows: list[ReportRow] = []
    skipped: list[SkippedManifest] = []
    async with create_async_client(config.registry) as client:
        for index, manifest_path in enumerate(manifests, start=1):
            logger.info("file (%d/%d): %s", index, len(manifests), manifest_path)
            manifest_rows, skip = await analyze_manifest(
                manifest_path,
                root_name=root_name,
                config=config,
                client=client,
            )
            rows.extend(manifest_rows)
            if skip is not None:
                skipped.append(skip)
            if on_manifest_complete:
                on_manifest_complete(manifest_path)

    return Report(
        root=str(root),
        root_name=root_name,
        node_versions=tuple(config.node_versions),
        rows=rows,
        manifests=len(manifests),
        skipped=skipped,
    )


def run_analysis(root: Path, *, config: AppConfig) -> Report:
    """
    同步入口：运行目录分析（内部使用 asyncio），在 stderr 显示进度。
    """
    console = Console(stderr=True)
    state: dict[str, Any] = {"progress": None, "task_id": None}

    def on_start(total: int) -> None:
        if total > 0:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                "({task.completed}/{task.total})",
                console=console,
                transient=True,
            )
            progress.start()
            task_id = progress.add_task("分析 package.json...", total=total)
            state["progress"] = progress
            state["task_id"] = task_id

    def on_complete(_path: Path) -> None:
        progress = state["progress"]
        task_id = state["task_id"]
        if progress and task_id is not None:
            progress.advance(task_id)

    try:
        return asyncio.run(
            analyze_tree(
                root,
                config=config,
                on_manifest_start=on_start,
                on_manifest_complete=on_complete,
            )
        )
    finally:
        if state["progress"]:
            state["progress"].stop()
