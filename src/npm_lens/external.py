from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from npm_lens.models import DriftOutcome, DriftRecord, DriftStatus, OutdatedRecord

logger = logging.getLogger(__name__)

DEFAULT_LIBYEAR_COMMAND: tuple[str, ...] = ("libyear", "--json")

_NPM_CHECK_SCRIPT = (
    "const npmCheck = require('npm-check');"
    "npmCheck({ cwd: process.cwd() })"
    ".then((state) => process.stdout.write(JSON.stringify(state.get('packages'))))"
    ".catch((err) => { console.error((err && err.stack) || String(err)); process.exit(1); });"
)
DEFAULT_NPM_CHECK_COMMAND: tuple[str, ...] = ("node", "-e", _NPM_CHECK_SCRIPT)


class ToolError(RuntimeError):
    """
    外部工具无法启动或以非零状态退出。
    """


async def _run_tool(command: Sequence[str], *, cwd: Path) -> tuple[str, str]:
    """
    在 cwd 下执行外部命令并返回 (stdout, stderr)；失败时抛出 ToolError。
    """
    if not command:
        raise ToolError("empty command")
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ToolError(f"{command[0]}: {exc}") from exc

    stdout, stderr = await proc.communicate()
    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise ToolError(f"{command[0]} failed (exit {proc.returncode}): {err.strip()}")
    return out, err


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def drift_record_from_json(obj: dict[str, Any]) -> DriftRecord:
    """
    将 libyear 的单条 JSON 输出转换为 DriftRecord。
    """
    return DriftRecord(
        dependency=str(obj.get("dependency") or ""),
        available=_as_str(obj.get("available")),
        drift=_as_float(obj.get("drift")),
        pulse=_as_float(obj.get("pulse")),
        releases=_as_int(obj.get("releases")),
        major=_as_int(obj.get("major")),
        minor=_as_int(obj.get("minor")),
        patch=_as_int(obj.get("patch")),
    )


def outdated_record_from_json(obj: dict[str, Any]) -> OutdatedRecord:
    """
    将 npm-check 的单条 package 状态转换为 OutdatedRecord。
    """
    easy_upgrade = obj.get("easyUpgrade")
    unused = obj.get("unused")
    return OutdatedRecord(
        module_name=str(obj.get("moduleName") or ""),
        latest=_as_str(obj.get("latest")),
        package_wanted=_as_str(obj.get("packageWanted")),
        easy_upgrade=bool(easy_upgrade) if easy_upgrade is not None else None,
        unused=bool(unused) if unused is not None else None,
    )


async def run_drift_analysis(
    manifest_path: Path,
    *,
    command: Sequence[str] = DEFAULT_LIBYEAR_COMMAND,
) -> DriftOutcome:
    """
    在 package.json 所在目录运行 libyear，区分“有数据 / 仅诊断输出 / 失败”三种结果。
    """
    dir_path = manifest_path.parent
    try:
        stdout, stderr = await _run_tool(command, cwd=dir_path)
    except ToolError as exc:
        logger.error("libyear execution error on directory %s: %s", dir_path, exc)
        return DriftOutcome(status=DriftStatus.FAILED, error=str(exc))

    if stderr.strip():
        return DriftOutcome(status=DriftStatus.DIAGNOSTIC, diagnostic=stderr.strip())

    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as exc:
        logger.error("libyear output on directory %s is not valid json: %s", dir_path, exc)
        return DriftOutcome(status=DriftStatus.FAILED, error=f"invalid json: {exc}")

    if not isinstance(data, list):
        return DriftOutcome(status=DriftStatus.FAILED, error="libyear output is not a list")

    records = [drift_record_from_json(obj) for obj in data if isinstance(obj, dict)]
    return DriftOutcome(status=DriftStatus.DATA, records=records)


async def run_outdated_check(
    manifest_path: Path,
    *,
    command: Sequence[str] = DEFAULT_NPM_CHECK_COMMAND,
) -> list[OutdatedRecord]:
    """
    在 package.json 所在目录运行 npm-check；任何失败都记录日志并返回空列表。
    """
    dir_path = manifest_path.parent
    try:
        stdout, _stderr = await _run_tool(command, cwd=dir_path)
        data = json.loads(stdout)
    except (ToolError, json.JSONDecodeError) as exc:
        logger.error("npm-check error for %s: %s", dir_path, exc)
        return []

    if not isinstance(data, list):
        logger.error("npm-check output for %s is not a list", dir_path)
        return []

    return [outdated_record_from_json(obj) for obj in data if isinstance(obj, dict)]
