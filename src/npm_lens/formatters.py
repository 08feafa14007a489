from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Sequence
from dataclasses import asdict
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.table import Table

from npm_lens.compatibility import NOT_AVAILABLE
from npm_lens.models import CompatibilityResult, DependencyItem, DriftRecord, OutdatedRecord
from npm_lens.report import Report, ReportRow


class DataSource(str, Enum):
    """
    报告字段的数据来源。
    """

    LIBYEAR = "libyear"
    NPM_CHECK = "npm_check"
    REGISTRY = "registry"


UNKNOWN = "Unknown"

# 缺失数据时各字段的统一缺省值（按数据来源分组）
MISSING_DATA: dict[DataSource, dict[str, str]] = {
    DataSource.LIBYEAR: {
        "available": UNKNOWN,
        "drift": UNKNOWN,
        "pulse": UNKNOWN,
        "releases": "0",
        "major": "0",
        "minor": "0",
        "patch": "0",
    },
    DataSource.NPM_CHECK: {
        "latest": UNKNOWN,
        "package_wanted": UNKNOWN,
        "easy_upgrade": "false",
        "unused": "false",
    },
    DataSource.REGISTRY: {
        "node": NOT_AVAILABLE,
    },
}

CSV_DELIMITER = ";"

_LEADING_COLUMNS = (
    "Module",
    "Dependency",
    "Type",
    "Current version",
    "Libyear latest version",
    "NPM latest version",
    "Wanted version",
    "Easy upgrade",
    "Unused",
)
_TRAILING_COLUMNS = ("Drift", "Pulse", "Releases", "Major", "Minor", "Patch")


def _missing(source: DataSource, field: str) -> str:
    return MISSING_DATA[source][field]


def format_decimal(value: float | None) -> str:
    """
    保留两位小数（四舍五入，.5 进位）并使用逗号作为小数分隔符；缺失时返回 Unknown。
    """
    if value is None:
        return UNKNOWN
    rounded = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{rounded:.2f}".replace(".", ",")


def format_count(value: int | None, *, default: str = "0") -> str:
    """
    计数字段：缺失或为 0 时返回缺省值。
    """
    if not value:
        return default
    return str(value)


def format_flag(value: bool | None, *, default: str = "false") -> str:
    """
    布尔字段渲染为 true/false。
    """
    if value is None:
        return default
    return "true" if value else "false"


def _first(records: Iterable[Any], attr: str, name: str) -> Any:
    for record in records:
        if getattr(record, attr) == name:
            return record
    return None


def build_row(
    item: DependencyItem,
    *,
    drift: DriftRecord | None,
    outdated: OutdatedRecord | None,
    compatibility: CompatibilityResult | None,
    node_versions: Sequence[int],
) -> ReportRow:
    """
    将一条依赖声明与其 libyear / npm-check / 兼容性结果合并为一行报告。
    """
    lib = MISSING_DATA[DataSource.LIBYEAR]
    chk = MISSING_DATA[DataSource.NPM_CHECK]
    node_default = _missing(DataSource.REGISTRY, "node")
    compat = compatibility.versions if compatibility else {}

    return ReportRow(
        module=item.module,
        dependency=item.name,
        type=item.kind.value,
        current_version=item.declared_range,
        libyear_latest=(drift.available if drift and drift.available else lib["available"]),
        npm_latest=(outdated.latest if outdated and outdated.latest else chk["latest"]),
        npm_wanted=(outdated.package_wanted if outdated and outdated.package_wanted else chk["package_wanted"]),
        easy_upgrade=format_flag(outdated.easy_upgrade if outdated else None, default=chk["easy_upgrade"]),
        unused=format_flag(outdated.unused if outdated else None, default=chk["unused"]),
        node_versions=tuple((major, compat.get(major, node_default)) for major in node_versions),
        drift=format_decimal(drift.drift) if drift and drift.drift is not None else lib["drift"],
        pulse=format_decimal(drift.pulse) if drift and drift.pulse is not None else lib["pulse"],
        releases=format_count(drift.releases if drift else None, default=lib["releases"]),
        major=format_count(drift.major if drift else None, default=lib["major"]),
        minor=format_count(drift.minor if drift else None, default=lib["minor"]),
        patch=format_count(drift.patch if drift else None, default=lib["patch"]),
    )


def build_rows(
    items: Sequence[DependencyItem],
    *,
    drift_records: Sequence[DriftRecord],
    outdated_records: Sequence[OutdatedRecord],
    compatibility: Sequence[CompatibilityResult],
    node_versions: Sequence[int],
) -> list[ReportRow]:
    """
    按依赖名精确匹配（首个命中优先）合并三方结果。
    """
    return [
        build_row(
            item,
            drift=_first(drift_records, "dependency", item.name),
            outdated=_first(outdated_records, "module_name", item.name),
            compatibility=_first(compatibility, "name", item.name),
            node_versions=node_versions,
        )
        for item in items
    ]


def csv_header(node_versions: Sequence[int]) -> list[str]:
    """
    报告的固定列顺序（Node 列随配置的主版本变化）。
    """
    return [*_LEADING_COLUMNS, *(f"Node {major}" for major in node_versions), *_TRAILING_COLUMNS]


def row_values(row: ReportRow) -> list[str]:
    """
    将报告行展开为与 csv_header 对齐的字段列表。
    """
    return [
        row.module,
        row.dependency,
        row.type,
        row.current_version,
        row.libyear_latest,
        row.npm_latest,
        row.npm_wanted,
        row.easy_upgrade,
        row.unused,
        *(value for _major, value in row.node_versions),
        row.drift,
        row.pulse,
        row.releases,
        row.major,
        row.minor,
        row.patch,
    ]


def render_csv(report: Report) -> str:
    """
    渲染分号分隔的 CSV 文本。
    """
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=CSV_DELIMITER, lineterminator="\n")
    writer.writerow(csv_header(report.node_versions))
    for row in report.rows:
        writer.writerow(row_values(row))
    return buf.getvalue()


def default_output_path(root_name: str) -> Path:
    """
    默认输出文件名：analysis-result-<根目录名>.csv。
    """
    return Path(f"analysis-result-{root_name}.csv")


def write_csv(report: Report, path: Path) -> Path:
    """
    一次性写出完整 CSV 报告。
    """
    path.write_text(render_csv(report), encoding="utf-8", newline="")
    return path


def report_to_json_obj(report: Report) -> dict[str, Any]:
    """
    将报告转换为可 JSON 序列化的字典结构（行使用与 CSV 相同的列名）。
    """
    header = csv_header(report.node_versions)
    data = asdict(report)
    data["rows"] = [dict(zip(header, row_values(row))) for row in report.rows]
    data["node_versions"] = list(report.node_versions)
    return data


def render_json(report: Report) -> str:
    """
    渲染 JSON 输出。
    """
    return json.dumps(report_to_json_obj(report), ensure_ascii=False, indent=2)


def render_markdown(report: Report) -> str:
    """
    渲染 Markdown 报告（表格 + 简要统计）。
    """
    header = csv_header(report.node_versions)
    lines: list[str] = []
    lines.append(
        f"# npm-lens 报告\n\n- 目录：`{report.root}`\n- package.json：{report.manifests}\n"
        f"- 依赖行数：{len(report.rows)}\n- 跳过：{len(report.skipped)}\n"
    )
    lines.append("| " + " | ".join(header) + " |")
    lines.append("|" + "---|" * len(header))
    for row in report.rows:
        lines.append("| " + " | ".join(row_values(row)) + " |")
    return "\n".join(lines) + "\n"


def print_summary(report: Report, *, file: TextIO | None = None) -> None:
    """
    以控制台表格形式输出各模块的统计与被跳过的 package.json。
    """
    console = Console(file=file, stderr=file is None)
    table = Table(title=f"npm-lens 分析：{report.root_name}")
    table.add_column("模块", no_wrap=True)
    table.add_column("依赖数", justify="right")
    table.add_column("生产", justify="right")
    table.add_column("开发", justify="right")

    counts: dict[str, list[int]] = {}
    for row in report.rows:
        entry = counts.setdefault(row.module, [0, 0])
        entry[0 if row.type == "production" else 1] += 1
    for module, (prod, dev) in counts.items():
        table.add_row(module, str(prod + dev), str(prod), str(dev))
    console.print(table)

    for skipped in report.skipped:
        console.print(f"[yellow]跳过[/yellow] {skipped.path}：{skipped.reason}")
    console.print(f"package.json：{report.manifests}，依赖行数：{len(report.rows)}，跳过：{len(report.skipped)}")
