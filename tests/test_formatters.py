from __future__ import annotations

import json
from pathlib import Path

from npm_lens.formatters import (
    build_row,
    build_rows,
    csv_header,
    format_decimal,
    render_csv,
    render_json,
    render_markdown,
    write_csv,
)
from npm_lens.models import (
    CompatibilityResult,
    DependencyItem,
    DependencyKind,
    DriftRecord,
    OutdatedRecord,
)
from npm_lens.report import Report, SkippedManifest


def _item(name: str = "a", kind: DependencyKind = DependencyKind.PRODUCTION) -> DependencyItem:
    return DependencyItem(name=name, declared_range="^1.0.0", kind=kind, module="myproj")


def test_format_decimal() -> None:
    assert format_decimal(3.14159) == "3,14"
    assert format_decimal(0) == "0,00"
    assert format_decimal(None) == "Unknown"


def test_format_decimal_rounds_half_up() -> None:
    """
    恰好位于两位小数中点的值向上进位。
    """
    assert format_decimal(0.125) == "0,13"
    assert format_decimal(2.5) == "2,50"
    assert format_decimal(0.375) == "0,38"


def test_build_row_joins_all_sources() -> None:
    """
    三方数据齐全时各字段应正确填充。
    """
    row = build_row(
        _item(),
        drift=DriftRecord(
            dependency="a", available="2.0.0", drift=1.5, pulse=0.25, releases=7, major=1, minor=2, patch=3
        ),
        outdated=OutdatedRecord(
            module_name="a", latest="2.0.1", package_wanted="1.9.0", easy_upgrade=True, unused=False
        ),
        compatibility=CompatibilityResult(name="a", versions={16: "1.0.0", 18: "2.0.0", 20: "Not informed"}),
        node_versions=(16, 18, 20),
    )
    assert row.libyear_latest == "2.0.0"
    assert row.npm_latest == "2.0.1"
    assert row.npm_wanted == "1.9.0"
    assert row.easy_upgrade == "true"
    assert row.unused == "false"
    assert row.node_versions == ((16, "1.0.0"), (18, "2.0.0"), (20, "Not informed"))
    assert (row.drift, row.pulse) == ("1,50", "0,25")
    assert (row.releases, row.major, row.minor, row.patch) == ("7", "1", "2", "3")


def test_build_row_missing_sources_fall_back_to_defaults() -> None:
    """
    无匹配结果时使用统一缺省值，不抛出异常。
    """
    row = build_row(_item(), drift=None, outdated=None, compatibility=None, node_versions=(18,))
    assert row.libyear_latest == "Unknown"
    assert row.npm_latest == "Unknown"
    assert row.npm_wanted == "Unknown"
    assert row.easy_upgrade == "false"
    assert row.unused == "false"
    assert row.node_versions == ((18, "N/A"),)
    assert (row.drift, row.pulse) == ("Unknown", "Unknown")
    assert (row.releases, row.major, row.minor, row.patch) == ("0", "0", "0", "0")


def test_build_rows_matches_by_exact_name_first_wins() -> None:
    """
    按依赖名精确匹配，重复名称取第一个。
    """
    rows = build_rows(
        [_item("a"), _item("b", DependencyKind.DEVELOPMENT)],
        drift_records=[
            DriftRecord(dependency="A", available="9.9.9"),
            DriftRecord(dependency="a", available="1.1.0"),
            DriftRecord(dependency="a", available="1.2.0"),
        ],
        outdated_records=[OutdatedRecord(module_name="b", latest="3.0.0")],
        compatibility=[],
        node_versions=(20,),
    )
    assert [r.dependency for r in rows] == ["a", "b"]
    assert rows[0].libyear_latest == "1.1.0"
    assert rows[0].npm_latest == "Unknown"
    assert rows[1].npm_latest == "3.0.0"
    assert rows[1].type == "development"


def _make_report() -> Report:
    rows = build_rows(
        [_item("a")],
        drift_records=[DriftRecord(dependency="a", available="2.0.0", drift=0.5)],
        outdated_records=[],
        compatibility=[CompatibilityResult(name="a", versions={16: "1.0.0", 18: "2.0.0"})],
        node_versions=(16, 18),
    )
    return Report(
        root="/work/myproj",
        root_name="myproj",
        node_versions=(16, 18),
        rows=rows,
        manifests=2,
        skipped=[SkippedManifest(path="/work/myproj/x/package.json", reason="libyear failed")],
    )


def test_csv_header_order() -> None:
    assert csv_header((16, 18, 20)) == [
        "Module",
        "Dependency",
        "Type",
        "Current version",
        "Libyear latest version",
        "NPM latest version",
        "Wanted version",
        "Easy upgrade",
        "Unused",
        "Node 16",
        "Node 18",
        "Node 20",
        "Drift",
        "Pulse",
        "Releases",
        "Major",
        "Minor",
        "Patch",
    ]


def test_render_csv_is_semicolon_delimited() -> None:
    """
    CSV 使用分号分隔，首行为表头。
    """
    lines = render_csv(_make_report()).splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("Module;Dependency;Type;")
    assert lines[1] == (
        "myproj;a;production;^1.0.0;2.0.0;Unknown;Unknown;false;false;1.0.0;2.0.0;0,50;Unknown;0;0;0;0"
    )


def test_write_csv_is_deterministic(tmp_path: Path) -> None:
    """
    相同报告两次写出的文件内容完全一致。
    """
    first = write_csv(_make_report(), tmp_path / "one.csv").read_bytes()
    second = write_csv(_make_report(), tmp_path / "two.csv").read_bytes()
    assert first == second
    assert b"\r\n" not in first


def test_render_json_and_markdown() -> None:
    """
    JSON 与 Markdown 渲染应使用与 CSV 一致的列名。
    """
    obj = json.loads(render_json(_make_report()))
    assert obj["root_name"] == "myproj"
    assert obj["rows"][0]["Node 18"] == "2.0.0"
    assert obj["skipped"][0]["reason"] == "libyear failed"

    md = render_markdown(_make_report())
    assert "npm-lens 报告" in md
    assert "跳过：1" in md
    assert "| myproj | a | production |" in md
