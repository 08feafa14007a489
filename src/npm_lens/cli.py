from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from rich.console import Console
from rich.logging import RichHandler

from npm_lens.config import AppConfig, load_config, parse_command, parse_node_versions
from npm_lens.manifest import ManifestError
from npm_lens.registry_client import RegistryAuth, RegistrySettings


def build_parser() -> argparse.ArgumentParser:
    """
    构建 npm-lens 的命令行参数解析器。
    """
    parser = argparse.ArgumentParser(prog="npm-lens")
    parser.add_argument("root", nargs="?", default=".", help="要扫描的根目录（默认：当前目录）")
    parser.add_argument(
        "--version",
        action="store_true",
        help="输出版本号并退出",
    )
    parser.add_argument("--config", help="配置文件路径（.toml 或 .yaml）")
    parser.add_argument("--output", help="输出文件路径（默认：analysis-result-<目录名>.csv）")
    parser.add_argument("--format", choices=["csv", "json", "md"], default="csv", help="输出格式")
    parser.add_argument("--registry-url", help="npm registry 基址")
    parser.add_argument("--bearer-token", help="私有 registry Bearer Token（谨慎使用）")
    parser.add_argument("--basic-username", help="私有 registry Basic 用户名（谨慎使用）")
    parser.add_argument("--basic-password", help="私有 registry Basic 密码（谨慎使用）")
    parser.add_argument(
        "--node",
        action="append",
        default=[],
        help="追加检查兼容性的 Node 主版本（可重复，默认 16/18/20）",
    )
    parser.add_argument("--exclude-dir", action="append", default=[], help="跳过的目录名（可重复）")
    parser.add_argument(
        "--drift-diagnostics",
        choices=["skip", "report"],
        help="libyear 仅输出诊断信息时：跳过该 package.json，或仍输出依赖行",
    )
    parser.add_argument("--libyear-command", help="libyear 命令（默认：libyear --json）")
    parser.add_argument("--npm-check-command", help="npm-check 命令（需输出 JSON 数组）")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    return parser


def _merge_cli_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    将 CLI 参数覆盖合并到 AppConfig。
    """
    registry = cfg.registry
    auth: RegistryAuth | None = registry.auth
    if args.bearer_token or args.basic_username or args.basic_password:
        auth = RegistryAuth(
            bearer_token=args.bearer_token,
            basic_username=args.basic_username,
            basic_password=args.basic_password,
        )

    registry = RegistrySettings(
        registry_url=args.registry_url or registry.registry_url,
        timeout_s=registry.timeout_s,
        auth=auth,
    )

    node_versions = cfg.node_versions
    if args.node:
        node_versions = tuple(sorted(parse_node_versions([*cfg.node_versions, *args.node])))
    exclude_dirs = tuple([*cfg.exclude_dirs, *(args.exclude_dir or [])])

    return AppConfig(
        registry=registry,
        node_versions=node_versions,
        exclude_dirs=exclude_dirs,
        libyear_command=parse_command(args.libyear_command, cfg.libyear_command),
        npm_check_command=parse_command(args.npm_check_command, cfg.npm_check_command),
        drift_diagnostics=args.drift_diagnostics or cfg.drift_diagnostics,
    )


def configure_logging(*, verbose: bool) -> None:
    """
    将日志输出到 stderr（rich 渲染）。
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main(argv: list[str] | None = None) -> int:
    """
    npm-lens 命令行入口。
    """
    args = build_parser().parse_args(argv)

    if args.version:
        from npm_lens import __version__

        print(__version__)
        return 0

    configure_logging(verbose=bool(args.verbose))

    root = Path(args.root)
    if not root.is_dir():
        print(f"npm-lens: 目录不存在：{args.root}", file=sys.stderr)
        return 1

    try:
        cfg = _merge_cli_overrides(load_config(args.config), args)
    except (OSError, ValueError) as exc:
        print(f"npm-lens: 配置无效：{exc}", file=sys.stderr)
        return 1

    from npm_lens.app import run_analysis
    from npm_lens.formatters import default_output_path, print_summary, render_json, render_markdown, write_csv

    try:
        report = run_analysis(root, config=cfg)
    except ManifestError as exc:
        print(f"npm-lens: package.json 解析失败：{exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"npm-lens: 分析失败：{exc}", file=sys.stderr)
        return 1

    output_path = getattr(args, "output", None)
    try:
        if args.format == "csv":
            path = write_csv(report, Path(output_path) if output_path else default_output_path(report.root_name))
            print_summary(report)
            print(f"CSV 已写入：{path}", file=sys.stderr)
            return 0
        text = render_json(report) if args.format == "json" else render_markdown(report)
        if output_path:
            Path(output_path).write_text(text, encoding="utf-8")
        else:
            print(text)
    except OSError as exc:
        print(f"npm-lens: 写入报告失败：{exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
