from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib

from npm_lens.compatibility import DEFAULT_NODE_VERSIONS
from npm_lens.discovery import DEFAULT_EXCLUDE_DIRS
from npm_lens.external import DEFAULT_LIBYEAR_COMMAND, DEFAULT_NPM_CHECK_COMMAND
from npm_lens.models import DiagnosticPolicy
from npm_lens.registry_client import DEFAULT_REGISTRY_URL, RegistryAuth, RegistrySettings


@dataclass(frozen=True, slots=True)
class AppConfig:
    """
    npm-lens 的运行配置（可来自配置文件、环境变量与 CLI 参数合并）。
    """

    registry: RegistrySettings
    node_versions: tuple[int, ...] = DEFAULT_NODE_VERSIONS
    exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    libyear_command: tuple[str, ...] = DEFAULT_LIBYEAR_COMMAND
    npm_check_command: tuple[str, ...] = DEFAULT_NPM_CHECK_COMMAND
    drift_diagnostics: DiagnosticPolicy = "skip"


def _find_default_config_file(cwd: Path) -> Path | None:
    """
    在当前目录查找默认配置文件路径。
    """
    candidates = [
        ".npm-lens.toml",
        ".npm-lens.yaml",
        ".npm-lens.yml",
        "npm-lens.toml",
        "npm-lens.yaml",
        "npm-lens.yml",
    ]
    for name in candidates:
        p = cwd / name
        if p.exists() and p.is_file():
            return p
    return None


def _load_yaml(path: Path) -> dict[str, Any]:
    """
    读取 YAML 配置文件（需要 PyYAML）。
    """
    import yaml

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        return {}
    return data


def _load_config_file(path: Path) -> dict[str, Any]:
    """
    读取 .toml 或 .yaml 配置文件，返回配置字典。
    """
    suffix = path.suffix.lower()
    if suffix == ".toml":
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    if suffix in {".yaml", ".yml"}:
        return _load_yaml(path)
    return {}


def _env_list(key: str) -> list[str]:
    """
    从环境变量读取列表（逗号分隔）。
    """
    value = os.environ.get(key)
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def parse_node_versions(values: list[Any]) -> tuple[int, ...]:
    """
    将 Node 主版本列表（如 ["18", 20, "v22"]）规范化为去重后的整数元组。
    """
    majors: list[int] = []
    for value in values:
        text = str(value).strip().lstrip("vV")
        major = int(text.split(".", 1)[0])
        if major not in majors:
            majors.append(major)
    return tuple(majors)


def parse_command(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    命令可配置为字符串（按 shell 规则拆分）或字符串列表。
    """
    if not value:
        return default
    if isinstance(value, str):
        return tuple(shlex.split(value))
    return tuple(str(v) for v in value)


def load_config(config_path: str | None) -> AppConfig:
    """
    从配置文件与环境变量加载 AppConfig。
    """
    config_data: dict[str, Any] = {}
    if config_path:
        config_data = _load_config_file(Path(config_path))
    else:
        default = _find_default_config_file(Path.cwd())
        if default:
            config_data = _load_config_file(default)

    tool_cfg = config_data.get("npm_lens") if isinstance(config_data, dict) else {}
    if not isinstance(tool_cfg, dict):
        tool_cfg = {}

    registry_url = (
        os.environ.get("NPM_LENS_REGISTRY_URL")
        or str(tool_cfg.get("registry_url") or "")
        or DEFAULT_REGISTRY_URL
    )

    bearer = os.environ.get("NPM_LENS_BEARER_TOKEN") or str(tool_cfg.get("bearer_token") or "") or None
    basic_user = os.environ.get("NPM_LENS_BASIC_USERNAME") or str(tool_cfg.get("basic_username") or "") or None
    basic_pass = os.environ.get("NPM_LENS_BASIC_PASSWORD") or str(tool_cfg.get("basic_password") or "") or None
    auth = None
    if bearer or (basic_user is not None and basic_pass is not None):
        auth = RegistryAuth(bearer_token=bearer, basic_username=basic_user, basic_password=basic_pass)

    timeout_raw = tool_cfg.get("timeout_s")
    timeout_s = float(timeout_raw) if timeout_raw else None

    settings = RegistrySettings(registry_url=registry_url, timeout_s=timeout_s, auth=auth)

    node_raw = _env_list("NPM_LENS_NODE_VERSIONS") or list(tool_cfg.get("node_versions") or [])
    node_versions = parse_node_versions(node_raw) if node_raw else DEFAULT_NODE_VERSIONS

    configured_excludes = _env_list("NPM_LENS_EXCLUDE_DIRS") or list(tool_cfg.get("exclude_dirs") or [])
    exclude_dirs = tuple(dict.fromkeys([*DEFAULT_EXCLUDE_DIRS, *configured_excludes]))

    drift_diagnostics = str(tool_cfg.get("drift_diagnostics") or "skip")

    return AppConfig(
        registry=settings,
        node_versions=node_versions,
        exclude_dirs=exclude_dirs,
        libyear_command=parse_command(tool_cfg.get("libyear_command"), DEFAULT_LIBYEAR_COMMAND),
        npm_check_command=parse_command(tool_cfg.get("npm_check_command"), DEFAULT_NPM_CHECK_COMMAND),
        drift_diagnostics=drift_diagnostics if drift_diagnostics in {"skip", "report"} else "skip",
    )
