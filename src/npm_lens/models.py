from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class DependencyKind(str, Enum):
    """
    依赖来源类别（对应 package.json 中的分组）。
    """

    PRODUCTION = "production"
    DEVELOPMENT = "development"


@dataclass(frozen=True, slots=True)
class DependencyItem:
    """
    从 package.json 中抽取出来的一条依赖声明。
    """

    name: str
    declared_range: str
    kind: DependencyKind
    module: str


@dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """
    registry 返回的包元数据（保留 versions 的原始迭代顺序）。
    """

    name: str
    versions: dict[str, dict[str, Any]]


@dataclass(frozen=True, slots=True)
class CompatibilityResult:
    """
    单个依赖在各 Node 主版本下的最新兼容版本。
    """

    name: str
    versions: dict[int, str]


@dataclass(frozen=True, slots=True)
class DriftRecord:
    """
    libyear 对单个依赖的输出。
    """

    dependency: str
    available: str | None = None
    drift: float | None = None
    pulse: float | None = None
    releases: int | None = None
    major: int | None = None
    minor: int | None = None
    patch: int | None = None


@dataclass(frozen=True, slots=True)
class OutdatedRecord:
    """
    npm-check 对单个依赖的输出。
    """

    module_name: str
    latest: str | None = None
    package_wanted: str | None = None
    easy_upgrade: bool | None = None
    unused: bool | None = None


class DriftStatus(str, Enum):
    """
    libyear 执行结果的类别。
    """

    DATA = "data"
    DIAGNOSTIC = "diagnostic"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DriftOutcome:
    """
    libyear 单次执行的结果：结构化数据、仅诊断文本或失败。
    """

    status: DriftStatus
    records: list[DriftRecord] = field(default_factory=list)
    diagnostic: str | None = None
    error: str | None = None


DiagnosticPolicy = Literal["skip", "report"]
