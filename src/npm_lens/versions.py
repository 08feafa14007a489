from __future__ import annotations

import re
from dataclasses import dataclass

from packaging.version import Version


class InvalidRange(ValueError):
    """
    无法解析的 npm semver 范围。
    """


@dataclass(frozen=True, slots=True)
class Interval:
    """
    版本区间；lower/upper 为 None 表示无界。
    """

    lower: Version | None = None
    lower_inclusive: bool = True
    upper: Version | None = None
    upper_inclusive: bool = False

    def is_empty(self) -> bool:
        """
        判断区间是否不包含任何版本。
        """
        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            return not (self.lower_inclusive and self.upper_inclusive)
        return False

    def intersect(self, other: Interval) -> Interval:
        """
        计算两个区间的交集。
        """
        lower, lower_inclusive = self.lower, self.lower_inclusive
        if other.lower is not None:
            if lower is None or other.lower > lower:
                lower, lower_inclusive = other.lower, other.lower_inclusive
            elif other.lower == lower:
                lower_inclusive = lower_inclusive and other.lower_inclusive

        upper, upper_inclusive = self.upper, self.upper_inclusive
        if other.upper is not None:
            if upper is None or other.upper < upper:
                upper, upper_inclusive = other.upper, other.upper_inclusive
            elif other.upper == upper:
                upper_inclusive = upper_inclusive and other.upper_inclusive

        return Interval(lower, lower_inclusive, upper, upper_inclusive)


ANY = Interval()
EMPTY = Interval(Version("0"), False, Version("0"), False)

_WILDCARDS = {"x", "X", "*"}
_PARTIAL_RE = re.compile(
    r"^v?=?\s*(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-[0-9A-Za-z.-]+)?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op><=|>=|<|>|=|~>|~|\^)?(?P<version>.*)$")
_OPERATOR_SPACE_RE = re.compile(r"(<=|>=|<|>|=|~>|~|\^)\s+")
_HYPHEN_RE = re.compile(r"^(?P<low>\S+)\s+-\s+(?P<high>\S+)$")


def _part(raw: str | None) -> int | None:
    if raw is None or raw in _WILDCARDS:
        return None
    return int(raw)


def _parse_partial(raw: str) -> tuple[int | None, int | None, int | None]:
    """
    解析可能不完整的版本号（1 / 1.2 / 1.2.x / *），缺失部分返回 None。
    """
    m = _PARTIAL_RE.match(raw.strip())
    if not m:
        raise InvalidRange(raw)
    major = _part(m.group("major"))
    minor = _part(m.group("minor")) if major is not None else None
    patch = _part(m.group("patch")) if minor is not None else None
    return major, minor, patch


def _v(major: int, minor: int = 0, patch: int = 0) -> Version:
    return Version(f"{major}.{minor}.{patch}")


def _next_after_partial(major: int, minor: int | None) -> Version:
    """
    对不完整版本求“下一个”边界：1 -> 2.0.0，1.2 -> 1.3.0。
    """
    if minor is None:
        return _v(major + 1)
    return _v(major, minor + 1)


def _caret(major: int | None, minor: int | None, patch: int | None) -> Interval:
    if major is None:
        return ANY
    lower = _v(major, minor or 0, patch or 0)
    if major > 0 or minor is None:
        return Interval(lower, True, _v(major + 1), False)
    if minor > 0 or patch is None:
        return Interval(lower, True, _v(0, minor + 1), False)
    return Interval(lower, True, _v(0, 0, patch + 1), False)


def _tilde(major: int | None, minor: int | None, patch: int | None) -> Interval:
    if major is None:
        return ANY
    lower = _v(major, minor or 0, patch or 0)
    return Interval(lower, True, _next_after_partial(major, minor), False)


def _primitive(op: str, major: int | None, minor: int | None, patch: int | None) -> Interval:
    full = patch is not None
    if op in ("", "="):
        if major is None:
            return ANY
        if full:
            exact = _v(major, minor, patch)
            return Interval(exact, True, exact, True)
        return Interval(_v(major, minor or 0), True, _next_after_partial(major, minor), False)

    if op == ">":
        if major is None:
            return EMPTY
        if full:
            return Interval(_v(major, minor, patch), False, None, False)
        return Interval(_next_after_partial(major, minor), True, None, False)

    if op == ">=":
        if major is None:
            return ANY
        return Interval(_v(major, minor or 0, patch or 0), True, None, False)

    if op == "<":
        if major is None:
            return EMPTY
        return Interval(None, True, _v(major, minor or 0, patch or 0), False)

    if op == "<=":
        if major is None:
            return ANY
        if full:
            return Interval(None, True, _v(major, minor, patch), True)
        return Interval(None, True, _next_after_partial(major, minor), False)

    raise InvalidRange(op)


def _hyphen(low: str, high: str) -> Interval:
    lo_major, lo_minor, lo_patch = _parse_partial(low)
    hi_major, hi_minor, hi_patch = _parse_partial(high)
    lower = ANY if lo_major is None else Interval(_v(lo_major, lo_minor or 0, lo_patch or 0), True, None, False)
    if hi_major is None:
        upper = ANY
    elif hi_patch is not None:
        upper = Interval(None, True, _v(hi_major, hi_minor, hi_patch), True)
    else:
        upper = Interval(None, True, _next_after_partial(hi_major, hi_minor), False)
    return lower.intersect(upper)


def _comparator(token: str) -> Interval:
    m = _COMPARATOR_RE.match(token)
    if not m:
        raise InvalidRange(token)
    op = m.group("op") or ""
    major, minor, patch = _parse_partial(m.group("version"))
    if op == "^":
        return _caret(major, minor, patch)
    if op in ("~", "~>"):
        return _tilde(major, minor, patch)
    return _primitive(op, major, minor, patch)


def _comparator_set(raw: str) -> Interval:
    """
    解析空格分隔的比较器集合（AND 关系），返回其交集区间。
    """
    text = _OPERATOR_SPACE_RE.sub(r"\1", raw.strip())
    if not text:
        return ANY

    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        return _hyphen(hyphen.group("low"), hyphen.group("high"))

    interval = ANY
    for token in text.split():
        interval = interval.intersect(_comparator(token))
    return interval


def parse_range(raw: str) -> list[Interval]:
    """
    将 npm semver 范围（支持 ||、^、~、x-range、hyphen range）解析为区间并集。
    """
    if raw is None:
        raise InvalidRange("None")
    return [_comparator_set(part) for part in str(raw).split("||")]


def ranges_intersect(left: str, right: str) -> bool:
    """
    判断两个 npm semver 范围是否存在交集（等价于 semver.intersects）。
    """
    left_intervals = [i for i in parse_range(left) if not i.is_empty()]
    right_intervals = [i for i in parse_range(right) if not i.is_empty()]
    return any(not a.intersect(b).is_empty() for a in left_intervals for b in right_intervals)


def runtime_range(major: int) -> str:
    """
    Node 主版本对应的范围字符串，如 18 -> ^18.0.0。
    """
    return f"^{major}.0.0"
