"""
版本工具模块。

提供版本号解析、比较和排序等工具函数。
"""

from typing import List, Tuple

from nodespark.core.models import ReleaseDescriptor


def clean_version(version: str) -> str:
    """去掉版本号的前导 v。"""
    version = version.strip()
    return version[1:] if version.startswith("v") else version


def prefixed_version(version: str) -> str:
    """为版本号补上前导 v。"""
    version = version.strip()
    return version if version.startswith("v") else "v" + version


def parse_version(version_str: str) -> Tuple[int, ...]:
    """
    解析版本字符串为可比较的元组。

    每个以点分隔的部分只取 "-" 之前的数字，无法解析的部分被忽略，
    例如 "v1.2.3-rc.1" 解析为 (1, 2, 3)。

    参数:
        version_str: 版本字符串

    返回:
        版本元组 (major, minor, patch, ...)
    """
    numbers = []
    for part in clean_version(version_str).split("."):
        num_part = part.split("-")[0]
        if num_part.isdigit():
            numbers.append(int(num_part))
    return tuple(numbers)


def compare_versions(a: str, b: str) -> int:
    """
    比较两个版本号。

    逐个比较数字部分；数字部分是另一方严格前缀的版本视为较旧。

    返回:
        a 较新返回 1，较旧返回 -1，相同返回 0
    """
    pa, pb = parse_version(a), parse_version(b)
    if pa == pb:
        return 0
    return 1 if pa > pb else -1


def sort_releases_desc(releases: List[ReleaseDescriptor]) -> List[ReleaseDescriptor]:
    """
    按版本号降序排列发布条目（最新的在前）。

    参数:
        releases: 发布条目列表

    返回:
        排序后的新列表
    """
    return sorted(
        releases,
        key=lambda r: parse_version(r.version),
        reverse=True,
    )


def sort_versions_desc(versions: List[str]) -> List[str]:
    """按版本号降序排列版本字符串。"""
    return sorted(versions, key=parse_version, reverse=True)
