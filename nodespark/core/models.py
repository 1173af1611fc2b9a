"""
数据模型模块。

定义发布索引条目、版本存储状态以及携带非致命诊断信息的结果类型。
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from nodespark.utils.logger import get_logger

logger = get_logger()


class LtsKind(Enum):
    """LTS 标记的三种形态。"""

    ABSENT = "absent"
    NOT_LTS = "not_lts"
    NAMED = "named"


@dataclass(frozen=True)
class LtsDesignation:
    """
    LTS 标记。

    远程索引中的 lts 字段可能缺失、为 false 或为代号字符串，
    这里将其收敛为带标签的值，避免在系统内传递无类型的原始字段。
    """

    kind: LtsKind = LtsKind.ABSENT
    codename: Optional[str] = None

    @classmethod
    def absent(cls) -> "LtsDesignation":
        return cls(LtsKind.ABSENT)

    @classmethod
    def not_lts(cls) -> "LtsDesignation":
        return cls(LtsKind.NOT_LTS)

    @classmethod
    def named(cls, codename: Optional[str]) -> "LtsDesignation":
        return cls(LtsKind.NAMED, codename or None)

    @classmethod
    def from_raw(cls, value: Any, present: bool = True) -> "LtsDesignation":
        """
        从索引中的原始 lts 值构造 LTS 标记。

        参数:
            value: 原始值（bool、str 或其他）
            present: 字段是否存在于条目中

        返回:
            LtsDesignation 实例
        """
        if not present:
            return cls.absent()
        if isinstance(value, bool):
            return cls.named(None) if value else cls.not_lts()
        if isinstance(value, str):
            return cls.named(value) if value else cls.not_lts()
        return cls.absent()

    @property
    def is_lts(self) -> bool:
        return self.kind is LtsKind.NAMED


@dataclass(frozen=True)
class ReleaseDescriptor:
    """
    远程发布索引中的一个条目。

    获取后不可变，不做持久化。
    """

    version: str
    date: str = ""
    files: Tuple[str, ...] = ()
    lts: LtsDesignation = field(default_factory=LtsDesignation.absent)
    npm: Optional[str] = None
    v8: Optional[str] = None
    modules: Optional[str] = None

    @property
    def clean_version(self) -> str:
        """去掉前导 v 的版本号，用作安装目录名。"""
        return self.version[1:] if self.version.startswith("v") else self.version

    @property
    def is_lts(self) -> bool:
        return self.lts.is_lts

    def has_artifact(self, artifact_id: str) -> bool:
        return artifact_id in self.files

    def get_version_string(self) -> str:
        """
        生成用于显示的版本字符串。

        返回:
            例如 "v18.17.0 (LTS: Hydrogen)"、"v1.0.0 (LTS)" 或原始版本号
        """
        if self.lts.is_lts:
            if self.lts.codename:
                return f"{self.version} (LTS: {self.lts.codename})"
            return f"{self.version} (LTS)"
        return self.version


@dataclass
class VersionStoreState:
    """
    版本存储的持久化状态。

    不变式：active_version 非空时必须属于 installed_versions。
    """

    install_path: str
    installed_versions: List[str] = field(default_factory=list)
    active_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installPath": self.install_path,
            "installedVersions": list(self.installed_versions),
            "activeVersion": self.active_version or "",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_install_path: str) -> "VersionStoreState":
        """
        从持久化字典构造状态。

        参数:
            data: 配置文件中的字典
            default_install_path: installPath 缺失或为空时使用的默认路径

        返回:
            VersionStoreState 实例
        """
        installed: List[str] = []
        for version in data.get("installedVersions") or []:
            if version not in installed:
                installed.append(version)
        return cls(
            install_path=data.get("installPath") or default_install_path,
            installed_versions=installed,
            active_version=data.get("activeVersion") or None,
        )


@dataclass
class Diagnostics:
    """携带非致命诊断信息的结果基类。"""

    warnings: List[str] = field(default_factory=list, kw_only=True)

    def warn(self, message: str) -> None:
        """记录一条警告并写入日志。"""
        logger.info(message)
        self.warnings.append(message)

    def extend(self, other: "Diagnostics") -> None:
        self.warnings.extend(other.warnings)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


@dataclass
class ExtractionReport(Diagnostics):
    """解压结果。"""

    archive_path: str
    dest_dir: str
    entries_written: int = 0
    entries_skipped: int = 0


@dataclass
class ActivationResult(Diagnostics):
    """激活结果。"""

    version: str
    activation_path: Path
    activation_script: Optional[Path] = None
    hints: List[str] = field(default_factory=list)


@dataclass
class InstallResult(Diagnostics):
    """安装结果。"""

    version: str
    path: Path
    already_installed: bool = False
    descriptor: Optional[ReleaseDescriptor] = None
