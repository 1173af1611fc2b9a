"""
核心模块抽象接口定义。

定义配置管理、环境变量管理、发布索引、激活切换和版本管理的抽象接口。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional

from nodespark.core.models import (
    ActivationResult,
    InstallResult,
    ReleaseDescriptor,
    VersionStoreState,
)

ProgressCallback = Callable[[int, int], None]
StatusCallback = Callable[[str], None]


class IConfigManager(ABC):
    """配置管理器抽象接口。"""

    @abstractmethod
    def load_state(self) -> VersionStoreState:
        """从配置文件加载版本存储状态。"""
        pass

    @abstractmethod
    def save_state(self, state: VersionStoreState) -> None:
        """保存版本存储状态到配置文件。"""
        pass

    @abstractmethod
    def get_settings(self) -> dict[str, Any]:
        """获取 settings 配置部分。"""
        pass

    @abstractmethod
    def get_link_path(self) -> Path:
        """获取 POSIX 激活符号链接路径。"""
        pass

    @abstractmethod
    def get_shim_dir(self) -> Path:
        """获取 Windows shim 目录路径。"""
        pass


class IEnvManager(ABC):
    """用户级环境变量管理器抽象接口。"""

    @abstractmethod
    def get_env_var(self, name: str) -> Optional[str]:
        """获取环境变量值。"""
        pass

    @abstractmethod
    def set_env_var(self, name: str, value: str) -> bool:
        """设置环境变量值。"""
        pass

    @abstractmethod
    def get_path_entries(self) -> List[str]:
        """获取 PATH 环境变量的所有条目。"""
        pass

    @abstractmethod
    def add_to_path(self, entry: str) -> bool:
        """向 PATH 环境变量添加新条目。"""
        pass

    @abstractmethod
    def remove_from_path(self, entry: str) -> bool:
        """从 PATH 环境变量移除条目。"""
        pass

    @abstractmethod
    def path_contains(self, entry: str) -> bool:
        """检查 PATH 是否包含指定条目。"""
        pass


class IReleaseIndex(ABC):
    """远程发布索引抽象接口。"""

    @abstractmethod
    def fetch_releases(self, use_cache: bool = True) -> List[ReleaseDescriptor]:
        """获取按版本降序排列的全部发布条目。"""
        pass

    @abstractmethod
    def resolve(self, token: str) -> ReleaseDescriptor:
        """将版本标识解析为具体发布条目。"""
        pass

    @abstractmethod
    def list_versions(self, lts_only: bool = False) -> List[ReleaseDescriptor]:
        """列出可用版本，最新版本在前。"""
        pass


class IActivator(ABC):
    """激活切换器抽象接口，每个平台一个实现。"""

    @property
    @abstractmethod
    def activation_path(self) -> Path:
        """激活间接层所在路径（符号链接或 shim 目录）。"""
        pass

    @abstractmethod
    def activate(self, version: str, version_dir: Path) -> ActivationResult:
        """使指定版本成为后续 shell 会话的活动版本。"""
        pass


class IVersionManager(ABC):
    """版本管理器抽象接口。"""

    @abstractmethod
    def install(
        self,
        token: str,
        progress_callback: Optional[ProgressCallback] = None,
        status_callback: Optional[StatusCallback] = None,
    ) -> InstallResult:
        """下载并安装指定版本。"""
        pass

    @abstractmethod
    def use(self, version: str) -> ActivationResult:
        """切换到指定版本。"""
        pass

    @abstractmethod
    def uninstall(self, version: str) -> None:
        """删除指定版本。"""
        pass

    @abstractmethod
    def list_installed(self) -> List[str]:
        """列出已安装版本。"""
        pass

    @abstractmethod
    def get_current(self) -> str:
        """获取当前活动版本。"""
        pass

    @abstractmethod
    def list_remote(self, lts_only: bool = False) -> List[ReleaseDescriptor]:
        """列出远程可用版本。"""
        pass
