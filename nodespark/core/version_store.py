"""
版本存储模块。

跟踪已安装版本和当前活动版本。磁盘上的版本目录是"已安装"的依据，
状态记录是"活动版本"的依据。
"""

import os
import shutil
from pathlib import Path
from typing import List

from nodespark.core.models import VersionStoreState
from nodespark.core.version_utils import clean_version
from nodespark.utils.logger import get_logger

logger = get_logger()


class VersionStoreError(Exception):
    """版本存储错误异常。"""
    pass


class NotInstalledError(VersionStoreError):
    """目标版本未安装。"""
    pass


class ActiveVersionError(VersionStoreError):
    """尝试删除当前活动版本。"""
    pass


class NoActiveVersionError(VersionStoreError):
    """当前没有活动版本。"""
    pass


class VersionStore:
    """
    版本存储类。

    包装一次命令调用期间的 VersionStoreState，状态由调用方持久化。
    """

    def __init__(self, state: VersionStoreState):
        """
        初始化版本存储。

        参数:
            state: 从配置加载的状态，按引用修改
        """
        self.state = state

    @property
    def install_root(self) -> Path:
        return Path(self.state.install_path)

    def version_dir(self, version: str) -> Path:
        return self.install_root / clean_version(version)

    def list_installed(self) -> List[str]:
        """返回已安装版本列表（保持安装顺序）。"""
        return list(self.state.installed_versions)

    def is_installed(self, version: str) -> bool:
        """检查版本目录是否存在于磁盘上。"""
        return self.version_dir(version).is_dir()

    def record_installed(self, version: str) -> None:
        """将版本加入已安装集合，重复调用无副作用。"""
        version = clean_version(version)
        if version not in self.state.installed_versions:
            self.state.installed_versions.append(version)
            logger.debug(f"记录已安装版本 {version}")

    def record_active(self, version: str) -> None:
        """
        将版本标记为活动版本。

        参数:
            version: 版本号

        抛出:
            NotInstalledError: 版本目录不存在
        """
        version = clean_version(version)
        if not self.is_installed(version):
            raise NotInstalledError(f"版本 {version} 未安装")
        if version not in self.state.installed_versions:
            logger.warning(f"版本 {version} 存在于磁盘但不在已安装列表中，已补充记录")
            self.record_installed(version)
        self.state.active_version = version
        logger.info(f"活动版本设置为 {version}")

    def get_active(self) -> str:
        """
        获取当前活动版本。

        抛出:
            NoActiveVersionError: 未设置活动版本
        """
        if not self.state.active_version:
            raise NoActiveVersionError("当前没有活动的 Node.js 版本")
        return self.state.active_version

    def remove(self, version: str) -> None:
        """
        删除已安装版本。

        先递归删除磁盘目录，再从已安装集合中移除。

        参数:
            version: 版本号

        抛出:
            ActiveVersionError: 目标是当前活动版本
            NotInstalledError: 目标既不在磁盘上也不在已安装集合中
            VersionStoreError: 删除磁盘目录失败
        """
        version = clean_version(version)
        if self.state.active_version == version:
            raise ActiveVersionError(
                f"无法删除当前活动版本 {version}，请先切换到其他版本"
            )

        path = self.version_dir(version)
        on_disk = os.path.lexists(path)
        recorded = version in self.state.installed_versions
        if not on_disk and not recorded:
            raise NotInstalledError(f"版本 {version} 未安装")

        if on_disk:
            try:
                if path.is_symlink() or not path.is_dir():
                    path.unlink()
                else:
                    shutil.rmtree(path)
            except OSError as e:
                logger.error(f"删除 {path} 失败: {e}")
                raise VersionStoreError(f"无法删除版本 {version}: {e}") from e
            logger.info(f"已删除 {path}")
        else:
            logger.warning(f"版本目录 {path} 已不存在，仅从记录中移除")

        if recorded:
            self.state.installed_versions.remove(version)
