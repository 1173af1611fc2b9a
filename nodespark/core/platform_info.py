"""
平台探测模块。

将当前操作系统和 CPU 架构映射为 Node.js 发布包使用的命名。
"""

import platform
from dataclasses import dataclass
from typing import Optional

from nodespark.core.version_utils import prefixed_version
from nodespark.utils.logger import get_logger

logger = get_logger()


class UnsupportedPlatformError(Exception):
    """不支持的操作系统或架构异常。"""
    pass


OS_NAMES = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "win",
}

ARCH_NAMES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armv7l",
    "armv7": "armv7l",
}


@dataclass(frozen=True)
class SystemInfo:
    """Node.js 发布包的平台信息。"""

    os_name: str
    arch: str

    @property
    def uses_shims(self) -> bool:
        return self.os_name == "win"

    @property
    def archive_ext(self) -> str:
        return "zip" if self.uses_shims else "tar.gz"

    @property
    def primary_executable(self) -> str:
        """主可执行文件相对于版本目录的路径。"""
        return "node.exe" if self.uses_shims else "bin/node"

    @property
    def artifact_id(self) -> str:
        """
        索引 files 字段中对应当前平台的条目。

        例如 linux-x64、osx-arm64-tar、win-x64-zip。
        """
        if self.os_name == "darwin":
            return f"osx-{self.arch}-tar"
        if self.os_name == "win":
            return f"win-{self.arch}-zip"
        return f"{self.os_name}-{self.arch}"

    def archive_filename(self, version: str) -> str:
        return f"node-{prefixed_version(version)}-{self.os_name}-{self.arch}.{self.archive_ext}"

    def download_url(self, dist_url: str, version: str) -> str:
        """
        构建发布包下载 URL。

        参数:
            dist_url: 发布根地址，例如 https://nodejs.org/dist/
            version: 版本号（可不带 v 前缀）

        返回:
            下载 URL
        """
        base = dist_url.rstrip("/")
        return f"{base}/{prefixed_version(version)}/{self.archive_filename(version)}"


def detect_system_info(system: Optional[str] = None, machine: Optional[str] = None) -> SystemInfo:
    """
    探测当前平台信息。

    参数:
        system: 操作系统名称，默认取 platform.system()
        machine: 机器架构名称，默认取 platform.machine()

    返回:
        SystemInfo 实例

    抛出:
        UnsupportedPlatformError: 操作系统或架构不受支持
    """
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    os_name = OS_NAMES.get(system)
    if os_name is None:
        raise UnsupportedPlatformError(f"不支持的操作系统: {system}")

    arch = ARCH_NAMES.get(machine)
    if arch is None:
        raise UnsupportedPlatformError(f"不支持的架构: {machine}")

    if os_name == "win" and arch not in ("x64", "x86", "arm64"):
        raise UnsupportedPlatformError(f"Windows 不支持的架构: {machine}")

    logger.debug(f"平台探测结果: os={os_name}, arch={arch}")
    return SystemInfo(os_name=os_name, arch=arch)
