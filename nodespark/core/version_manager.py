"""
版本管理器模块。

协调远程索引、下载、解压、版本存储和激活切换，提供 Node.js 版本的
安装、切换、删除和查询功能。
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from nodespark.core.activator import probe_executable, select_activator
from nodespark.core.download_manager import DownloadManager, TransferError
from nodespark.core.extractor import ArchiveExtractor
from nodespark.core.interfaces import (
    IActivator,
    IConfigManager,
    IReleaseIndex,
    IVersionManager,
    ProgressCallback,
    StatusCallback,
)
from nodespark.core.models import (
    ActivationResult,
    InstallResult,
    ReleaseDescriptor,
    VersionStoreState,
)
from nodespark.core.platform_info import SystemInfo, detect_system_info
from nodespark.core.remote_fetcher import RemoteFetcher
from nodespark.core.version_store import NotInstalledError, VersionStore
from nodespark.core.version_utils import clean_version, sort_versions_desc
from nodespark.utils.input_validator import InputValidator
from nodespark.utils.logger import get_logger

logger = get_logger()

KEYWORD_TOKENS = ("latest", "lts")
PHASE_DOWNLOAD = "download"
PHASE_EXTRACT = "extract"
PHASE_VERIFY = "verify"


class VersionManager(IVersionManager):
    """
    版本管理器类。

    本类作为协调者，将具体工作委托给各个专用模块。状态在构造时传入，
    由调用方在命令成功后持久化。
    实现 IVersionManager 抽象接口。
    """

    def __init__(
        self,
        config_manager: IConfigManager,
        state: VersionStoreState,
        fetcher: Optional[IReleaseIndex] = None,
        downloader: Optional[DownloadManager] = None,
        extractor: Optional[ArchiveExtractor] = None,
        activator: Optional[IActivator] = None,
        system_info: Optional[SystemInfo] = None,
        probe: Callable[[Path], bool] = probe_executable,
    ):
        """
        初始化版本管理器。

        参数:
            config_manager: 配置管理器实例
            state: 本次调用加载的版本存储状态
            fetcher: 发布索引客户端，默认按配置创建 RemoteFetcher
            downloader: 下载管理器，默认按配置创建
            extractor: 解压器，默认按平台创建
            activator: 激活器，默认按平台选择
            system_info: 平台信息，默认自动探测
            probe: 安装后验证可执行文件的函数
        """
        self.config_manager = config_manager
        self.settings = config_manager.get_settings()
        self.store = VersionStore(state)
        self.system_info = system_info or detect_system_info()

        self.fetcher = fetcher or RemoteFetcher(
            self.settings["distUrl"], self.settings["requestTimeout"]
        )
        self.downloader = downloader or DownloadManager(self.settings["downloadTimeout"])
        self.extractor = extractor or ArchiveExtractor(
            symlinks_supported=not self.system_info.uses_shims,
            primary_executable="node.exe" if self.system_info.uses_shims else None,
        )
        self.activator = activator or select_activator(config_manager)
        self.probe = probe

    @property
    def state(self) -> VersionStoreState:
        return self.store.state

    def _notify(self, status_callback: Optional[StatusCallback], phase: str) -> None:
        logger.debug(f"安装阶段: {phase}")
        if status_callback:
            status_callback(phase)

    def _already_installed(self, version: str, descriptor: Optional[ReleaseDescriptor] = None) -> InstallResult:
        logger.info(f"Node.js {version} 已安装")
        self.store.record_installed(version)
        return InstallResult(
            version=version,
            path=self.store.version_dir(version),
            already_installed=True,
            descriptor=descriptor,
        )

    def install(
        self,
        token: str,
        progress_callback: Optional[ProgressCallback] = None,
        status_callback: Optional[StatusCallback] = None,
    ) -> InstallResult:
        """
        下载并安装指定版本。

        参数:
            token: 精确版本号、"latest" 或 "lts"
            progress_callback: 下载进度回调函数
            status_callback: 安装阶段回调函数，依次收到 download、extract、verify

        返回:
            InstallResult

        抛出:
            InputValidationError: 版本标识格式无效
            FetchError / ParseError / NotFoundError: 版本解析失败
            TransferError: 下载失败
            ExtractionError: 解压失败
        """
        token = InputValidator.sanitize_version_token(token)
        InputValidator.validate_version_token(token)

        if token.lower() not in KEYWORD_TOKENS and self.store.is_installed(token):
            return self._already_installed(clean_version(token))

        descriptor = self.fetcher.resolve(token)
        version = descriptor.clean_version
        if self.store.is_installed(version):
            return self._already_installed(version, descriptor)

        version_dir = self.store.version_dir(version)
        result = InstallResult(version=version, path=version_dir, descriptor=descriptor)
        artifact = self.system_info.artifact_id
        if descriptor.files and not descriptor.has_artifact(artifact):
            result.warn(f"版本 {descriptor.version} 的发布列表中没有 {artifact}，下载可能失败")

        url = self.system_info.download_url(self.settings["distUrl"], version)
        logger.info(f"开始安装 Node.js {descriptor.get_version_string()}")

        try:
            temp_dir = tempfile.mkdtemp(prefix="node-spark-")
        except OSError as e:
            raise TransferError(f"无法创建临时下载目录: {e}") from e
        try:
            archive_path = os.path.join(temp_dir, self.system_info.archive_filename(version))
            self._notify(status_callback, PHASE_DOWNLOAD)
            self.downloader.download(url, archive_path, progress_callback)

            self._notify(status_callback, PHASE_EXTRACT)
            created = not os.path.lexists(version_dir)
            try:
                report = self.extractor.extract(archive_path, str(version_dir))
            except Exception:
                if created and os.path.isdir(version_dir):
                    logger.info(f"解压失败，清理 {version_dir}")
                    shutil.rmtree(version_dir, ignore_errors=True)
                raise
            result.extend(report)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        if self.system_info.uses_shims:
            self._notify(status_callback, PHASE_VERIFY)
            self._verify(version_dir, result)

        self.store.record_installed(version)
        logger.info(f"Node.js {version} 已安装到 {version_dir}")
        return result

    def _verify(self, version_dir: Path, result: InstallResult) -> None:
        executable = version_dir / self.system_info.primary_executable
        if not executable.is_file():
            result.warn(f"安装目录中没有 {self.system_info.primary_executable}")
            return
        if not self.probe(executable):
            result.warn(
                f"{executable} 无法运行，可能与当前系统架构不兼容，"
                f"可能需要安装其他架构的版本"
            )

    def use(self, version: str) -> ActivationResult:
        """
        切换到指定版本。

        先执行激活，成功后再记录活动版本。

        参数:
            version: 版本号（可带 v 前缀）

        返回:
            ActivationResult

        抛出:
            NotInstalledError: 版本未安装
            ActivationError: 激活失败
        """
        version = clean_version(InputValidator.sanitize_version_token(version))
        InputValidator.validate_version_token(version)
        if not self.store.is_installed(version):
            raise NotInstalledError(f"版本 {version} 未安装，请先执行 install {version}")

        result = self.activator.activate(version, self.store.version_dir(version))
        self.store.record_active(version)
        logger.info(f"已切换到 Node.js {version}")
        return result

    def uninstall(self, version: str) -> None:
        """
        删除指定版本。

        抛出:
            ActiveVersionError: 目标是当前活动版本
            NotInstalledError: 版本未安装
        """
        version = clean_version(InputValidator.sanitize_version_token(version))
        InputValidator.validate_version_token(version)
        self.store.remove(version)
        logger.info(f"已删除 Node.js {version}")

    def list_installed(self) -> List[str]:
        """返回已安装版本，最新版本在前。"""
        return sort_versions_desc(self.store.list_installed())

    def get_current(self) -> str:
        """
        获取当前活动版本。

        抛出:
            NoActiveVersionError: 未设置活动版本
        """
        return self.store.get_active()

    def list_remote(self, lts_only: bool = False) -> List[ReleaseDescriptor]:
        """
        列出远程可用版本。

        参数:
            lts_only: 是否只返回 LTS 版本

        返回:
            发布条目列表，最新版本在前
        """
        return self.fetcher.list_versions(lts_only=lts_only)
