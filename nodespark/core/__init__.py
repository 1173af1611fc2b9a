"""
NodeSpark 核心模块。

提供发布索引、下载、解压、版本存储、激活切换和版本管理功能。
"""

from .interfaces import IConfigManager, IEnvManager, IReleaseIndex, IActivator, IVersionManager
from .models import LtsKind, LtsDesignation, ReleaseDescriptor, VersionStoreState, ExtractionReport, ActivationResult, InstallResult
from .config_manager import ConfigManager, ConfigValidationError, ConfigLoadError, ConfigSaveError
from .env_manager import EnvManager, EnvManagerError, RegistryAccessError
from .platform_info import SystemInfo, UnsupportedPlatformError, detect_system_info
from .remote_fetcher import RemoteFetcher, RemoteFetcherError, FetchError, ParseError, NotFoundError
from .download_manager import DownloadManager, DownloadManagerError, TransferError
from .extractor import ArchiveExtractor, ExtractionError, UnsupportedFormatError
from .version_store import VersionStore, VersionStoreError, NotInstalledError, ActiveVersionError, NoActiveVersionError
from .activator import SymlinkActivator, ShimActivator, ActivationError, select_activator
from .version_manager import VersionManager
from . import version_utils

__all__ = [
    "IConfigManager", "IEnvManager", "IReleaseIndex", "IActivator", "IVersionManager",
    "LtsKind", "LtsDesignation", "ReleaseDescriptor", "VersionStoreState", "ExtractionReport", "ActivationResult", "InstallResult",
    "ConfigManager", "ConfigValidationError", "ConfigLoadError", "ConfigSaveError",
    "EnvManager", "EnvManagerError", "RegistryAccessError",
    "SystemInfo", "UnsupportedPlatformError", "detect_system_info",
    "RemoteFetcher", "RemoteFetcherError", "FetchError", "ParseError", "NotFoundError",
    "DownloadManager", "DownloadManagerError", "TransferError",
    "ArchiveExtractor", "ExtractionError", "UnsupportedFormatError",
    "VersionStore", "VersionStoreError", "NotInstalledError", "ActiveVersionError", "NoActiveVersionError",
    "SymlinkActivator", "ShimActivator", "ActivationError", "select_activator",
    "VersionManager",
    "version_utils",
]
