"""
配置管理器模块。

提供版本存储状态和应用设置的加载、保存与验证功能。
"""

import json
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from nodespark.core.interfaces import IConfigManager
from nodespark.core.models import VersionStoreState
from nodespark.core.remote_fetcher import DEFAULT_DIST_URL, DEFAULT_TIMEOUT
from nodespark.core.download_manager import DEFAULT_TIMEOUT as DEFAULT_DOWNLOAD_TIMEOUT
from nodespark.utils.logger import get_app_dir, get_logger

logger = get_logger()


class ConfigValidationError(Exception):
    """配置验证错误异常。"""
    pass


class ConfigLoadError(Exception):
    """配置加载错误异常。"""
    pass


class ConfigSaveError(Exception):
    """配置保存错误异常。"""
    pass


def _atomic_save_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """
    原子保存 JSON 数据到文件，防止写入中断导致文件损坏。

    参数:
        file_path: 目标文件路径
        data: 要保存的数据
        indent: JSON 缩进
    """
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
        os.replace(temp_path, file_path)
    except Exception:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


class ConfigManager(IConfigManager):
    """
    配置管理器类。

    负责读写 config.json。文件中的 installPath、installedVersions、activeVersion
    三个字段构成版本存储状态，其余字段（如 settings）原样保留。
    实现 IConfigManager 抽象接口。
    """

    STATE_FIELDS = {
        "installPath": str,
        "installedVersions": list,
        "activeVersion": str,
    }

    DEFAULT_SETTINGS = {
        "distUrl": DEFAULT_DIST_URL,
        "requestTimeout": DEFAULT_TIMEOUT,
        "downloadTimeout": DEFAULT_DOWNLOAD_TIMEOUT,
    }

    SETTINGS_FIELDS = {
        "distUrl": str,
        "requestTimeout": (int, float),
        "downloadTimeout": (int, float),
    }

    def __init__(self, app_dir: Optional[Path] = None, config_file: Optional[Path] = None):
        """
        初始化配置管理器。

        参数:
            app_dir: 应用数据目录，默认为 NODE_SPARK_HOME 或 ~/.node-spark
            config_file: 配置文件路径，默认为 <app_dir>/config.json
        """
        self.app_dir = Path(app_dir) if app_dir else get_app_dir()
        self.config_file = Path(config_file) if config_file else self.app_dir / "config.json"
        self._config: dict[str, Any] = {}

    @property
    def default_install_path(self) -> Path:
        return self.app_dir / "versions"

    def get_link_path(self) -> Path:
        return self.app_dir / "current"

    def get_shim_dir(self) -> Path:
        return self.app_dir / "shims"

    def get_log_dir(self) -> Path:
        return self.app_dir / "logs"

    def _read_config_file(self) -> dict[str, Any]:
        """
        读取配置文件。

        返回:
            配置字典，文件不存在时返回空字典

        抛出:
            ConfigLoadError: 文件无法读取或不是 JSON 对象
        """
        if not self.config_file.exists():
            logger.info(f"配置文件不存在，使用默认配置: {self.config_file}")
            return {}
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (IOError, OSError, json.JSONDecodeError) as e:
            logger.error(f"加载配置文件失败: {e}")
            raise ConfigLoadError(f"无法加载配置文件 {self.config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigLoadError(f"配置文件 {self.config_file} 顶层必须是对象")
        return data

    def validate_config(self, config: dict[str, Any]) -> bool:
        """
        验证配置的有效性。

        参数:
            config: 要验证的配置字典

        返回:
            验证通过返回 True

        抛出:
            ConfigValidationError: 字段类型不正确
        """
        for field, expected_type in self.STATE_FIELDS.items():
            value = config.get(field)
            if value is None:
                continue
            if not isinstance(value, expected_type):
                raise ConfigValidationError(
                    f"字段 '{field}' 必须是 {expected_type.__name__} 类型，"
                    f"实际为 {type(value).__name__}"
                )

        for version in config.get("installedVersions") or []:
            if not isinstance(version, str) or not version:
                raise ConfigValidationError("installedVersions 中的元素必须是非空字符串")

        settings = config.get("settings")
        if settings is None:
            return True
        if not isinstance(settings, dict):
            raise ConfigValidationError("settings 必须是对象")
        for field, expected_type in self.SETTINGS_FIELDS.items():
            if field in settings and not isinstance(settings[field], expected_type):
                raise ConfigValidationError(f"字段 'settings.{field}' 类型不正确")
        return True

    def load_state(self) -> VersionStoreState:
        """
        加载版本存储状态。

        活动版本不在已安装列表中时，若其目录存在则补充到列表，否则清除。

        返回:
            VersionStoreState

        抛出:
            ConfigLoadError: 配置文件无法读取
            ConfigValidationError: 配置字段类型不正确
        """
        self._config = self._read_config_file()
        self.validate_config(self._config)

        state = VersionStoreState.from_dict(self._config, str(self.default_install_path))
        active = state.active_version
        if active and active not in state.installed_versions:
            if (Path(state.install_path) / active).is_dir():
                logger.warning(f"活动版本 {active} 不在已安装列表中，已补充记录")
                state.installed_versions.append(active)
            else:
                logger.warning(f"活动版本 {active} 未安装，已清除")
                state.active_version = None

        logger.debug(
            f"已加载状态: {len(state.installed_versions)} 个已安装版本，"
            f"活动版本 {state.active_version or '无'}"
        )
        return state

    def save_state(self, state: VersionStoreState) -> None:
        """
        保存版本存储状态，保留配置文件中的其他字段。

        参数:
            state: 要保存的状态

        抛出:
            ConfigSaveError: 无法写入配置文件
        """
        config = dict(self._config)
        config.update(state.to_dict())
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            _atomic_save_json(self.config_file, config, indent=2)
        except (IOError, OSError, TypeError) as e:
            logger.error(f"保存配置失败: {e}")
            raise ConfigSaveError(f"无法保存配置到 {self.config_file}: {e}") from e
        self._config = config
        logger.debug(f"配置已保存到 {self.config_file}")

    def get_settings(self) -> dict[str, Any]:
        """
        获取应用设置，缺失项使用默认值。

        NODE_SPARK_MIRROR 环境变量优先于配置中的 distUrl。

        返回:
            设置字典
        """
        settings = dict(self.DEFAULT_SETTINGS)
        stored = self._config.get("settings")
        if isinstance(stored, dict):
            for key in self.DEFAULT_SETTINGS:
                if key in stored:
                    settings[key] = stored[key]
        mirror = os.environ.get("NODE_SPARK_MIRROR")
        if mirror:
            settings["distUrl"] = mirror
        return settings

    def wipe_all_data(self) -> None:
        """
        删除全部 node-spark 数据，包括已安装版本、shim、激活链接和配置文件。
        """
        if not self.app_dir.exists() and not self.config_file.exists():
            logger.info("没有需要清除的 node-spark 数据")
            return

        install_path = Path(self._config.get("installPath") or self.default_install_path)
        link_path = self.get_link_path()

        if os.path.islink(link_path):
            link_path.unlink()
        for path in (install_path, self.get_shim_dir(), link_path):
            if path.exists():
                logger.info(f"删除 {path}")
                shutil.rmtree(path)
        if self.config_file.exists():
            self.config_file.unlink()
        if self.app_dir.exists():
            shutil.rmtree(self.app_dir)
        self._config = {}
        logger.info("已清除全部 node-spark 数据")
