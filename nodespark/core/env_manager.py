"""
环境变量管理器模块。

提供 Windows 用户级环境变量（HKEY_CURRENT_USER\\Environment）的读取和设置功能。
"""

import ctypes
import sys
from typing import List, Optional

from nodespark.core.interfaces import IEnvManager
from nodespark.utils.logger import get_logger

if sys.platform == "win32":
    import winreg
else:
    winreg = None

logger = get_logger()

ENV_KEY_PATH = "Environment"
WM_SETTINGCHANGE = 0x001A
HWND_BROADCAST = 0xFFFF
SMTO_ABORTIFHUNG = 0x0002


class EnvManagerError(Exception):
    """环境变量管理错误异常。"""
    pass


class RegistryAccessError(EnvManagerError):
    """注册表访问错误异常。"""
    pass


def _normalize_entry(entry: str) -> str:
    return entry.strip().rstrip("\\").lower()


class EnvManager(IEnvManager):
    """
    环境变量管理器类。

    管理当前用户的持久化环境变量，修改后对新启动的进程生效。
    实现 IEnvManager 抽象接口。
    """

    def __init__(self):
        """初始化环境变量管理器。"""
        if winreg is None:
            raise EnvManagerError("用户级环境变量管理仅支持 Windows 平台")
        self._key = None

    def _open_key(self, writable: bool = True):
        """
        打开注册表环境变量键。

        参数:
            writable: 是否以可写模式打开

        返回:
            打开的注册表键句柄
        """
        access = winreg.KEY_READ | winreg.KEY_SET_VALUE if writable else winreg.KEY_READ
        try:
            self._key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, ENV_KEY_PATH, 0, access)
            logger.debug(f"注册表键已打开 (writable={writable})")
            return self._key
        except OSError as e:
            error_msg = f"打开注册表键失败: {e}"
            logger.error(error_msg)
            raise RegistryAccessError(error_msg) from e

    def _close_key(self):
        """关闭注册表键。"""
        if self._key is not None:
            try:
                winreg.CloseKey(self._key)
            except (TypeError, OSError):
                pass
            self._key = None

    def get_env_var(self, name: str) -> Optional[str]:
        """
        获取环境变量值。

        参数:
            name: 环境变量名称

        返回:
            环境变量值，不存在则返回 None

        抛出:
            RegistryAccessError: 注册表无法访问
        """
        try:
            key = self._open_key(writable=False)
            value, _ = winreg.QueryValueEx(key, name)
            logger.debug(f"读取环境变量 {name}={value}")
            return value
        except FileNotFoundError:
            logger.debug(f"环境变量 {name} 不存在")
            return None
        except RegistryAccessError:
            raise
        except OSError as e:
            raise RegistryAccessError(f"读取环境变量 {name} 失败: {e}") from e
        finally:
            self._close_key()

    def set_env_var(self, name: str, value: str) -> bool:
        """
        设置环境变量值。

        参数:
            name: 环境变量名称
            value: 环境变量值

        返回:
            设置成功返回 True

        抛出:
            RegistryAccessError: 注册表无法写入
        """
        try:
            key = self._open_key(writable=True)
            reg_type = winreg.REG_EXPAND_SZ if "%" in value else winreg.REG_SZ
            winreg.SetValueEx(key, name, 0, reg_type, value)
            logger.info(f"设置用户环境变量 {name}")
        except RegistryAccessError:
            raise
        except OSError as e:
            raise RegistryAccessError(f"设置环境变量 {name} 失败: {e}") from e
        finally:
            self._close_key()
        self.broadcast_change()
        return True

    def get_path_entries(self) -> List[str]:
        """
        获取用户 PATH 环境变量的所有条目。

        返回:
            PATH 条目列表
        """
        path_value = self.get_env_var("Path")
        if not path_value:
            return []
        return [e.strip() for e in path_value.split(";") if e.strip()]

    def path_contains(self, entry: str) -> bool:
        """
        检查用户 PATH 是否包含指定条目（忽略大小写和末尾反斜杠）。

        参数:
            entry: 要检查的路径条目

        返回:
            包含返回 True，否则返回 False
        """
        if not entry or not entry.strip():
            return False
        wanted = _normalize_entry(entry)
        return any(_normalize_entry(e) == wanted for e in self.get_path_entries())

    def add_to_path(self, entry: str) -> bool:
        """
        向用户 PATH 环境变量追加新条目。

        参数:
            entry: 要添加的路径条目

        返回:
            已存在或添加成功返回 True，条目为空返回 False
        """
        if not entry or not entry.strip():
            logger.warning("PATH 条目不能为空")
            return False

        entries = self.get_path_entries()
        wanted = _normalize_entry(entry)
        if any(_normalize_entry(e) == wanted for e in entries):
            logger.debug(f"PATH 已包含 {entry}")
            return True

        entries.append(entry.strip().rstrip("\\"))
        self.set_env_var("Path", ";".join(entries))
        logger.info(f"已添加 {entry} 到用户 PATH")
        return True

    def remove_from_path(self, entry: str) -> bool:
        """
        从用户 PATH 环境变量移除条目。

        参数:
            entry: 要移除的路径条目

        返回:
            移除成功或原本不存在返回 True
        """
        if not entry or not entry.strip():
            return True

        entries = self.get_path_entries()
        wanted = _normalize_entry(entry)
        remaining = [e for e in entries if _normalize_entry(e) != wanted]
        if len(remaining) == len(entries):
            logger.debug(f"PATH 不包含 {entry}")
            return True

        self.set_env_var("Path", ";".join(remaining))
        logger.info(f"已从用户 PATH 移除 {entry}")
        return True

    def broadcast_change(self) -> None:
        """
        广播环境变量更改消息。

        通知资源管理器等程序重新读取环境变量。
        """
        try:
            result = ctypes.c_long()
            ctypes.windll.user32.SendMessageTimeoutW(
                HWND_BROADCAST,
                WM_SETTINGCHANGE,
                0,
                "Environment",
                SMTO_ABORTIFHUNG,
                5000,
                ctypes.byref(result)
            )
            logger.debug("已广播 WM_SETTINGCHANGE 消息")
        except (AttributeError, OSError) as e:
            logger.warning(f"广播环境变量更改消息失败: {e}")
