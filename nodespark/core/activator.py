"""
激活切换模块。

使某个已安装版本成为后续 shell 会话中的活动版本：
POSIX 平台使用一个符号链接，Windows 平台生成 shim 脚本并修改用户 PATH。
"""

import os
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from nodespark.core.env_manager import EnvManager, EnvManagerError
from nodespark.core.interfaces import IActivator, IConfigManager, IEnvManager
from nodespark.core.models import ActivationResult
from nodespark.core.version_store import NotInstalledError
from nodespark.utils.logger import get_logger

logger = get_logger()


class ActivationError(Exception):
    """激活失败异常。"""
    pass


class ActivationStep(Enum):
    """POSIX 激活过程中的状态。"""

    CHECKING_INSTALL = "checking-install"
    REMOVING_OLD_LINK = "removing-old-link"
    CREATING_NEW_LINK = "creating-new-link"
    DONE = "done"


class SymlinkActivator(IActivator):
    """
    符号链接激活器。

    在固定路径维护一个指向版本目录的符号链接。先删除旧链接再创建新链接，
    两步之间被中断时链接缺失（没有活动版本），不会回退到旧版本。
    """

    def __init__(self, link_path: Path):
        self.link_path = Path(link_path)
        self.step = ActivationStep.DONE

    @property
    def activation_path(self) -> Path:
        return self.link_path

    def _enter(self, step: ActivationStep) -> None:
        self.step = step
        logger.debug(f"激活状态: {step.value}")

    def activate(self, version: str, version_dir: Path) -> ActivationResult:
        """
        将符号链接指向指定版本目录。

        参数:
            version: 版本号
            version_dir: 版本安装目录

        返回:
            ActivationResult

        抛出:
            NotInstalledError: 版本目录不存在
            ActivationError: 链接路径被普通目录占用或创建链接失败
        """
        self._enter(ActivationStep.CHECKING_INSTALL)
        version_dir = Path(version_dir)
        if not version_dir.is_dir():
            raise NotInstalledError(f"版本 {version} 未安装")

        self.link_path.parent.mkdir(parents=True, exist_ok=True)

        self._enter(ActivationStep.REMOVING_OLD_LINK)
        if self.link_path.is_dir() and not self.link_path.is_symlink():
            raise ActivationError(f"激活路径 {self.link_path} 已被普通目录占用")
        try:
            self.link_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ActivationError(f"删除旧链接 {self.link_path} 失败: {e}") from e

        self._enter(ActivationStep.CREATING_NEW_LINK)
        try:
            os.symlink(str(version_dir.resolve()), str(self.link_path), target_is_directory=True)
        except OSError as e:
            raise ActivationError(f"创建符号链接 {self.link_path} 失败: {e}") from e

        self._enter(ActivationStep.DONE)
        logger.info(f"已将 {self.link_path} 指向 {version_dir}")

        bin_dir = self.link_path / "bin"
        result = ActivationResult(version=version, activation_path=self.link_path)
        result.hints.append(f"确保 {bin_dir} 在 PATH 中")
        result.hints.append(f'可在 shell 配置文件中加入: export PATH="{bin_dir}:$PATH"')
        return result


@dataclass(frozen=True)
class ShimSpec:
    """一个对外暴露的可执行文件。"""

    name: str
    candidates: Tuple[str, ...]
    primary: bool = False


DEFAULT_SHIMS: Tuple[ShimSpec, ...] = (
    ShimSpec("node", ("node.exe",), primary=True),
    ShimSpec("npm", ("npm.cmd", "npm.bat", "npm")),
    ShimSpec("npx", ("npx.cmd", "npx.bat", "npx")),
)

SHIM_TEMPLATE = '@echo off\r\n"{target}" %*\r\n'
ERROR_SHIM_TEMPLATE = (
    "@echo off\r\n"
    "echo Node.js executable could not be found. Please reinstall version {version}. 1>&2\r\n"
    "exit /b 1\r\n"
)
ACTIVATION_SCRIPT_NAME = "activate.ps1"
ACTIVATION_SCRIPT_TEMPLATE = """# node-spark activation script
# Dot-source this file to use Node.js {version} in the current PowerShell session.

$shimDir = "{shim_dir}"

if (-not ($env:Path -split ';' | Where-Object {{ $_ -eq $shimDir }})) {{
    $env:Path = "$shimDir;$env:Path"
}}

$nodeShim = Join-Path $shimDir "node.cmd"
if (Test-Path $nodeShim) {{
    & $nodeShim --version
}} else {{
    Write-Host "Warning: node shim not found at $nodeShim" -ForegroundColor Yellow
}}
"""


def probe_executable(path: Path) -> bool:
    """运行 `<path> --version` 检查可执行文件能否在当前系统上执行。"""
    try:
        completed = subprocess.run(
            [str(path), "--version"],
            capture_output=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"执行 {path} 失败: {e}")
        return False
    return completed.returncode == 0


def locate_executable(version_dir: Path, candidates: Sequence[str]) -> Optional[Path]:
    """
    在版本目录中查找可执行文件。

    依次尝试版本根目录、bin 子目录，最后递归搜索。

    参数:
        version_dir: 版本安装目录
        candidates: 候选文件名，按优先级排列

    返回:
        找到的绝对路径，未找到返回 None
    """
    version_dir = Path(version_dir)
    for base in (version_dir, version_dir / "bin"):
        for name in candidates:
            path = base / name
            if path.is_file():
                return path.resolve()

    for name in candidates:
        for current, dirs, files in os.walk(version_dir):
            dirs.sort()
            if name in files:
                return (Path(current) / name).resolve()
    return None


class ShimActivator(IActivator):
    """
    Shim 激活器（Windows）。

    每次激活完整重写 shim 目录中的启动脚本，然后把 shim 目录加入
    当前进程和用户级 PATH。
    """

    def __init__(
        self,
        shim_dir: Path,
        env_manager: Optional[IEnvManager],
        shims: Sequence[ShimSpec] = DEFAULT_SHIMS,
        probe: Callable[[Path], bool] = probe_executable,
    ):
        """
        初始化 shim 激活器。

        参数:
            shim_dir: shim 目录
            env_manager: 用户环境变量管理器，为 None 时跳过持久化 PATH 修改
            shims: 对外暴露的可执行文件列表
            probe: 检查主可执行文件能否运行的函数
        """
        self.shim_dir = Path(shim_dir)
        self.env_manager = env_manager
        self.shims = tuple(shims)
        self.probe = probe

    @property
    def activation_path(self) -> Path:
        return self.shim_dir

    def shim_path(self, name: str) -> Path:
        return self.shim_dir / f"{name}.cmd"

    def _write(self, path: Path, content: str) -> None:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def activate(self, version: str, version_dir: Path) -> ActivationResult:
        """
        为指定版本生成 shim 并更新 PATH。

        参数:
            version: 版本号
            version_dir: 版本安装目录

        返回:
            ActivationResult，PATH 更新等尽力而为步骤的失败记录为警告

        抛出:
            NotInstalledError: 版本目录不存在
            ActivationError: shim 目录或 shim 文件无法写入
        """
        version_dir = Path(version_dir)
        if not version_dir.is_dir():
            raise NotInstalledError(f"版本 {version} 未安装")

        result = ActivationResult(version=version, activation_path=self.shim_dir)
        try:
            self.shim_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ActivationError(f"创建 shim 目录 {self.shim_dir} 失败: {e}") from e

        primary_target = None
        for spec in self.shims:
            target = locate_executable(version_dir, spec.candidates)
            shim_path = self.shim_path(spec.name)
            try:
                if target is not None:
                    self._write(shim_path, SHIM_TEMPLATE.format(target=target))
                    logger.debug(f"已创建 shim {shim_path} -> {target}")
                    if spec.primary:
                        primary_target = target
                elif spec.primary:
                    self._write(shim_path, ERROR_SHIM_TEMPLATE.format(version=version))
                    result.warn(
                        f"在 {version_dir} 中未找到 {spec.candidates[0]}，"
                        f"已创建占位 shim，建议重新安装此版本"
                    )
                else:
                    if shim_path.exists():
                        shim_path.unlink()
                    result.warn(f"在 {version_dir} 中未找到 {spec.name}，跳过创建 shim")
            except OSError as e:
                raise ActivationError(f"创建 {spec.name} 的 shim 失败: {e}") from e

        self._update_process_path()
        self._update_user_path(result)
        self._write_activation_script(version, result)

        if primary_target is not None and not self.probe(primary_target):
            result.warn("已安装的 Node.js 可执行文件可能与当前系统架构不兼容，可能需要安装其他架构的版本")

        result.hints.append(f"新的终端窗口中即可使用 Node.js {version}")
        if result.activation_script is not None:
            result.hints.append(f"在当前终端中立即生效，请执行: . {result.activation_script}")
        logger.info(f"已在 {self.shim_dir} 中为 {version} 生成 shim")
        return result

    def _update_process_path(self) -> None:
        shim_dir = str(self.shim_dir)
        entries = os.environ.get("PATH", "").split(os.pathsep)
        if shim_dir not in entries:
            os.environ["PATH"] = os.pathsep.join([shim_dir] + [e for e in entries if e])

    def _update_user_path(self, result: ActivationResult) -> None:
        if self.env_manager is None:
            result.warn(f"无法更新用户 PATH，请手动将 {self.shim_dir} 加入 PATH")
            return
        try:
            self.env_manager.add_to_path(str(self.shim_dir))
        except Exception as e:
            result.warn(f"无法更新用户 PATH: {e}")

    def _write_activation_script(self, version: str, result: ActivationResult) -> None:
        script = self.shim_dir / ACTIVATION_SCRIPT_NAME
        content = ACTIVATION_SCRIPT_TEMPLATE.format(version=version, shim_dir=self.shim_dir)
        try:
            self._write(script, content)
        except OSError as e:
            result.warn(f"无法创建激活脚本: {e}")
            return
        result.activation_script = script


def select_activator(
    config_manager: IConfigManager,
    env_manager: Optional[IEnvManager] = None,
    platform: Optional[str] = None,
) -> IActivator:
    """
    根据平台选择激活器实现。

    参数:
        config_manager: 配置管理器，提供链接路径和 shim 目录
        env_manager: Windows 上使用的用户环境变量管理器，None 时自动创建
        platform: 平台标识，默认取 sys.platform

    返回:
        IActivator 实现
    """
    platform = platform or sys.platform
    if platform == "win32":
        if env_manager is None:
            try:
                env_manager = EnvManager()
            except EnvManagerError as e:
                logger.warning(f"无法初始化用户环境变量管理器: {e}")
        return ShimActivator(config_manager.get_shim_dir(), env_manager)
    return SymlinkActivator(config_manager.get_link_path())
