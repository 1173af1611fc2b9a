"""
NodeSpark 命令行接口模块。
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Tuple

from nodespark import __version__
from nodespark.core.activator import ActivationError
from nodespark.core.config_manager import (
    ConfigLoadError,
    ConfigManager,
    ConfigSaveError,
    ConfigValidationError,
)
from nodespark.core.download_manager import DownloadManagerError
from nodespark.core.env_manager import EnvManager, EnvManagerError
from nodespark.core.extractor import ExtractionError
from nodespark.core.models import ActivationResult, Diagnostics
from nodespark.core.platform_info import UnsupportedPlatformError
from nodespark.core.remote_fetcher import RemoteFetcherError
from nodespark.core.version_manager import PHASE_DOWNLOAD, PHASE_EXTRACT, PHASE_VERIFY, VersionManager
from nodespark.core.version_store import NoActiveVersionError, VersionStoreError
from nodespark.utils.input_validator import InputValidationError
from nodespark.utils.logger import get_logger, setup_logger
from nodespark.utils.progress import Spinner, print_progress

logger = get_logger()

REMOTE_LIST_LIMIT = 30

KNOWN_ERRORS = (
    InputValidationError,
    RemoteFetcherError,
    DownloadManagerError,
    ExtractionError,
    VersionStoreError,
    ActivationError,
    EnvManagerError,
    UnsupportedPlatformError,
    ConfigLoadError,
    ConfigValidationError,
    ConfigSaveError,
    OSError,
)


def create_parser() -> argparse.ArgumentParser:
    """
    创建并配置命令行参数解析器。

    返回:
        配置好的 ArgumentParser 实例
    """
    parser = argparse.ArgumentParser(
        prog="node-spark",
        description="NodeSpark - Node.js 版本管理器",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  node-spark install lts        安装最新的 LTS 版本
  node-spark install 20.11.1    安装 Node.js 20.11.1
  node-spark use 20.11.1        切换到 Node.js 20.11.1
  node-spark ls                 列出已安装的版本
  node-spark ls-remote --lts    列出远程 LTS 版本
  node-spark rm 18.19.0         删除 Node.js 18.19.0
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="启用详细输出",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="配置文件路径",
    )

    parser.add_argument(
        "--wipe",
        action="store_true",
        help=argparse.SUPPRESS,
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="命令",
        description="可用的 CLI 命令",
    )

    install_parser = subparsers.add_parser(
        "install",
        help="下载并安装指定版本",
    )
    install_parser.add_argument(
        "version",
        help="要安装的版本（精确版本号、latest 或 lts）",
    )
    install_parser.add_argument(
        "--use",
        "-u",
        action="store_true",
        help="安装完成后立即切换到该版本",
    )

    use_parser = subparsers.add_parser(
        "use",
        help="切换到指定版本",
    )
    use_parser.add_argument(
        "version",
        help="要切换到的版本",
    )

    subparsers.add_parser(
        "list",
        aliases=["ls"],
        help="列出已安装的版本",
    )

    remote_parser = subparsers.add_parser(
        "list-remote",
        aliases=["ls-remote"],
        help="列出远程可用的版本",
    )
    remote_parser.add_argument(
        "--lts",
        action="store_true",
        help="只显示 LTS 版本",
    )
    remote_parser.add_argument(
        "--all",
        "-a",
        action="store_true",
        help=f"显示全部版本（默认只显示最新的 {REMOTE_LIST_LIMIT} 个）",
    )

    subparsers.add_parser(
        "current",
        help="显示当前活动版本",
    )

    uninstall_parser = subparsers.add_parser(
        "uninstall",
        aliases=["remove", "rm"],
        help="删除指定版本",
    )
    uninstall_parser.add_argument(
        "version",
        help="要删除的版本",
    )

    return parser


COMMAND_ALIASES = {
    "ls": "list",
    "ls-remote": "list-remote",
    "remove": "uninstall",
    "rm": "uninstall",
}


def run_cli(args: argparse.Namespace) -> int:
    """
    运行命令行接口。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码（0 表示成功）
    """
    if args.verbose:
        setup_logger(level=logging.DEBUG, console_level=logging.DEBUG)

    if args.wipe:
        return _run_handler(handle_wipe, args)

    if args.command is None:
        print("未指定命令。使用 --help 查看帮助信息。")
        return 1

    command_handlers = {
        "install": handle_install,
        "use": handle_use,
        "list": handle_list,
        "list-remote": handle_list_remote,
        "current": handle_current,
        "uninstall": handle_uninstall,
    }

    command = COMMAND_ALIASES.get(args.command, args.command)
    handler = command_handlers.get(command)
    if handler:
        return _run_handler(handler, args)
    else:
        print(f"未知命令: {args.command}")
        return 1


def _run_handler(handler, args: argparse.Namespace) -> int:
    try:
        return handler(args)
    except KNOWN_ERRORS as e:
        logger.debug(f"命令失败: {type(e).__name__}: {e}")
        print(f"错误: {e}", file=sys.stderr)
        return 1


def _get_config_manager(args: argparse.Namespace) -> ConfigManager:
    config_file = Path(args.config) if args.config else None
    return ConfigManager(config_file=config_file)


def _get_managers(args: argparse.Namespace) -> Tuple[ConfigManager, VersionManager]:
    """
    获取管理器实例。

    状态在每次调用中只加载一次，并传给版本管理器。

    返回:
        包含 ConfigManager、VersionManager 的元组
    """
    config_manager = _get_config_manager(args)
    state = config_manager.load_state()
    version_manager = VersionManager(config_manager, state)
    return config_manager, version_manager


def _print_warnings(result: Diagnostics) -> None:
    for warning in result.warnings:
        print(f"警告: {warning}")


def _print_activation(result: ActivationResult) -> None:
    _print_warnings(result)
    print(f"已切换到 Node.js {result.version}")
    for hint in result.hints:
        print(f"  {hint}")


def handle_install(args: argparse.Namespace) -> int:
    """
    处理 install 命令：下载并安装指定版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, version_manager = _get_managers(args)
    print(f"正在安装 Node.js {args.version}...")

    spinner = Spinner("正在解压...")

    def on_status(phase: str) -> None:
        if phase == PHASE_DOWNLOAD:
            print("正在下载...")
        elif phase == PHASE_EXTRACT:
            print()
            spinner.start()
        elif phase == PHASE_VERIFY:
            spinner.stop()
            print("正在验证安装...")

    try:
        result = version_manager.install(args.version, print_progress, on_status)
    finally:
        spinner.stop()

    _print_warnings(result)
    if result.already_installed:
        print(f"Node.js {result.version} 已安装")
    else:
        print(f"成功安装 Node.js {result.version}")

    config_manager.save_state(version_manager.state)

    if args.use:
        _print_activation(version_manager.use(result.version))
        config_manager.save_state(version_manager.state)
    elif version_manager.state.active_version != result.version:
        print(f"使用 'node-spark use {result.version}' 切换到此版本")
    return 0


def handle_use(args: argparse.Namespace) -> int:
    """
    处理 use 命令：切换到指定版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, version_manager = _get_managers(args)
    _print_activation(version_manager.use(args.version))
    config_manager.save_state(version_manager.state)
    return 0


def handle_list(args: argparse.Namespace) -> int:
    """
    处理 list 命令：列出已安装的版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, version_manager = _get_managers(args)
    versions = version_manager.list_installed()
    current = version_manager.state.active_version

    if not versions:
        print("未安装任何 Node.js 版本")
        print(f"安装目录: {version_manager.store.install_root}")
        return 0

    print("已安装版本:")
    for version in versions:
        marker = " *" if version == current else "  "
        print(f"{marker} {version}")
        if args.verbose:
            print(f"     路径: {version_manager.store.version_dir(version)}")
    print(f"\n当前版本: {current or '未设置'}")
    return 0


def handle_list_remote(args: argparse.Namespace) -> int:
    """
    处理 list-remote 命令：列出远程可用的版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, version_manager = _get_managers(args)
    print("正在获取远程版本...")
    releases = version_manager.list_remote(lts_only=args.lts)
    if not releases:
        print("未找到可用版本")
        return 0

    installed = set(version_manager.list_installed())
    shown = releases if args.all else releases[:REMOTE_LIST_LIMIT]
    print("可用版本:")
    for release in shown:
        line = f"  {release.get_version_string()}"
        if release.clean_version in installed:
            line += "  [已安装]"
        if args.verbose and release.date:
            line += f"  {release.date}"
        print(line)
    if len(releases) > len(shown):
        print(f"  ... 还有 {len(releases) - len(shown)} 个版本（使用 --all 显示全部）")
    return 0


def handle_current(args: argparse.Namespace) -> int:
    """
    处理 current 命令：显示当前活动版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, version_manager = _get_managers(args)
    try:
        print(version_manager.get_current())
    except NoActiveVersionError as e:
        print(str(e))
        return 1
    return 0


def handle_uninstall(args: argparse.Namespace) -> int:
    """
    处理 uninstall 命令：删除指定版本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, version_manager = _get_managers(args)
    print(f"正在删除 Node.js {args.version}...")
    version_manager.uninstall(args.version)
    config_manager.save_state(version_manager.state)
    print(f"成功删除 Node.js {args.version}")
    return 0


def handle_wipe(args: argparse.Namespace) -> int:
    """
    处理 --wipe 选项：删除全部 node-spark 数据。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager = _get_config_manager(args)
    try:
        config_manager.load_state()
    except (ConfigLoadError, ConfigValidationError) as e:
        logger.warning(f"配置无法读取，按默认路径清除: {e}")
    if sys.platform == "win32":
        try:
            EnvManager().remove_from_path(str(config_manager.get_shim_dir()))
        except EnvManagerError as e:
            print(f"警告: 无法从用户 PATH 移除 shim 目录: {e}")
    config_manager.wipe_all_data()
    print("已清除全部 node-spark 数据")
    return 0
