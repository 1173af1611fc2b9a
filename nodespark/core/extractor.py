"""
解压模块。

将 Node.js 发布包（.tar.gz 或 .zip）解压到版本目录，去掉压缩包唯一的顶层目录，
并防止路径遍历。
"""

import gzip
import os
import shutil
import sys
import tarfile
import zipfile
import zlib
from typing import Optional

from nodespark.core.models import ExtractionReport
from nodespark.utils.input_validator import InputValidationError, InputValidator
from nodespark.utils.logger import get_logger

logger = get_logger()

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644
WINDOWS_PRIMARY_EXECUTABLE = "node.exe"


class ExtractionError(Exception):
    """解压错误异常。"""
    pass


class UnsupportedFormatError(ExtractionError):
    """不支持的压缩包格式。"""
    pass


def detect_format(archive_path: str) -> str:
    """
    根据文件名后缀判断压缩包格式。

    返回:
        "tar.gz" 或 "zip"

    抛出:
        UnsupportedFormatError: 无法识别的后缀
    """
    name = os.path.basename(archive_path).lower()
    if name.endswith(".tar.gz"):
        return "tar.gz"
    if name.endswith(".zip"):
        return "zip"
    ext = os.path.splitext(name)[1] or name
    raise UnsupportedFormatError(f"不支持的压缩包格式: {ext}")


def _replace_with_symlink(link_target: str, path: str) -> None:
    if os.path.lexists(path):
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
    os.symlink(link_target, path)


class ArchiveExtractor:
    """
    压缩包解压器类。

    解压不是事务性的：中途失败会留下部分填充的目标目录，由调用方决定是否清理。
    """

    def __init__(
        self,
        symlinks_supported: Optional[bool] = None,
        primary_executable: Optional[str] = None,
    ):
        """
        初始化解压器。

        参数:
            symlinks_supported: 是否创建压缩包中的符号链接，默认在非 Windows 平台上创建
            primary_executable: 需要确保位于目标根目录的主可执行文件名，
                默认 Windows 上为 node.exe，其他平台不检查
        """
        is_windows = sys.platform == "win32"
        if symlinks_supported is None:
            symlinks_supported = not is_windows
        if primary_executable is None and is_windows:
            primary_executable = WINDOWS_PRIMARY_EXECUTABLE
        self.symlinks_supported = symlinks_supported
        self.primary_executable = primary_executable

    def extract(self, archive_path: str, dest_dir: str) -> ExtractionReport:
        """
        解压压缩包到目标目录。

        参数:
            archive_path: 压缩包路径
            dest_dir: 目标目录

        返回:
            ExtractionReport，包含写入/跳过的条目数和警告

        抛出:
            UnsupportedFormatError: 无法识别的压缩包格式
            ExtractionError: 压缩包损坏或为空
        """
        fmt = detect_format(archive_path)
        dest_dir = os.path.abspath(dest_dir)
        report = ExtractionReport(archive_path=archive_path, dest_dir=dest_dir)

        logger.info(f"正在解压 {archive_path} 到 {dest_dir}")
        try:
            os.makedirs(dest_dir, exist_ok=True)
            if fmt == "tar.gz":
                self._extract_tar_gz(archive_path, dest_dir, report)
            else:
                self._extract_zip(archive_path, dest_dir, report)
                if self.primary_executable:
                    self._ensure_primary_executable(dest_dir, report)
        except OSError as e:
            logger.error(f"写入 {dest_dir} 失败: {e}")
            raise ExtractionError(f"写入 {dest_dir} 失败: {e}") from e

        logger.info(
            f"解压完成: 写入 {report.entries_written} 个条目，跳过 {report.entries_skipped} 个"
        )
        return report

    def _target_path(self, dest_dir: str, relative: str, entry_name: str, report: ExtractionReport) -> Optional[str]:
        """
        计算条目的目标路径，超出目标目录的条目记录警告后返回 None。
        """
        try:
            target = InputValidator.safe_join_path(dest_dir, relative)
        except InputValidationError:
            target = None
        if target is None or target == dest_dir:
            report.warn(f"跳过可能不安全的路径: {entry_name}")
            report.entries_skipped += 1
            return None
        # 父目录可能是先前解压出的符号链接
        parent = os.path.realpath(os.path.dirname(target))
        if not InputValidator.is_within(os.path.realpath(dest_dir), parent):
            report.warn(f"跳过经由符号链接指向目标目录外的路径: {entry_name}")
            report.entries_skipped += 1
            return None
        return target

    def _link_escapes(self, dest_dir: str, path: str, link_target: str) -> bool:
        if os.path.isabs(link_target) or link_target.startswith(("/", "\\")):
            return True
        resolved = os.path.realpath(os.path.join(os.path.dirname(path), link_target))
        return not InputValidator.is_within(os.path.realpath(dest_dir), resolved)

    def _extract_tar_gz(self, archive_path: str, dest_dir: str, report: ExtractionReport) -> None:
        """
        流式解压 .tar.gz 文件。

        每个条目去掉第一段路径；只有一段的条目（顶层目录本身）被跳过。
        """
        try:
            with tarfile.open(archive_path, mode="r|gz") as tar:
                for member in tar:
                    parts = member.name.split("/", 1)
                    if len(parts) < 2 or not parts[1].strip("/"):
                        continue
                    target = self._target_path(dest_dir, parts[1], member.name, report)
                    if target is None:
                        continue

                    if member.isdir():
                        os.makedirs(target, mode=member.mode or DEFAULT_DIR_MODE, exist_ok=True)
                        report.entries_written += 1
                    elif member.isreg():
                        os.makedirs(os.path.dirname(target), mode=DEFAULT_DIR_MODE, exist_ok=True)
                        source = tar.extractfile(member)
                        if os.path.islink(target):
                            os.remove(target)
                        with open(target, "wb") as out:
                            shutil.copyfileobj(source, out)
                        os.chmod(target, member.mode or DEFAULT_FILE_MODE)
                        report.entries_written += 1
                    elif member.issym():
                        self._extract_symlink(dest_dir, member.linkname, target, member.name, report)
                    else:
                        report.warn(f"不支持的 tar 条目类型 {member.type!r}: {member.name}")
                        report.entries_skipped += 1
        except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as e:
            raise ExtractionError(f"解压 {archive_path} 失败: {e}") from e

    def _extract_symlink(
        self, dest_dir: str, link_target: str, path: str, entry_name: str, report: ExtractionReport
    ) -> None:
        if not self.symlinks_supported:
            report.warn(f"当前平台跳过符号链接: {entry_name} -> {link_target}")
            report.entries_skipped += 1
            return
        if self._link_escapes(dest_dir, path, link_target):
            report.warn(f"跳过指向目标目录外的符号链接: {entry_name} -> {link_target}")
            report.entries_skipped += 1
            return
        os.makedirs(os.path.dirname(path), mode=DEFAULT_DIR_MODE, exist_ok=True)
        try:
            _replace_with_symlink(link_target, path)
        except OSError as e:
            report.warn(f"创建符号链接失败 {path} -> {link_target}: {e}")
            report.entries_skipped += 1
            return
        report.entries_written += 1

    def _extract_zip(self, archive_path: str, dest_dir: str, report: ExtractionReport) -> None:
        """
        解压 .zip 文件。

        第一遍确定顶层目录名，第二遍去掉该前缀后逐个写出条目。
        """
        try:
            zf = zipfile.ZipFile(archive_path, "r")
        except (zipfile.BadZipFile, OSError) as e:
            raise ExtractionError(f"无法打开 zip 文件 {archive_path}: {e}") from e

        with zf:
            infos = zf.infolist()
            top_level = infos[0].filename.replace("\\", "/").split("/")[0] if infos else ""
            if not top_level:
                raise ExtractionError(f"压缩包中没有任何文件: {archive_path}")
            logger.debug(f"检测到顶层目录: {top_level}")

            prefix = top_level + "/"
            for info in infos:
                normalized = info.filename.replace("\\", "/")
                if normalized in (top_level, prefix):
                    continue
                if normalized.startswith(prefix):
                    relative = normalized[len(prefix):]
                else:
                    relative = normalized
                if not relative.strip("/"):
                    continue

                target = self._target_path(dest_dir, relative, info.filename, report)
                if target is None:
                    continue

                mode = (info.external_attr >> 16) & 0o777
                if info.is_dir() or normalized.endswith("/"):
                    os.makedirs(target, mode=mode or DEFAULT_DIR_MODE, exist_ok=True)
                    report.entries_written += 1
                    continue

                os.makedirs(os.path.dirname(target), mode=DEFAULT_DIR_MODE, exist_ok=True)
                if os.path.islink(target):
                    os.remove(target)
                try:
                    with zf.open(info) as source, open(target, "wb") as out:
                        shutil.copyfileobj(source, out)
                except (zipfile.BadZipFile, RuntimeError, NotImplementedError) as e:
                    report.warn(f"无法读取压缩包条目 {info.filename}: {e}")
                    report.entries_skipped += 1
                    if os.path.exists(target):
                        os.remove(target)
                    continue
                os.chmod(target, mode or DEFAULT_FILE_MODE)
                report.entries_written += 1

    def _ensure_primary_executable(self, dest_dir: str, report: ExtractionReport) -> None:
        """
        确保主可执行文件位于目标根目录。

        根目录中缺失时递归查找并复制到根目录；修复失败只记录警告。
        """
        name = self.primary_executable
        root_path = os.path.join(dest_dir, name)
        if os.path.exists(root_path):
            return

        found = None
        for current, _dirs, files in os.walk(dest_dir):
            if name in files:
                found = os.path.join(current, name)
                break

        if found is None:
            report.warn(f"解压后的文件中未找到 {name}")
            return

        logger.info(f"在 {found} 找到 {name}，复制到根目录")
        try:
            shutil.copy2(found, root_path)
            os.chmod(root_path, 0o755)
        except OSError as e:
            report.warn(f"复制 {name} 到根目录失败: {e}")
