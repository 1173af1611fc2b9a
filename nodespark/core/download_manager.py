"""
下载管理模块。

将发布包以流式方式下载到本地文件并报告进度。
"""

from typing import Optional

import requests

from nodespark import __version__
from nodespark.core.interfaces import ProgressCallback
from nodespark.utils.logger import get_logger

logger = get_logger()

CHUNK_SIZE = 8192
DEFAULT_TIMEOUT = 300
USER_AGENT = f"node-spark/{__version__}"


class DownloadManagerError(Exception):
    """下载管理错误异常。"""
    pass


class TransferError(DownloadManagerError):
    """发布包下载失败（非 200 状态或传输错误）。"""
    pass


class DownloadManager:
    """
    下载管理器类。

    负责把发布包流式写入目标路径。不支持断点续传，失败后需从头重新下载；
    临时文件的位置和清理由调用方负责。
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, chunk_size: int = CHUNK_SIZE):
        """
        初始化下载管理器。

        参数:
            timeout: 请求超时时间（秒）
            chunk_size: 每次读取的块大小（字节）
        """
        self.timeout = timeout
        self.chunk_size = chunk_size

    def download(
        self,
        url: str,
        dest_path: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> int:
        """
        下载文件到指定路径。

        每读取一个数据块调用一次 progress_callback(bytes_read, total)，
        服务器未提供 Content-Length 时 total 为 -1。

        参数:
            url: 下载 URL
            dest_path: 目标文件路径
            progress_callback: 进度回调函数

        返回:
            写入的总字节数

        抛出:
            TransferError: 非 200 状态或网络传输错误
        """
        logger.info(f"正在从 {url} 下载到 {dest_path}")
        try:
            response = requests.get(
                url,
                headers={"User-Agent": USER_AGENT},
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"下载请求失败: {e}")
            raise TransferError(f"下载 {url} 失败: {e}") from e

        try:
            if response.status_code != 200:
                logger.error(f"下载返回异常状态: {response.status_code}")
                raise TransferError(f"下载 {url} 失败: 状态码 {response.status_code}")

            try:
                total = int(response.headers.get("content-length", -1))
            except (TypeError, ValueError):
                total = -1
            if total <= 0:
                total = -1

            bytes_read = 0
            try:
                with open(dest_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        f.write(chunk)
                        bytes_read += len(chunk)
                        if progress_callback:
                            progress_callback(bytes_read, total)
            except requests.RequestException as e:
                logger.error(f"下载传输中断: {e}")
                raise TransferError(f"下载 {url} 中断: {e}") from e
            except OSError as e:
                logger.error(f"无法写入 {dest_path}: {e}")
                raise TransferError(f"无法写入 {dest_path}: {e}") from e
        finally:
            response.close()

        logger.info(f"下载完成，共 {bytes_read} 字节")
        return bytes_read
