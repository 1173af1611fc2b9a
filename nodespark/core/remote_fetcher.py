"""
远程版本获取模块。

从 Node.js 发布索引获取可用版本，并将用户输入的版本标识解析为具体发布条目。
"""

import json
import os
import tempfile
from typing import Any, Dict, List, Optional

import requests

from nodespark import __version__
from nodespark.core.interfaces import IReleaseIndex
from nodespark.core.models import LtsDesignation, ReleaseDescriptor
from nodespark.core.version_utils import clean_version, sort_releases_desc
from nodespark.utils.logger import get_logger

logger = get_logger()

DEFAULT_DIST_URL = "https://nodejs.org/dist/"
DEFAULT_TIMEOUT = 30
USER_AGENT = f"node-spark/{__version__}"
DEBUG_DUMP_NAME = "node_versions_response.json"


class RemoteFetcherError(Exception):
    """远程获取错误异常。"""
    pass


class FetchError(RemoteFetcherError):
    """索引无法访问或返回非 200 状态。"""
    pass


class ParseError(RemoteFetcherError):
    """索引内容无法解析。"""
    pass


class NotFoundError(RemoteFetcherError):
    """版本标识在索引中无匹配。"""
    pass


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    return None


def _decode_strict(item: Any) -> ReleaseDescriptor:
    """
    按严格类型解码一个索引条目。

    抛出:
        TypeError: 任一字段类型与预期不符
    """
    if not isinstance(item, dict):
        raise TypeError(f"索引条目不是对象: {type(item).__name__}")
    version = item.get("version")
    if not isinstance(version, str) or not version:
        raise TypeError("version 字段必须是非空字符串")
    date = item.get("date", "")
    if not isinstance(date, str):
        raise TypeError("date 字段必须是字符串")
    files = item.get("files", [])
    if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
        raise TypeError("files 字段必须是字符串数组")
    lts = item.get("lts")
    if "lts" in item and not isinstance(lts, (bool, str)):
        raise TypeError("lts 字段必须是布尔值或字符串")
    for key in ("npm", "v8"):
        if key in item and not isinstance(item[key], str):
            raise TypeError(f"{key} 字段必须是字符串")
    return ReleaseDescriptor(
        version=version,
        date=date,
        files=tuple(files),
        lts=LtsDesignation.from_raw(lts, present="lts" in item),
        npm=item.get("npm"),
        v8=item.get("v8"),
        modules=_optional_str(item.get("modules")),
    )


def _decode_lenient(item: Any) -> Optional[ReleaseDescriptor]:
    """
    宽松地逐字段解码一个索引条目，忽略类型不符的字段。

    返回:
        ReleaseDescriptor，缺少可用 version 时返回 None
    """
    if not isinstance(item, dict):
        return None
    version = item.get("version")
    if not isinstance(version, str) or not version:
        return None
    date = item.get("date")
    files = item.get("files")
    return ReleaseDescriptor(
        version=version,
        date=date if isinstance(date, str) else "",
        files=tuple(f for f in files if isinstance(f, str)) if isinstance(files, list) else (),
        lts=LtsDesignation.from_raw(item.get("lts"), present="lts" in item),
        npm=_optional_str(item.get("npm")),
        v8=_optional_str(item.get("v8")),
        modules=_optional_str(item.get("modules")),
    )


def _dump_response(body: bytes) -> Optional[str]:
    """将无法解析的响应保存到临时目录，便于排查。"""
    path = os.path.join(tempfile.gettempdir(), DEBUG_DUMP_NAME)
    try:
        with open(path, "wb") as f:
            f.write(body)
    except OSError as e:
        logger.debug(f"保存索引响应失败: {e}")
        return None
    logger.info(f"已将无法解析的索引响应保存到 {path}")
    return path


def parse_index(body: bytes) -> List[ReleaseDescriptor]:
    """
    解析发布索引响应体。

    先按严格类型解码，失败后回退到宽松的逐字段解码。

    参数:
        body: 响应体字节

    返回:
        发布条目列表（未排序）

    抛出:
        ParseError: 响应为空、不是 JSON 数组或无任何可用条目
    """
    if not body or not body.strip():
        raise ParseError("索引响应为空")

    try:
        data = json.loads(body)
    except ValueError as e:
        _dump_response(body)
        raise ParseError(f"索引不是有效的 JSON: {e}") from e

    if not isinstance(data, list):
        _dump_response(body)
        raise ParseError(f"索引顶层必须是数组，实际为 {type(data).__name__}")

    try:
        releases = [_decode_strict(item) for item in data]
        logger.debug(f"成功解析 {len(releases)} 个 Node.js 版本")
        return releases
    except TypeError as e:
        logger.warning(f"索引严格解析失败，尝试宽松解析: {e}")

    releases = [r for r in (_decode_lenient(item) for item in data) if r is not None]
    if data and not releases:
        _dump_response(body)
        raise ParseError("宽松解析后仍无可用版本条目")
    logger.info(f"宽松解析成功，共 {len(releases)} 个版本")
    return releases


class RemoteFetcher(IReleaseIndex):
    """
    远程版本获取器类。

    负责从发布索引获取可用版本列表并解析版本标识。
    实现 IReleaseIndex 抽象接口。
    """

    def __init__(self, dist_url: str = DEFAULT_DIST_URL, timeout: float = DEFAULT_TIMEOUT):
        """
        初始化远程版本获取器。

        参数:
            dist_url: 发布根地址
            timeout: 请求超时时间（秒）
        """
        self.dist_url = dist_url
        self.timeout = timeout
        self._memory_cache: Optional[List[ReleaseDescriptor]] = None

    @property
    def index_url(self) -> str:
        return self.dist_url.rstrip("/") + "/index.json"

    def _request_index(self) -> bytes:
        """
        请求索引文件。

        返回:
            响应体字节

        抛出:
            FetchError: 网络错误或非 200 状态
        """
        logger.info(f"正在从 {self.index_url} 获取 Node.js 版本列表")
        try:
            response = requests.get(
                self.index_url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"获取版本索引失败: {e}")
            raise FetchError(f"无法获取版本索引: {e}") from e

        if response.status_code != 200:
            logger.error(f"获取版本索引返回异常状态: {response.status_code}")
            raise FetchError(f"获取版本索引失败: 状态码 {response.status_code}")

        return response.content

    def fetch_releases(self, use_cache: bool = True) -> List[ReleaseDescriptor]:
        """
        获取按版本降序排列的全部发布条目。

        参数:
            use_cache: 是否使用内存缓存

        返回:
            发布条目列表，最新版本在前
        """
        if use_cache and self._memory_cache is not None:
            logger.debug("使用内存缓存的 Node.js 版本信息")
            return self._memory_cache

        releases = sort_releases_desc(parse_index(self._request_index()))
        self._memory_cache = releases
        return releases

    def resolve(self, token: str) -> ReleaseDescriptor:
        """
        将版本标识解析为具体发布条目。

        参数:
            token: 精确版本号（可带 v 前缀）、"latest" 或 "lts"

        返回:
            匹配的 ReleaseDescriptor

        抛出:
            NotFoundError: 无匹配版本
        """
        token = token.strip()
        releases = self.fetch_releases()
        keyword = token.lower()

        if keyword == "latest":
            if not releases:
                raise NotFoundError("版本索引为空")
            return releases[0]

        if keyword == "lts":
            for release in releases:
                if release.is_lts:
                    return release
            raise NotFoundError("版本索引中没有 LTS 版本")

        wanted = clean_version(token)
        for release in releases:
            if release.clean_version == wanted:
                return release

        raise NotFoundError(f"Node.js 索引中未找到版本 {token}")

    def list_versions(self, lts_only: bool = False) -> List[ReleaseDescriptor]:
        """
        列出可用版本。

        参数:
            lts_only: 是否只返回 LTS 版本

        返回:
            发布条目列表，最新版本在前
        """
        releases = self.fetch_releases()
        if lts_only:
            return [r for r in releases if r.is_lts]
        return list(releases)
