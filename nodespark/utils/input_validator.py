"""
输入验证模块。

提供用户输入的验证和 sanitization 功能。
"""

import os
import re

from nodespark.utils.logger import get_logger

logger = get_logger()


class InputValidationError(Exception):
    """输入验证错误异常。"""
    pass


class InputValidator:
    """
    输入验证器类。

    提供版本号和路径的验证与 sanitization 功能。
    """

    VERSION_TOKEN_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+$')
    MAX_VERSION_LENGTH = 100

    @classmethod
    def validate_version_token(cls, token: str) -> bool:
        """
        验证版本标识的有效性。

        接受精确版本号（可带 v 前缀）以及 latest、lts 关键字。

        参数:
            token: 版本标识

        返回:
            验证通过返回 True，否则抛出 InputValidationError
        """
        if not token or not token.strip():
            raise InputValidationError("版本号不能为空")

        token = token.strip()

        if len(token) > cls.MAX_VERSION_LENGTH:
            raise InputValidationError(f"版本号不能超过 {cls.MAX_VERSION_LENGTH} 个字符")

        if not cls.VERSION_TOKEN_PATTERN.match(token):
            raise InputValidationError(f"版本号格式无效: {token}")

        if token in (".", "..") or token.startswith("."):
            raise InputValidationError(f"版本号格式无效: {token}")

        return True

    @classmethod
    def sanitize_version_token(cls, token: str) -> str:
        """
        sanitize 版本标识。

        参数:
            token: 原始版本标识

        返回:
            去除首尾空白后的版本标识
        """
        if not token:
            return ""
        return token.strip()

    @classmethod
    def is_within(cls, base_path: str, target_path: str) -> bool:
        """
        判断目标路径在词法上是否位于基础路径之内。

        参数:
            base_path: 基础路径
            target_path: 目标路径

        返回:
            位于基础路径内（或等于基础路径）返回 True
        """
        base = os.path.normpath(os.path.abspath(base_path))
        target = os.path.normpath(os.path.abspath(target_path))
        if target == base:
            return True
        prefix = base if base.endswith(os.sep) else base + os.sep
        return target.startswith(prefix)

    @classmethod
    def safe_join_path(cls, base_path: str, *paths: str) -> str:
        """
        安全连接路径，防止路径遍历。

        参数:
            base_path: 基础路径
            *paths: 要连接的路径部分

        返回:
            安全连接后的路径

        抛出:
            InputValidationError: 如果结果路径位于 base_path 外部
        """
        base = os.path.normpath(os.path.abspath(base_path))
        joined = os.path.normpath(os.path.join(base, *paths))
        if not cls.is_within(base, joined):
            raise InputValidationError(f"路径遍历检测: {joined}")
        return joined
