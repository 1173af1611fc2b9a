"""
NodeSpark 工具模块。

提供日志记录、输入验证和进度显示等工具功能。
"""

from .logger import get_logger, setup_logger, get_app_dir
from .input_validator import InputValidator, InputValidationError
from .progress import Spinner, render_progress_bar, print_progress

__all__ = [
    "get_logger",
    "setup_logger",
    "get_app_dir",
    "InputValidator",
    "InputValidationError",
    "Spinner",
    "render_progress_bar",
    "print_progress",
]
