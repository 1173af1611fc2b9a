"""
NodeSpark - Node.js 版本管理器。
"""

__version__ = "0.10.0"
