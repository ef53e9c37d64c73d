"""
命令行工具模块

提供文本聚类和工作量估算命令。
"""

from textsim.cli.main import cli

__all__ = ["cli"]
