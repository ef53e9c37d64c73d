"""
配置管理模块

从环境变量和 .env 文件中读取路径类配置。
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# 项目根目录下的 .env 文件（如果存在）
project_root = Path(__file__).parent.parent.parent
dotenv_path = project_root / ".env"
load_dotenv(dotenv_path=dotenv_path)


def get_settings_path() -> Path:
    """
    获取聚类服务配置文件路径

    优先级:
    1. 环境变量 TEXTSIM_CONFIG (从 .env 文件或系统环境变量)
    2. 默认值: 项目根目录下的 config/textsim.yaml

    Returns:
        配置文件路径
    """
    configured = os.getenv("TEXTSIM_CONFIG")

    if configured:
        path = Path(configured)
        if not path.is_absolute():
            return project_root / path
        return path
    return project_root / "config" / "textsim.yaml"


def get_log_level() -> str:
    """
    获取默认日志级别

    Returns:
        环境变量 TEXTSIM_LOG_LEVEL 的值，未设置时为 INFO
    """
    return os.getenv("TEXTSIM_LOG_LEVEL", "INFO").upper()
