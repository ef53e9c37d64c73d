"""通用工具模块

此包包含项目中使用的通用工具函数:
- logging: 结构化日志配置
- security: 密钥脱敏和文本哈希
"""

from textsim.utils.logging import configure_logging, get_logger
from textsim.utils.security import hash_text, mask_secret, sanitize_dict

__all__ = [
    "configure_logging",
    "get_logger",
    "mask_secret",
    "hash_text",
    "sanitize_dict",
]
