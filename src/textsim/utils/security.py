"""敏感数据安全处理工具

提供 API 密钥脱敏和文本哈希功能,确保日志不泄露密钥和原始帖子内容。
"""

import hashlib
from typing import Any

from structlog.types import EventDict

# 需要脱敏的敏感字段名称
SENSITIVE_FIELDS = {
    "api_key",
    "openai_api_key",
    "embedding_api_key",
    "llm_api_key",
    "token",
    "access_token",
    "secret",
    "password",
}


def mask_secret(secret: str, show_chars: int = 4) -> str:
    """脱敏 API 密钥

    只显示前 N 个字符,其余用 *** 代替。

    Args:
        secret: 需要脱敏的密钥
        show_chars: 显示的字符数(默认 4)

    Returns:
        str: 脱敏后的字符串

    Examples:
        >>> mask_secret("sk-test-1234567890")
        'sk-t***'
        >>> mask_secret("short", show_chars=8)
        '***'
    """
    if len(secret) <= show_chars:
        return "***"
    return f"{secret[:show_chars]}***"


def hash_text(text: str, hash_length: int = 8) -> str:
    """哈希文本内容

    使用 SHA-256 哈希,只保留前 N 位,用于在日志中引用某条文本而不输出原文。

    Args:
        text: 原始文本
        hash_length: 返回的哈希长度(默认 8)

    Returns:
        str: 哈希后的字符串(16 进制)
    """
    hash_bytes = hashlib.sha256(text.encode("utf-8")).digest()
    return hash_bytes.hex()[:hash_length]


def mask_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Structlog 处理器:自动脱敏敏感字段

    Args:
        logger: 日志记录器(未使用)
        method_name: 日志方法名称(未使用)
        event_dict: 事件字典

    Returns:
        EventDict: 脱敏后的事件字典

    Examples:
        >>> event = {"api_key": "sk-secret123", "model": "m"}
        >>> mask_sensitive_data(None, "info", event)
        {'api_key': 'sk-s***', 'model': 'm'}
    """
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_FIELDS and isinstance(value, str):
            event_dict[key] = mask_secret(value)

    return event_dict


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    """递归清理字典中的敏感字段

    Args:
        data: 需要清理的字典(如 settings.model_dump() 的结果)

    Returns:
        dict[str, Any]: 清理后的字典副本
    """
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        if key.lower() in SENSITIVE_FIELDS and isinstance(value, str):
            sanitized[key] = mask_secret(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value)
        else:
            sanitized[key] = value

    return sanitized
