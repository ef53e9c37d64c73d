"""结构化日志配置

使用 structlog 和 orjson 输出 JSON 日志；开发时可切换为控制台格式。
"""

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson
import structlog
from structlog.types import EventDict, Processor


def orjson_dumps(obj: Any, **kwargs: Any) -> str:
    """使用 orjson 序列化 JSON

    Args:
        obj: 要序列化的对象
        **kwargs: structlog 传入的额外参数(被忽略)

    Returns:
        str: JSON 字符串
    """
    return orjson.dumps(obj, default=str).decode("utf-8")


def add_timestamp(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """添加 ISO 8601 格式的时间戳"""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def add_log_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """添加日志级别字段"""
    if method_name == "warn":
        method_name = "warning"
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = True,
) -> None:
    """配置全局日志系统

    日志统一写到 stderr,stdout 留给 CLI 输出聚类结果。

    Args:
        level: 日志级别(DEBUG/INFO/WARNING/ERROR/CRITICAL)
        log_file: 日志文件路径(可选),None 表示仅输出到控制台
        json_format: 是否使用 JSON 格式(True)或人类可读格式(False)
    """
    from textsim.utils.security import mask_sensitive_data

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        mask_sensitive_data,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer(serializer=orjson_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # 标准库 logging 供第三方库使用(openai、sentence-transformers 等)
    logging.basicConfig(
        format="%(message)s",
        level=level.upper(),
        stream=sys.stderr,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level.upper())
        logging.root.addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """获取结构化日志记录器

    Args:
        name: 日志记录器名称(可选),通常使用模块名 __name__

    Returns:
        structlog.BoundLogger: 结构化日志记录器
    """
    return structlog.get_logger(name)
