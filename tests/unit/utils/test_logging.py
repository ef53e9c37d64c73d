"""日志配置测试"""

import logging
from pathlib import Path

import orjson
import pytest
import structlog
from textsim.utils.logging import add_log_level, configure_logging, orjson_dumps


@pytest.fixture
def restore_logging():
    """测试结束后恢复 structlog 与 root logger 状态"""
    handlers = list(logging.root.handlers)
    yield
    structlog.reset_defaults()
    for handler in list(logging.root.handlers):
        if handler not in handlers:
            logging.root.removeHandler(handler)
            handler.close()


class TestLogging:
    """日志工具测试"""

    def test_orjson_dumps_handles_non_json_types(self):
        """测试不可序列化的值转为字符串"""
        payload = orjson.loads(orjson_dumps({"path": Path("a/b"), "n": 1}))

        assert payload == {"path": "a/b", "n": 1}

    def test_add_log_level(self):
        assert add_log_level(None, "warning", {})["level"] == "WARNING"

    def test_configure_json_logging(self, capsys, restore_logging):
        """测试 JSON 日志写到 stderr，并脱敏 API Key"""
        configure_logging(level="INFO", json_format=True)

        structlog.get_logger().info("test_event", api_key="sk-secret-value")

        captured = capsys.readouterr()
        assert captured.out == ""
        record = orjson.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "test_event"
        assert record["level"] == "INFO"
        assert record["api_key"] == "sk-s***"
        assert "timestamp" in record

    def test_configure_log_file(self, tmp_path, restore_logging):
        """测试日志文件目录会被创建"""
        log_file = tmp_path / "logs" / "textsim.log"

        configure_logging(level="DEBUG", log_file=str(log_file), json_format=False)

        assert log_file.parent.exists()
