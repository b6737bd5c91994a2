"""
日志存储单元测试

测试环形缓冲区、控制台状态和镜像到 logging。
"""

import logging

import pytest

from kairo_desktop.extensions import LogLevel, LogStore


class TestRingBuffer:
    """环形缓冲区测试"""

    @pytest.mark.unit
    def test_newest_first(self):
        """测试最新的条目在最前面"""
        logs = LogStore()
        logs.info("a", "first")
        logs.info("a", "second")

        assert [e.message for e in logs.entries] == ["second", "first"]

    @pytest.mark.unit
    def test_capacity_evicts_oldest(self):
        """测试超出容量时淘汰最旧的条目"""
        logs = LogStore(max_logs=5)
        for i in range(6):
            logs.info("a", f"msg {i}")

        assert len(logs) == 5
        assert logs.entries[0].message == "msg 5"
        assert "msg 0" not in [e.message for e in logs.entries]

    @pytest.mark.unit
    def test_default_capacity(self):
        """测试默认容量"""
        logs = LogStore()
        for i in range(501):
            logs.debug("a", str(i))

        assert len(logs) == 500
        assert logs.entries[-1].message == "1"

    @pytest.mark.unit
    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            LogStore(max_logs=0)

    @pytest.mark.unit
    def test_entries_are_immutable(self):
        """测试条目不可修改"""
        entry = LogStore().error("a", "boom", "trace")

        with pytest.raises(Exception):
            entry.message = "changed"

        assert entry.to_dict()["level"] == "error"
        assert entry.details == "trace"
        assert entry.timestamp > 0

    @pytest.mark.unit
    def test_unique_ids(self):
        logs = LogStore()
        ids = {logs.info("a", "x").id for _ in range(50)}

        assert len(ids) == 50

    @pytest.mark.unit
    def test_clear(self):
        logs = LogStore()
        logs.info("a", "x")
        logs.clear()

        assert logs.entries == []


class TestQueries:
    """查询测试"""

    @pytest.mark.unit
    def test_filter_and_count(self):
        logs = LogStore()
        logs.info("a", "1")
        logs.warn("a", "2")
        logs.warn("b", "3")
        logs.error("system", "4")

        assert [e.message for e in logs.filter(level="warn")] == ["3", "2"]
        assert [e.message for e in logs.filter(extension_id="a")] == ["2", "1"]
        assert [e.message for e in logs.filter(LogLevel.WARN, "b")] == ["3"]
        assert logs.count(LogLevel.ERROR) == 1

    @pytest.mark.unit
    def test_unknown_level(self):
        with pytest.raises(ValueError):
            LogStore().log("fatal", "a", "x")


class TestConsole:
    """调试控制台测试"""

    @pytest.mark.unit
    def test_toggle(self):
        logs = LogStore()

        assert logs.console_open is False
        assert logs.toggle_console() is True
        assert logs.toggle_console() is False

        logs.set_console_open(True)
        assert logs.console_open is True

    @pytest.mark.unit
    def test_console_state_is_not_data(self):
        """测试清空日志不影响控制台状态"""
        logs = LogStore(console_open=True)
        logs.clear()

        assert logs.console_open is True


class TestMirror:
    """镜像到 logging 测试"""

    @pytest.mark.unit
    def test_mirrors_to_extension_channel(self, caplog):
        """测试日志镜像到 kairo_desktop.extensions.<id>"""
        with caplog.at_level(logging.DEBUG, logger="kairo_desktop.extensions"):
            LogStore().warn("word-count", "No text", "empty note")

        record = caplog.records[-1]
        assert record.name == "kairo_desktop.extensions.word-count"
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "[Extension:word-count] No text empty note"
