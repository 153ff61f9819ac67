"""
HarnessLogger のユニットテスト

テスト対象:
  - 送信先スコープの解決（ルート / ステップ / 未知 ID）
  - 重要度別ログとドメインイベントの LogLevel
  - 性能指標の閾値注記
  - 添付ファイル（存在しない場合の警告と False）
  - read_attachment() の MIME 推定
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import RecordingBackend
from rpharness.core.errors import MissingAttachmentError
from rpharness.core.logger import HarnessLogger, read_attachment
from rpharness.core.models import LogLevel, StepStatus
from rpharness.core.tracker import StepTracker


# ---------------------------------------------------------------------------
# 送信先スコープ
# ---------------------------------------------------------------------------

class TestScopeResolution:
    """送信先スコープの解決テスト。"""

    def test_default_scope_is_root(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        """step 未指定のログはテスト項目（root）に送られる。"""
        log.log_info("hello")
        assert len(backend.logs) == 1
        assert backend.logs[0].handle == "root"
        assert backend.logs[0].level is LogLevel.INFO
        assert "hello" in backend.logs[0].text

    def test_step_scope(
        self, log: HarnessLogger, tracker: StepTracker, backend: RecordingBackend,
    ) -> None:
        """step を指定したログはステップのスコープに送られる。"""
        step_id = tracker.open("Login")
        handle = tracker.get(step_id).handle
        log.log_info("inside", step=step_id)
        assert backend.logs[-1].handle == handle

    def test_unknown_step_is_dropped(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        """未知のステップ ID へのログは送信しない。"""
        log.log_info("lost", step="unknown")
        assert backend.logs == []

    def test_closed_step_is_dropped(
        self, log: HarnessLogger, tracker: StepTracker, backend: RecordingBackend,
    ) -> None:
        step_id = tracker.open("Done")
        tracker.close(step_id, StepStatus.PASSED)
        before = len(backend.logs)
        log.log_info("late", step=step_id)
        assert len(backend.logs) == before

    def test_no_root_handle_sends_nothing(self, backend: RecordingBackend) -> None:
        """テスト項目の開始に失敗した場合、ルート宛てのログは送らない。"""
        log = HarnessLogger(StepTracker(backend, root_handle=None))
        log.log_info("nowhere")
        assert backend.logs == []

    def test_backend_error_is_swallowed(self, backend: RecordingBackend, caplog) -> None:
        """送信エラーは例外にならず警告ログになる。"""
        backend.fail_on.add("log")
        log = HarnessLogger(StepTracker(backend, root_handle="root"))
        with caplog.at_level(logging.WARNING):
            log.log_error("boom")
        assert "log unavailable" in caplog.text

    def test_mirrors_to_python_logging(self, log: HarnessLogger, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="rpharness.core.logger"):
            log.log_warn("careful")
        record = next(r for r in caplog.records if r.getMessage() == "careful")
        assert record.levelno == logging.WARNING


# ---------------------------------------------------------------------------
# 重要度
# ---------------------------------------------------------------------------

class TestLevels:
    """各メソッドが送る LogLevel のテスト。"""

    @pytest.mark.parametrize(
        "method, level",
        [
            ("log_info", LogLevel.INFO),
            ("log_warn", LogLevel.WARNING),
            ("log_error", LogLevel.ERROR),
            ("log_debug", LogLevel.DEBUG),
            ("log_trace", LogLevel.TRACE),
            ("log_fatal", LogLevel.FATAL),
        ],
    )
    def test_severity_methods(
        self, log: HarnessLogger, backend: RecordingBackend, method: str, level: LogLevel,
    ) -> None:
        getattr(log, method)("message")
        assert backend.logs[-1].level is level

    def test_category_prefix(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_info("logged in", "Auth")
        assert "[Auth]" in backend.logs[-1].text

    def test_log_with_level(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_with_level("custom", LogLevel.WARNING)
        assert backend.logs[-1].level is LogLevel.WARNING
        assert "#FFA500" in backend.logs[-1].text

    def test_verification_levels(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        """合格は INFO、不合格は ERROR。"""
        log.log_verification("Title", "Home", "Home", passed=True)
        log.log_verification("Title", "Home", "Login", passed=False)
        assert [entry.level for entry in backend.logs] == [LogLevel.INFO, LogLevel.ERROR]
        assert "Expected: <em>Home</em>" in backend.logs[1].text

    def test_action_with_value(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_action("Fill", "#user", "alice")
        text = backend.logs[-1].text
        assert "ACTION:" in text
        assert "on '#user'" in text
        assert "Value: alice" in text


# ---------------------------------------------------------------------------
# 色指定
# ---------------------------------------------------------------------------

class TestCustomColour:
    """log_custom() / log_section_header() の色指定テスト。"""

    def test_named_colour(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_custom("note", "purple", bold=True)
        assert "#800080" in backend.logs[-1].text
        assert "font-weight: bold" in backend.logs[-1].text

    def test_hex_colour(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_custom("note", "#ff8c00")
        assert "#FF8C00" in backend.logs[-1].text

    def test_unknown_colour_falls_back_to_black(
        self, log: HarnessLogger, backend: RecordingBackend, caplog,
    ) -> None:
        """未知の色名は例外にせず黒で送る。"""
        log.log_custom("note", "ultraviolet")
        assert "#000000" in backend.logs[-1].text
        assert "ultraviolet" in caplog.text

    def test_section_header_uppercases_title(
        self, log: HarnessLogger, backend: RecordingBackend,
    ) -> None:
        log.log_section_header("Setup", "nosuchcolour")
        assert "SETUP" in backend.logs[-1].text
        assert "#00008B" in backend.logs[-1].text


# ---------------------------------------------------------------------------
# 性能指標
# ---------------------------------------------------------------------------

class TestPerformanceMetric:
    """log_performance_metric() のテスト。"""

    def test_within_threshold(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_performance_metric("Page load", 1200, "ms", threshold=2000)
        entry = backend.logs[-1]
        assert "Within threshold (2000 ms)" in entry.text
        assert entry.level is LogLevel.INFO

    def test_exceeds_threshold(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_performance_metric("Page load", 2500, "ms", threshold=2000)
        entry = backend.logs[-1]
        assert "Exceeds threshold (2000 ms)" in entry.text
        assert entry.level is LogLevel.WARNING

    def test_equal_to_threshold_is_within(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_performance_metric("Page load", 2000, "ms", threshold=2000)
        assert "Within threshold" in backend.logs[-1].text

    def test_without_threshold(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_performance_metric("Items", 3, "")
        text = backend.logs[-1].text
        assert "threshold" not in text
        assert "Items: <span" in text


# ---------------------------------------------------------------------------
# 表・設定・テストデータ
# ---------------------------------------------------------------------------

class TestStructuredEvents:
    """log_table() / log_configuration() / log_test_data() のテスト。"""

    def test_table(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_table("Environment", {"browser": "chromium", "headless": True})
        text = backend.logs[-1].text
        assert "<table" in text
        assert "chromium" in text
        assert "True" in text

    def test_configuration(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_configuration("timeout", 30)
        assert "CONFIG:" in backend.logs[-1].text

    def test_test_data(self, log: HarnessLogger, backend: RecordingBackend) -> None:
        log.log_test_data("user", "alice")
        assert "TEST DATA:" in backend.logs[-1].text
        assert "alice" in backend.logs[-1].text


# ---------------------------------------------------------------------------
# 添付
# ---------------------------------------------------------------------------

class TestAttachments:
    """attach_screenshot() / attach_file() のテスト。"""

    def test_attach_screenshot(
        self, log: HarnessLogger, backend: RecordingBackend, screenshot_file: Path,
    ) -> None:
        assert log.attach_screenshot(screenshot_file, "After login") is True
        attachment = backend.attachments()[0]
        assert attachment.name == "shot.png"
        assert attachment.mime_type == "image/png"
        assert attachment.data.startswith(b"\x89PNG")
        assert "SCREENSHOT:" in backend.logs[-1].text

    def test_missing_screenshot_returns_false(
        self, log: HarnessLogger, backend: RecordingBackend, tmp_path: Path, caplog,
    ) -> None:
        """存在しないファイルは添付せず、警告ログを送って False を返す。"""
        result = log.attach_screenshot(tmp_path / "missing.png")
        assert result is False
        assert backend.attachments() == []
        assert len(backend.logs) == 1
        assert backend.logs[0].level is LogLevel.WARNING
        assert "missing.png" in backend.logs[0].text
        assert "missing.png" in caplog.text

    def test_attach_file_uses_given_mime(
        self, log: HarnessLogger, backend: RecordingBackend, tmp_path: Path,
    ) -> None:
        path = tmp_path / "trace.log"
        path.write_text("line", encoding="utf-8")
        assert log.attach_file(path, "Trace", "text/plain") is True
        assert backend.attachments()[0].mime_type == "text/plain"
        assert "ATTACHMENT: Trace" in backend.logs[-1].text

    def test_attach_to_step(
        self, log: HarnessLogger, tracker: StepTracker, backend: RecordingBackend,
        screenshot_file: Path,
    ) -> None:
        step_id = tracker.open("Capture")
        log.attach_screenshot(screenshot_file, step=step_id)
        assert backend.logs[-1].handle == tracker.get(step_id).handle

    def test_unreadable_screenshot_returns_false(
        self, log: HarnessLogger, backend: RecordingBackend, screenshot_file: Path,
    ) -> None:
        """読み込みに失敗したファイルも、例外を送出せず警告ログにして False を返す。"""
        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            result = log.attach_screenshot(screenshot_file, "After login")

        assert result is False
        assert backend.attachments() == []
        assert backend.logs[-1].level is LogLevel.WARNING
        assert "denied" in backend.logs[-1].text


class TestReadAttachment:
    """read_attachment() のテスト。"""

    def test_guesses_mime_type(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text("{}", encoding="utf-8")
        assert read_attachment(path).mime_type == "application/json"

    def test_unknown_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.unknownext"
        path.write_bytes(b"\x00")
        assert read_attachment(path).mime_type == "application/octet-stream"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(MissingAttachmentError) as exc_info:
            read_attachment(tmp_path / "missing.png")
        assert exc_info.value.path == tmp_path / "missing.png"

    def test_directory_is_not_a_file(self, tmp_path: Path) -> None:
        with pytest.raises(MissingAttachmentError):
            read_attachment(tmp_path)

    def test_read_error_is_wrapped(self, tmp_path: Path) -> None:
        path = tmp_path / "locked.png"
        path.write_bytes(b"\x89PNG")
        error = PermissionError("denied")
        with patch.object(Path, "read_bytes", side_effect=error):
            with pytest.raises(MissingAttachmentError) as exc_info:
                read_attachment(path)
        assert exc_info.value.reason is error
        assert exc_info.value.path == path
