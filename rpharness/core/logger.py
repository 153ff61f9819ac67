"""
HarnessLogger — ドメインイベントのレポート送信ファサード

操作・検証・テストデータ・性能指標・表・見出しなどのイベントを
（HTML テキスト, LogLevel, 送信先スコープ）に変換し、バックエンドへ送る。

送信先は呼び出し側が明示する:
  - step=None: テスト項目（ルート）のログ
  - step=<ステップ ID>: そのステップのログ（未知の ID の場合は何も送らない）

「現在のステップ」を暗黙に解決する仕組みは持たない。
全てのメッセージは標準 logging（rpharness.core.logger）にも同じ重要度で出力する。
送信失敗・添付ファイル欠落はテストを失敗させず、警告ログに留める。
"""

from __future__ import annotations

import logging
import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..backends import call_backend
from .errors import MissingAttachmentError
from .formatting import (
    LEVEL_COLOURS,
    format_action_message,
    format_attachment_message,
    format_category_prefix,
    format_config_message,
    format_custom_message,
    format_debug_message,
    format_error_message,
    format_info_message,
    format_performance_message,
    format_screenshot_message,
    format_section_header,
    format_table,
    format_test_data_message,
    format_verification_message,
    format_warn_message,
)
from .models import Attachment, LogLevel
from .tracker import StepTracker

logger = logging.getLogger(__name__)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_PY_LEVELS: dict[LogLevel, int] = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}


def read_attachment(
    path: Union[str, Path],
    mime_type: Optional[str] = None,
) -> Attachment:
    """ファイルを読み込み Attachment を生成する。

    Args:
        path: ファイルパス
        mime_type: MIME タイプ（None の場合は拡張子から推定）

    Returns:
        ファイル内容を保持する Attachment

    Raises:
        MissingAttachmentError: ファイルが存在しない、または読み込めない場合
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise MissingAttachmentError(file_path)
    if mime_type is None:
        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise MissingAttachmentError(file_path, e) from e
    return Attachment(name=file_path.name, data=data, mime_type=mime_type)


class HarnessLogger:
    """レポート用ロガー。

    使用例::

        log = HarnessLogger(tracker)
        log.log_info("テスト開始")
        log.log_action("Click", "#submit", step=step_id)
        log.log_verification("Title", "Home", page_title, passed=page_title == "Home", step=step_id)
    """

    def __init__(self, tracker: StepTracker) -> None:
        self._tracker = tracker

    @property
    def tracker(self) -> StepTracker:
        return self._tracker

    # -------------------------------------------------------------------
    # 送信
    # -------------------------------------------------------------------

    def _resolve_handle(self, step: Optional[str]) -> Any:
        if step is None:
            return self._tracker.root_handle
        target = self._tracker.get(step)
        if target is None:
            logger.debug("未知のステップ ID へのログを破棄しました: %s", step)
            return None
        return target.handle

    def _emit(
        self,
        text: str,
        level: LogLevel,
        plain: str,
        step: Optional[str] = None,
        attachment: Optional[Attachment] = None,
    ) -> None:
        logger.log(_PY_LEVELS[level], "%s", plain)
        handle = self._resolve_handle(step)
        if handle is None:
            return
        call_backend(
            self._tracker.backend.log,
            handle,
            text,
            level,
            datetime.now(timezone.utc),
            attachment,
        )

    @staticmethod
    def _with_category(text: str, category: str, colour_name: str) -> str:
        if not category:
            return text
        return format_category_prefix(category, colour_name) + text

    # -------------------------------------------------------------------
    # 重要度別ログ
    # -------------------------------------------------------------------

    def log_info(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(format_info_message(message), category, "blue")
        self._emit(text, LogLevel.INFO, message, step)

    def log_warn(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(format_warn_message(message), category, "orange")
        self._emit(text, LogLevel.WARNING, message, step)

    def log_error(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(format_error_message(message), category, "red")
        self._emit(text, LogLevel.ERROR, message, step)

    def log_debug(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(format_debug_message(message), category, "gray")
        self._emit(text, LogLevel.DEBUG, message, step)

    def log_trace(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(
            format_custom_message(f"[TRACE] {message}", "lightgray"), category, "lightgray",
        )
        self._emit(text, LogLevel.TRACE, message, step)

    def log_fatal(self, message: str, category: str = "", *, step: Optional[str] = None) -> None:
        text = self._with_category(
            format_custom_message(f"💀 [FATAL] {message}", "darkred", bold=True),
            category,
            "darkred",
        )
        self._emit(text, LogLevel.FATAL, message, step)

    def log_with_level(
        self,
        message: str,
        level: LogLevel,
        category: str = "",
        *,
        step: Optional[str] = None,
    ) -> None:
        """任意の重要度で、重要度の既定色を使ってログを送る。"""
        colour_name = LEVEL_COLOURS[level]
        text = self._with_category(
            format_custom_message(message, colour_name, bold=level is not LogLevel.TRACE),
            category,
            colour_name,
        )
        self._emit(text, level, message, step)

    def log_custom(
        self,
        message: str,
        colour: str,
        bold: bool = False,
        level: LogLevel = LogLevel.INFO,
        *,
        step: Optional[str] = None,
    ) -> None:
        """任意の色でログを送る。未知の色名は黒で送る。"""
        try:
            text = format_custom_message(message, colour, bold)
        except ValueError:
            logger.warning("未知の色名のため黒で出力します: %s", colour)
            text = format_custom_message(message, "black", bold)
        self._emit(text, level, message, step)

    # -------------------------------------------------------------------
    # ドメインイベント
    # -------------------------------------------------------------------

    def log_action(
        self,
        action: str,
        target: str = "",
        value: str = "",
        *,
        step: Optional[str] = None,
    ) -> None:
        """UI 操作を記録する（INFO）。"""
        text = format_action_message(action, target)
        plain = f"ACTION: {action}" + (f" on '{target}'" if target else "")
        if value:
            text += format_custom_message(f"Value: {value}", "gray")
            plain += f" (value: {value})"
        self._emit(text, LogLevel.INFO, plain, step)

    def log_verification(
        self,
        description: str,
        expected: str = "",
        actual: str = "",
        passed: bool = True,
        *,
        step: Optional[str] = None,
    ) -> None:
        """検証結果を記録する。

        合格なら INFO、不合格なら ERROR で送る。記録のみでテストは失敗させない。
        """
        text = format_verification_message(description, expected, actual, passed)
        plain = f"VERIFICATION {'PASSED' if passed else 'FAILED'}: {description}"
        if expected or actual:
            plain += f" (expected: {expected}, actual: {actual})"
        self._emit(text, LogLevel.INFO if passed else LogLevel.ERROR, plain, step)

    def log_test_data(
        self,
        name: str,
        value: Any,
        category: str = "",
        *,
        step: Optional[str] = None,
    ) -> None:
        text = self._with_category(format_test_data_message(name, str(value)), category, "gold")
        self._emit(text, LogLevel.INFO, f"TEST DATA: {name}: {value}", step)

    def log_performance_metric(
        self,
        name: str,
        value: float,
        unit: str = "ms",
        threshold: Optional[float] = None,
        *,
        step: Optional[str] = None,
    ) -> None:
        """性能指標を記録する。

        threshold を指定した場合は閾値内 / 超過の注記を付ける（制御フローには影響しない）。
        超過時は WARNING で送る。
        """
        unit_text = f" {unit}" if unit else ""
        text = format_performance_message(name, str(value), unit)
        plain = f"PERFORMANCE: {name}: {value}{unit_text}"
        level = LogLevel.INFO
        if threshold is not None:
            if value <= threshold:
                note = f"Within threshold ({threshold}{unit_text})"
                text += format_custom_message(f"✅ {note}", "green")
            else:
                note = f"Exceeds threshold ({threshold}{unit_text})"
                text += format_custom_message(f"⚠️ {note}", "orange", bold=True)
                level = LogLevel.WARNING
            plain += f" - {note}"
        self._emit(text, level, plain, step)

    def log_configuration(self, name: str, value: Any, *, step: Optional[str] = None) -> None:
        self._emit(format_config_message(name, str(value)), LogLevel.INFO, f"CONFIG: {name}: {value}", step)

    def log_table(
        self,
        title: str,
        rows: Mapping[str, Any],
        *,
        step: Optional[str] = None,
    ) -> None:
        plain = f"{title}: " + ", ".join(f"{k}={v}" for k, v in rows.items())
        self._emit(format_table(title, rows), LogLevel.INFO, plain, step)

    def log_section_header(
        self,
        title: str,
        colour: str = "darkblue",
        *,
        step: Optional[str] = None,
    ) -> None:
        try:
            text = format_section_header(title, colour)
        except ValueError:
            logger.warning("未知の色名のため既定色で出力します: %s", colour)
            text = format_section_header(title)
        self._emit(text, LogLevel.INFO, f"== {title.upper()} ==", step)

    # -------------------------------------------------------------------
    # 添付
    # -------------------------------------------------------------------

    def attach_screenshot(
        self,
        path: Union[str, Path],
        description: str = "Screenshot",
        *,
        step: Optional[str] = None,
    ) -> bool:
        """スクリーンショットを添付する。

        Args:
            path: 画像ファイルのパス
            description: 説明文
            step: 送信先ステップ ID

        Returns:
            添付を送信した場合は True。ファイルが存在しない場合は False。
        """
        return self._attach(path, description, None, format_screenshot_message, step)

    def attach_file(
        self,
        path: Union[str, Path],
        description: str,
        mime_type: str = "application/octet-stream",
        *,
        step: Optional[str] = None,
    ) -> bool:
        """任意のファイルを添付する。戻り値は attach_screenshot と同じ。"""
        return self._attach(path, description, mime_type, format_attachment_message, step)

    def _attach(self, path, description, mime_type, formatter, step) -> bool:
        try:
            attachment = read_attachment(path, mime_type)
        except MissingAttachmentError as exc:
            logger.warning("添付ファイルを送信できません: %s", exc)
            handle = self._resolve_handle(step)
            if handle is not None:
                call_backend(
                    self._tracker.backend.log,
                    handle,
                    format_warn_message(f"{description}: {exc}"),
                    LogLevel.WARNING,
                    datetime.now(timezone.utc),
                )
            return False

        self._emit(formatter(description), LogLevel.INFO, f"ATTACHMENT: {description} ({path})", step, attachment)
        return True
