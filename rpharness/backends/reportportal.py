"""
ReportPortalBackend — reportportal-client による ReportPortal 送信

ReportBackend の呼び出しを RPClient の API に変換する。

  - start_item   → start_test_item（初回呼び出し時にローンチを開始）
  - log          → log（添付ファイルは name / data / mime の辞書）
  - finish_item  → finish_test_item
  - close        → finish_launch + terminate

ルート項目（テスト）は統計対象の STEP、ネストしたステップは
has_stats=False の STEP として登録する。
クライアントの失敗は ReportingTransportError として送出し、
コア側の call_backend が警告ログに変換する。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Sequence

from reportportal_client import RPClient

from ..core.errors import ReportingTransportError
from ..core.models import Attachment, LogLevel, StepStatus

if TYPE_CHECKING:
    from ..config import ReportPortalSettings

logger = logging.getLogger(__name__)

_LEVELS: dict[LogLevel, str] = {
    LogLevel.TRACE: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARN",
    LogLevel.ERROR: "ERROR",
    LogLevel.FATAL: "FATAL",
}

_STATUSES: dict[StepStatus, str] = {
    StepStatus.PASSED: "PASSED",
    StepStatus.FAILED: "FAILED",
    StepStatus.SKIPPED: "SKIPPED",
}


def to_timestamp(value: datetime) -> str:
    """datetime を ReportPortal のタイムスタンプ（エポックミリ秒の文字列）に変換する。"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return str(int(value.timestamp() * 1000))


class ReportPortalBackend:
    """RPClient をラップする ReportBackend 実装。

    Attributes:
        launch_name: ローンチ名
        launch_description: ローンチの説明
        launch_id: 開始済みローンチの UUID（未開始の場合は None）
    """

    def __init__(
        self,
        client: RPClient,
        launch_name: str,
        launch_description: str = "",
        launch_attributes: Sequence[tuple[str, str]] = (),
    ) -> None:
        self._client = client
        self.launch_name = launch_name
        self.launch_description = launch_description
        self._launch_attributes = list(launch_attributes)
        self.launch_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: ReportPortalSettings) -> ReportPortalBackend:
        """設定から RPClient を生成してバックエンドを構築する。"""
        client = RPClient(
            endpoint=settings.endpoint,
            project=settings.project,
            api_key=settings.api_key,
        )
        return cls(client, settings.launch_name, settings.launch_description)

    # -------------------------------------------------------------------
    # ReportBackend
    # -------------------------------------------------------------------

    def _ensure_launch(self, start_time: datetime) -> None:
        if self.launch_id is not None:
            return
        try:
            launch_id = self._client.start_launch(
                name=self.launch_name,
                start_time=to_timestamp(start_time),
                description=self.launch_description or None,
                attributes=_attributes(self._launch_attributes) or None,
            )
        except Exception as e:
            raise ReportingTransportError(f"ローンチを開始できません: {e}") from e
        if launch_id is None:
            raise ReportingTransportError("ローンチを開始できません: ReportPortal が ID を返しませんでした")
        self.launch_id = launch_id
        logger.info("ReportPortal ローンチを開始しました: %s (%s)", self.launch_name, launch_id)

    def start_item(
        self,
        name: str,
        *,
        description: str = "",
        category: str = "",
        start_time: datetime,
        parent: Any = None,
        attributes: Sequence[tuple[str, str]] = (),
    ) -> str:
        self._ensure_launch(start_time)

        item_attributes = list(attributes)
        if category:
            item_attributes.append(("category", category))

        try:
            item_id = self._client.start_test_item(
                name=name,
                start_time=to_timestamp(start_time),
                item_type="STEP",
                description=description or None,
                attributes=_attributes(item_attributes) or None,
                parent_item_id=parent,
                has_stats=parent is None,
            )
        except Exception as e:
            raise ReportingTransportError(f"項目を開始できません: {name}: {e}") from e
        if item_id is None:
            raise ReportingTransportError(f"項目を開始できません: {name}")
        return item_id

    def log(
        self,
        handle: str,
        text: str,
        level: LogLevel,
        timestamp: datetime,
        attachment: Optional[Attachment] = None,
    ) -> None:
        payload = None
        if attachment is not None:
            payload = {
                "name": attachment.name,
                "data": attachment.data,
                "mime": attachment.mime_type,
            }
        try:
            self._client.log(
                time=to_timestamp(timestamp),
                message=text,
                level=_LEVELS[level],
                attachment=payload,
                item_id=handle,
            )
        except Exception as e:
            raise ReportingTransportError(f"ログを送信できません: {e}") from e

    def finish_item(self, handle: str, end_time: datetime, status: StepStatus) -> None:
        try:
            self._client.finish_test_item(
                item_id=handle,
                end_time=to_timestamp(end_time),
                status=_STATUSES[status],
            )
        except Exception as e:
            raise ReportingTransportError(f"項目を終了できません: {e}") from e

    def close(self) -> None:
        """ローンチを終了し、クライアントを停止する。"""
        try:
            if self.launch_id is not None:
                self._client.finish_launch(end_time=to_timestamp(datetime.now(timezone.utc)))
                logger.info("ReportPortal ローンチを終了しました: %s", self.launch_id)
        except Exception as e:
            raise ReportingTransportError(f"ローンチを終了できません: {e}") from e
        finally:
            self._client.terminate()


def _attributes(pairs: Sequence[tuple[str, str]]) -> list[dict[str, str]]:
    return [{"key": key, "value": value} for key, value in pairs]
