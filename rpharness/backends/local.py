"""
LocalBackend — メモリ上にステップツリーを構築するバックエンド

外部のレポートサービスを使わずに、テスト項目・ステップ・ログ・添付ファイルを
ReportItem ツリーとして保持する。実行終了後に Reporter が
JSON / HTML / JUnit XML レポートへ変換する。

添付ファイルは ArtifactsManager が指定されていればディスクに保存し、
ログにはそのパスを記録する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..core.models import Attachment, LogLevel, StepStatus

if TYPE_CHECKING:
    from ..core.artifacts import ArtifactsManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ツリーノード
# ---------------------------------------------------------------------------

@dataclass
class LogEntry:
    """1 件のログ。

    Attributes:
        text: ログ本文（HTML フラグメント）
        level: 重要度
        timestamp: 記録時刻
        attachment_name: 添付ファイル名
        attachment_mime: 添付ファイルの MIME タイプ
        attachment_path: 保存先パス（保存しなかった場合は None）
    """

    text: str
    level: LogLevel
    timestamp: datetime
    attachment_name: Optional[str] = None
    attachment_mime: Optional[str] = None
    attachment_path: Optional[Path] = None


@dataclass
class ReportItem:
    """テスト項目またはステップを表すツリーノード。

    Attributes:
        name: 表示名
        description: 説明文
        category: 分類
        start_time: 開始時刻
        attributes: (キー, 値) 属性リスト
        parent: 親ノード（ルートの場合は None）
        children: 子ノード
        logs: ログ
        end_time: 終了時刻（未終了の場合は None）
        status: 終了ステータス（未終了の場合は None）
    """

    name: str
    description: str
    category: str
    start_time: datetime
    attributes: list[tuple[str, str]] = field(default_factory=list)
    parent: Optional[ReportItem] = field(default=None, repr=False)
    children: list[ReportItem] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    end_time: Optional[datetime] = None
    status: Optional[StepStatus] = None

    @property
    def is_finished(self) -> bool:
        return self.status is not None

    @property
    def duration_ms(self) -> float:
        """所要時間（ミリ秒）。未終了の場合は 0。"""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds() * 1000

    def walk(self):
        """自身と全ての子孫を深さ優先で列挙する。"""
        yield self
        for child in self.children:
            yield from child.walk()


# ---------------------------------------------------------------------------
# LocalBackend 本体
# ---------------------------------------------------------------------------

class LocalBackend:
    """ReportItem ツリーを構築する ReportBackend 実装。

    Attributes:
        roots: ルートノード（親なしで開始された項目）のリスト
        closed: close() 済みかどうか
    """

    def __init__(self, artifacts: Optional[ArtifactsManager] = None) -> None:
        self._artifacts = artifacts
        self.roots: list[ReportItem] = []
        self.closed = False

    def start_item(
        self,
        name: str,
        *,
        description: str = "",
        category: str = "",
        start_time: datetime,
        parent: Any = None,
        attributes: Sequence[tuple[str, str]] = (),
    ) -> ReportItem:
        item = ReportItem(
            name=name,
            description=description,
            category=category,
            start_time=start_time,
            attributes=list(attributes),
            parent=parent,
        )
        if parent is None:
            self.roots.append(item)
        else:
            parent.children.append(item)
        return item

    def log(
        self,
        handle: ReportItem,
        text: str,
        level: LogLevel,
        timestamp: datetime,
        attachment: Optional[Attachment] = None,
    ) -> None:
        entry = LogEntry(text=text, level=level, timestamp=timestamp)
        if attachment is not None:
            entry.attachment_name = attachment.name
            entry.attachment_mime = attachment.mime_type
            if self._artifacts is not None:
                entry.attachment_path = self._artifacts.save_attachment(
                    attachment.name, attachment.data,
                )
        handle.logs.append(entry)

    def finish_item(self, handle: ReportItem, end_time: datetime, status: StepStatus) -> None:
        if handle.is_finished:
            logger.warning("終了済みの項目を再度終了しようとしました: %s", handle.name)
            return
        handle.end_time = end_time
        handle.status = status

    def close(self) -> None:
        self.closed = True

    # ----- 参照用ヘルパー -----

    def find(self, name: str) -> list[ReportItem]:
        """指定名の全ノードをツリー全体から検索する。"""
        return [item for root in self.roots for item in root.walk() if item.name == name]
