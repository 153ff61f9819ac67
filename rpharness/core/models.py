"""
データモデル — ステップ・ステータス・ログレベル・添付ファイル

ステップツリーのレポートモデルで使用するデータクラスと列挙型を定義する。

主な構成:
  - StepStatus: ステップの状態（pending → passed / failed / skipped）
  - LogLevel: レポートバックエンドへ送るログの重要度
  - Attachment: ログに添付するファイル（バイト列 + メタ情報）
  - Step: 1 つのレポート対象作業単位
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


# ---------------------------------------------------------------------------
# 列挙型
# ---------------------------------------------------------------------------

class StepStatus(str, enum.Enum):
    """ステップの状態。

    PENDING は生成から終了処理までの状態で、終了後は
    PASSED / FAILED / SKIPPED のいずれか 1 つに確定する。
    """

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        """終了状態かどうか。"""
        return self is not StepStatus.PENDING


class LogLevel(str, enum.Enum):
    """レポートログの重要度。"""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


# ---------------------------------------------------------------------------
# 添付ファイル
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Attachment:
    """ログに添付するファイル。

    Attributes:
        name: ファイル名
        data: ファイル内容
        mime_type: MIME タイプ
    """

    name: str
    data: bytes
    mime_type: str = "application/octet-stream"


# ---------------------------------------------------------------------------
# ステップ
# ---------------------------------------------------------------------------

@dataclass
class Step:
    """レポート対象の作業単位。

    開始時刻は UTC の datetime で保持し、所要時間は単調時計
    （time.perf_counter）で計測する。end_time は start_time + 所要時間として
    算出するため、常に start_time <= end_time となる。

    Attributes:
        id: 一意なステップ ID（再利用しない）
        name: 表示名（重複可）
        category: 分類（Action, Verification 等、表示用のみ）
        description: 説明文
        start_time: 開始時刻（UTC）
        parent_id: 親ステップ ID（トップレベルの場合は None）
        handle: バックエンド上の子スコープのハンドル（開始失敗時は None）
        status: 現在の状態
        message: 終了時のメッセージ
        end_time: 終了時刻（終了前は None）
        duration_ms: 所要時間（ミリ秒）
    """

    id: str
    name: str
    category: str = ""
    description: str = ""
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    parent_id: Optional[str] = None
    handle: Any = None
    status: StepStatus = StepStatus.PENDING
    message: str = ""
    end_time: Optional[datetime] = None
    duration_ms: float = 0.0
    _started: float = field(default_factory=time.perf_counter, repr=False)

    @property
    def is_finished(self) -> bool:
        """終了済みかどうか。"""
        return self.status.is_terminal

    def finish(self, status: StepStatus, message: str = "") -> None:
        """ステップを終了状態にする。

        Args:
            status: 終了ステータス（PENDING 以外）
            message: 終了メッセージ

        Raises:
            ValueError: status が PENDING の場合
            RuntimeError: 既に終了済みの場合
        """
        if not status.is_terminal:
            raise ValueError("ステップを pending のまま終了することはできません")
        if self.is_finished:
            raise RuntimeError(f"ステップ '{self.name}' は既に終了しています")

        self.duration_ms = max(0.0, (time.perf_counter() - self._started) * 1000)
        self.end_time = self.start_time + timedelta(milliseconds=self.duration_ms)
        self.status = status
        self.message = message
