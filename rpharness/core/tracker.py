"""
StepTracker — 実行中ステップのレジストリ

1 テストにつき 1 インスタンスを生成し、ステップの開始（open）と終了（close）を
管理する。プロセス全体で共有するグローバル状態は持たない。

主な機能:
  - open(): pending ステップを生成し、バックエンドに子スコープを開始する
  - close(): ステップを終了状態にし、レジストリから取り除く
  - get(): ログ・添付の送信先ステップの参照
  - close_all_as_skipped(): テスト終了時の取り残しステップの後始末

レジストリの整合性エラー（未知 ID、二重終了）は例外にせず no-op とする。
バックエンドの送信エラーは call_backend で警告ログに変換する。
"""

from __future__ import annotations

import logging
import uuid
import warnings
from typing import Any, Optional

from ..backends import ReportBackend, call_backend
from .errors import OrphanedStepWarning
from .formatting import format_step_end, format_step_start
from .models import LogLevel, Step, StepStatus

logger = logging.getLogger(__name__)


class StepTracker:
    """ステップのライフサイクルを管理するレジストリ。

    使用例::

        tracker = StepTracker(backend, root_handle=test_item)
        step_id = tracker.open("Login", category="Action")
        ...
        tracker.close(step_id, StepStatus.PASSED, "Step completed successfully")
    """

    def __init__(self, backend: ReportBackend, root_handle: Any = None) -> None:
        """StepTracker を初期化する。

        Args:
            backend: レポートバックエンド
            root_handle: テスト項目のハンドル（トップレベルステップの親）
        """
        self._backend = backend
        self._root_handle = root_handle
        self._live: dict[str, Step] = {}
        self._finished: list[Step] = []

    # -------------------------------------------------------------------
    # プロパティ
    # -------------------------------------------------------------------

    @property
    def backend(self) -> ReportBackend:
        return self._backend

    @property
    def root_handle(self) -> Any:
        return self._root_handle

    @property
    def finished_steps(self) -> list[Step]:
        """終了済みステップ（終了順）。"""
        return list(self._finished)

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._live

    def active_step_ids(self) -> list[str]:
        """実行中ステップの ID を開始順に返す。"""
        return list(self._live)

    # -------------------------------------------------------------------
    # open / close / get
    # -------------------------------------------------------------------

    def open(
        self,
        name: str,
        description: str = "",
        category: str = "",
        parent: Optional[str] = None,
    ) -> str:
        """ステップを開始する。

        親ステップ（未指定時はテスト項目）の下にバックエンドの子スコープを開始する。
        開始に失敗してもステップはローカルに存在し、handle が None になる。

        Args:
            name: ステップ名
            description: 説明文
            category: 分類
            parent: 親ステップ ID（None の場合はトップレベル）

        Returns:
            新しいステップ ID
        """
        parent_handle = self._root_handle
        if parent is not None:
            parent_step = self._live.get(parent)
            if parent_step is None:
                logger.warning("親ステップが見つかりません: %s（トップレベルで開始します）", parent)
                parent = None
            else:
                parent_handle = parent_step.handle

        step = Step(
            id=uuid.uuid4().hex,
            name=name,
            category=category,
            description=description,
            parent_id=parent,
        )
        step.handle = call_backend(
            self._backend.start_item,
            name,
            description=description,
            category=category,
            start_time=step.start_time,
            parent=parent_handle,
        )
        self._live[step.id] = step

        if step.handle is not None:
            call_backend(
                self._backend.log,
                step.handle,
                format_step_start(name, category, description),
                LogLevel.INFO,
                step.start_time,
            )
        logger.debug("ステップ開始: %s (%s)", name, step.id)
        return step.id

    def close(self, step_id: str, status: StepStatus, message: str = "") -> Optional[Step]:
        """ステップを終了する。

        未知の ID（終了済み・後始末済みを含む）の場合は何もしない。

        Args:
            step_id: ステップ ID
            status: 終了ステータス
            message: 終了メッセージ

        Returns:
            終了したステップ。未知の ID の場合は None。

        Raises:
            ValueError: status が PENDING の場合
        """
        if not status.is_terminal:
            raise ValueError("ステップを pending のまま終了することはできません")

        step = self._live.pop(step_id, None)
        if step is None:
            logger.debug("未知のステップ ID の終了要求を無視しました: %s", step_id)
            return None

        step.finish(status, message)
        self._finished.append(step)

        if step.handle is not None:
            level = LogLevel.ERROR if status is StepStatus.FAILED else LogLevel.INFO
            call_backend(
                self._backend.log,
                step.handle,
                format_step_end(step.name, status, step.duration_ms, message),
                level,
                step.end_time,
            )
            call_backend(self._backend.finish_item, step.handle, step.end_time, status)

        logger.debug(
            "ステップ終了: %s -> %s (%.2fms)", step.name, status.value, step.duration_ms,
        )
        return step

    def get(self, step_id: Optional[str]) -> Optional[Step]:
        """実行中ステップを返す。未知の ID または None の場合は None。"""
        if step_id is None:
            return None
        return self._live.get(step_id)

    # -------------------------------------------------------------------
    # 後始末
    # -------------------------------------------------------------------

    def close_all_as_skipped(self) -> int:
        """実行中の全ステップを SKIPPED で終了し、レジストリを空にする。

        子ステップが親より先に終了するよう、開始の新しい順に閉じる。

        Returns:
            終了したステップ数
        """
        leftovers = list(reversed(self._live))
        if not leftovers:
            return 0

        names = [self._live[step_id].name for step_id in leftovers]
        logger.warning("終了していないステップを skipped として閉じます: %s", ", ".join(names))
        for step_id in leftovers:
            self.close(step_id, StepStatus.SKIPPED, "Step was not closed before test teardown")
        self._live.clear()

        # 警告がエラー扱いでも、ここまでで全ステップは終了済み
        warnings.warn(
            f"{len(leftovers)} step(s) were still open at teardown: {', '.join(names)}",
            OrphanedStepWarning,
            stacklevel=2,
        )
        return len(leftovers)
