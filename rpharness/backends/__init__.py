"""
レポートバックエンド — ステップ・ログ・添付イベントの送信先

ハーネスのコアはこのパッケージの ReportBackend Protocol だけに依存する。

主要エクスポート:
  - ReportBackend: バックエンドの共通 Protocol（start_item / log / finish_item / close）
  - call_backend: バックエンド呼び出しを例外安全に実行するヘルパー
  - create_backend: 設定に応じたバックエンドの生成
  - LocalBackend: メモリ上にステップツリーを構築するバックエンド
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Sequence, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from ..core.models import Attachment, LogLevel, StepStatus
    from ..config import HarnessConfig
    from ..core.artifacts import ArtifactsManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# バックエンド Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class ReportBackend(Protocol):
    """レポートバックエンドの共通インターフェース。

    ハンドルの型はバックエンドごとに異なり、コア側では不透明な値として扱う。
    送信に失敗した場合は任意の例外（通常は ReportingTransportError）を送出してよい。
    """

    def start_item(
        self,
        name: str,
        *,
        description: str,
        category: str,
        start_time: datetime,
        parent: Any = None,
        attributes: Sequence[tuple[str, str]] = (),
    ) -> Any:
        """子スコープ（テスト項目またはステップ）を開始し、ハンドルを返す。"""
        ...

    def log(
        self,
        handle: Any,
        text: str,
        level: LogLevel,
        timestamp: datetime,
        attachment: Optional[Attachment] = None,
    ) -> None:
        """ハンドルが指すスコープにログを送信する。"""
        ...

    def finish_item(self, handle: Any, end_time: datetime, status: StepStatus) -> None:
        """スコープを終了ステータス付きで閉じる。"""
        ...

    def close(self) -> None:
        """バックエンドを終了し、未送信のデータを送り切る。"""
        ...


# ---------------------------------------------------------------------------
# 例外安全な呼び出し
# ---------------------------------------------------------------------------

def call_backend(func: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
    """バックエンド呼び出しを実行し、失敗時は警告ログを出して None を返す。

    レポート送信の失敗がテストの合否に影響しないよう、
    ここで全ての Exception を吸収する。

    Args:
        func: 呼び出すバックエンドメソッド
        *args: 位置引数
        **kwargs: キーワード引数

    Returns:
        呼び出し結果。失敗した場合は None。
    """
    try:
        return func(*args, **kwargs)
    except Exception as exc:
        name = getattr(func, "__name__", repr(func))
        logger.warning("レポートバックエンドの呼び出しに失敗しました (%s): %s", name, exc)
        return None


# ---------------------------------------------------------------------------
# バックエンド生成
# ---------------------------------------------------------------------------

def create_backend(
    config: HarnessConfig,
    artifacts: Optional[ArtifactsManager] = None,
) -> ReportBackend:
    """設定に応じたバックエンドを生成する。

    ReportPortal が有効な場合は ReportPortalBackend、
    それ以外は LocalBackend を返す。

    Args:
        config: ハーネス設定
        artifacts: 添付ファイル保存先（LocalBackend のみ使用）

    Returns:
        生成されたバックエンド
    """
    if config.reportportal.enabled:
        from .reportportal import ReportPortalBackend

        logger.info("ReportPortal バックエンドを使用します: %s", config.reportportal.endpoint)
        return ReportPortalBackend.from_settings(config.reportportal)

    logger.info("ローカルバックエンドを使用します")
    return LocalBackend(artifacts=artifacts)


from .local import LocalBackend, LogEntry, ReportItem  # noqa: E402

__all__ = [
    "LocalBackend",
    "LogEntry",
    "ReportBackend",
    "ReportItem",
    "call_backend",
    "create_backend",
]
