"""
エラー定義 — ハーネス共通の例外・警告クラス

ハーネス内部で発生するエラーを分類する。
テスト対象のアクションが送出した例外はラップせず、そのまま呼び出し元へ再送出する。

主な構成:
  - HarnessError: ハーネス例外の基底クラス
  - ConfigurationError: 設定不備（テスト実行前に検出し、実行全体を中断する）
  - ReportingTransportError: レポートバックエンドへの送信失敗（警告ログに格下げ）
  - MissingAttachmentError: 添付ファイルが存在しない・読み込めない（警告ログに格下げ）
  - OrphanedStepWarning: teardown 時に閉じられていないステップが残っていた
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class HarnessError(Exception):
    """ハーネス例外の基底クラス。"""


class ConfigurationError(HarnessError):
    """設定値が不正な場合のエラー。

    未知の優先度、不正なブラウザ名・タイムアウト・ベース URL などで送出される。
    個々のテストではなく実行全体を失敗させる。
    """


class ReportingTransportError(HarnessError):
    """レポートバックエンドとの通信に失敗した場合のエラー。

    バックエンド実装が送出し、呼び出し境界（call_backend）で警告ログに変換される。
    テストの合否には影響しない。
    """


class MissingAttachmentError(HarnessError):
    """添付対象のファイルが存在しない、または読み込めない場合のエラー。

    Attributes:
        path: 見つからなかったファイルのパス
        reason: 読み込みに失敗した場合の元の例外
    """

    def __init__(self, path: Union[str, Path], reason: Optional[OSError] = None) -> None:
        if reason is None:
            super().__init__(f"file does not exist at {path}")
        else:
            super().__init__(f"cannot read file at {path}: {reason}")
        self.path = path
        self.reason = reason


class OrphanedStepWarning(UserWarning):
    """テスト終了時に未完了のステップが残っていたことを示す警告。"""
