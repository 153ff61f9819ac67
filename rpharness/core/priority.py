"""
優先度分類 — テスト優先度の表示属性とガイダンス

テストに付与する優先度（Critical / High / Medium / Low / Optional）を
レポート上の強調表示とガイダンス文に変換する。スケジューリングには使用しない。

未知の優先度はテスト定義時（define_case 呼び出し時）に ConfigurationError として
検出し、実行時まで持ち越さない。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from .errors import ConfigurationError


class Priority(enum.IntEnum):
    """テスト優先度。値が小さいほど重大（CRITICAL < HIGH < ... < OPTIONAL）。"""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4
    OPTIONAL = 5

    @classmethod
    def parse(cls, value: Union[Priority, str]) -> Priority:
        """文字列または Priority を Priority に変換する。

        Args:
            value: 優先度名（大文字小文字を区別しない）または Priority

        Returns:
            対応する Priority

        Raises:
            ConfigurationError: 未知の優先度の場合
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        known = ", ".join(p.name.capitalize() for p in cls)
        raise ConfigurationError(f"未知の優先度です: {value!r}（有効値: {known}）")


@dataclass(frozen=True)
class PriorityDisplay:
    """優先度の表示属性。

    Attributes:
        icon: HTML エンティティのアイコン（色付きの丸）
        color: テキスト色（#RRGGBB）
        background: バッジ背景色（#RRGGBB）
        label: 大文字の表示名
    """

    icon: str
    color: str
    background: str
    label: str


_DISPLAY: dict[Priority, PriorityDisplay] = {
    Priority.CRITICAL: PriorityDisplay("&#x1F534;", "#FF0000", "#FFE6E6", "CRITICAL"),
    Priority.HIGH: PriorityDisplay("&#x1F7E0;", "#FF8C00", "#FFF0E6", "HIGH"),
    Priority.MEDIUM: PriorityDisplay("&#x1F7E1;", "#DAA520", "#FFFACD", "MEDIUM"),
    Priority.LOW: PriorityDisplay("&#x1F7E2;", "#32CD32", "#F0FFF0", "LOW"),
    Priority.OPTIONAL: PriorityDisplay("&#x1F535;", "#4169E1", "#E6F0FF", "OPTIONAL"),
}

_GUIDANCE: dict[Priority, str] = {
    Priority.CRITICAL: "CRITICAL: Must pass - blocks release if failed",
    Priority.HIGH: "HIGH: Core functionality - investigate failures immediately",
    Priority.MEDIUM: "MEDIUM: Important feature - review failures promptly",
    Priority.LOW: "LOW: Nice-to-have feature - review when time permits",
    Priority.OPTIONAL: "OPTIONAL: Edge case or experimental - review if needed",
}


def guidance(priority: Union[Priority, str]) -> str:
    """優先度に対応するガイダンス文を返す。"""
    return _GUIDANCE[Priority.parse(priority)]


def display_attributes(priority: Union[Priority, str]) -> PriorityDisplay:
    """優先度に対応する表示属性（アイコン・色）を返す。"""
    return _DISPLAY[Priority.parse(priority)]


def format_priority_badge(priority: Union[Priority, str]) -> str:
    """レポート用の優先度バッジ HTML を生成する。"""
    attrs = display_attributes(priority)
    return (
        f"<span style='color: {attrs.color}; font-weight: bold; background-color: {attrs.background};"
        f" padding: 2px 6px; border-radius: 3px;'>{attrs.label}</span>"
    )
