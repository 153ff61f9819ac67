"""
メッセージ整形 — レポートビューア向け HTML フラグメント生成

レポートバックエンド（Web ビューア）に送るログ本文を、色付き・太字の
HTML フラグメントとして整形する。ステップのライフサイクル契約とは独立しており、
重要度（LogLevel）やステータス（StepStatus）は呼び出し側で別途保持する。

主な機能:
  - colour(): 色名 → 16 進カラーコード
  - format_*_message(): ログ種別ごとの整形
  - format_step_start() / format_step_end(): ステップ開始・終了バナー
  - format_table(): キー・値の表
"""

from __future__ import annotations

import re
from typing import Mapping

from .models import LogLevel, StepStatus

# ---------------------------------------------------------------------------
# カラーパレット
# ---------------------------------------------------------------------------

COLOURS: dict[str, str] = {
    "black": "#000000",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "green": "#00FF00",
    "blue": "#0000FF",
    "yellow": "#FFFF00",
    "cyan": "#00FFFF",
    "magenta": "#FF00FF",
    "orange": "#FFA500",
    "purple": "#800080",
    "gray": "#808080",
    "lightgray": "#D3D3D3",
    "darkred": "#8B0000",
    "darkgreen": "#006400",
    "darkblue": "#00008B",
    "lightblue": "#ADD8E6",
    "lightgreen": "#90EE90",
    "pink": "#FFC0CB",
    "brown": "#A52A2A",
    "silver": "#C0C0C0",
    "gold": "#FFD700",
}

# ログレベルごとの既定色（log_with_level で使用）
LEVEL_COLOURS: dict[LogLevel, str] = {
    LogLevel.TRACE: "gray",
    LogLevel.DEBUG: "blue",
    LogLevel.INFO: "green",
    LogLevel.WARNING: "orange",
    LogLevel.ERROR: "red",
    LogLevel.FATAL: "darkred",
}

_HEX_CODE = re.compile(r"#[0-9A-Fa-f]{6}")

# ステップ終了ステータスごとの色・アイコン
_STATUS_STYLE: dict[StepStatus, tuple[str, str]] = {
    StepStatus.PASSED: ("green", "✅"),
    StepStatus.FAILED: ("red", "❌"),
    StepStatus.SKIPPED: ("yellow", "⚠️"),
}


def colour(name: str) -> str:
    """色名をカラーコードに変換する。

    Args:
        name: 色名（大文字小文字を区別しない）または "#RRGGBB"

    Returns:
        "#RRGGBB" 形式のカラーコード

    Raises:
        ValueError: 未知の色名の場合
    """
    if _HEX_CODE.fullmatch(name):
        return name.upper()
    try:
        return COLOURS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown colour: {name}") from None


# ---------------------------------------------------------------------------
# 重要度別メッセージ
# ---------------------------------------------------------------------------

def format_info_message(message: str) -> str:
    return (
        f"<div style='color: {colour('green')}; font-weight: bold;'>"
        f"<span style='color: {colour('blue')};'>[INFO]</span> {message}"
        "</div>"
    )


def format_warn_message(message: str) -> str:
    return (
        f"<div style='color: {colour('orange')}; font-weight: bold;'>"
        f"<span style='color: {colour('yellow')};'>[WARN]</span> {message}"
        "</div>"
    )


def format_error_message(message: str) -> str:
    return (
        f"<div style='color: {colour('red')}; font-weight: bold;'>"
        f"<span style='background-color: {colour('red')}; color: {colour('white')};"
        f" padding: 2px 4px;'>[ERROR]</span> {message}"
        "</div>"
    )


def format_debug_message(message: str) -> str:
    return (
        "<div style='color: #808080; font-style: italic;'>"
        f"<span style='color: #666666;'>[DEBUG]</span> {message}"
        "</div>"
    )


def format_custom_message(message: str, colour_name: str, bold: bool = False) -> str:
    """任意の色・太字指定でメッセージを整形する。

    Raises:
        ValueError: 未知の色名の場合
    """
    weight = "bold" if bold else "normal"
    return f"<div style='color: {colour(colour_name)}; font-weight: {weight};'>{message}</div>"


def format_category_prefix(category: str, colour_name: str) -> str:
    """"[category]" 形式の太字プレフィックスを生成する。"""
    return format_custom_message(f"[{category}]", colour_name, bold=True)


# ---------------------------------------------------------------------------
# ステップバナー
# ---------------------------------------------------------------------------

def format_step_start(step_name: str, category: str = "", description: str = "") -> str:
    """ステップ開始バナーを整形する。

    カテゴリ・説明が指定されている場合は灰色の補足行を追加する。
    """
    blue = colour("blue")
    text = (
        f"<div style='color: {blue}; font-weight: bold; border-left: 3px solid {blue};"
        f" padding-left: 10px;'>🔵 <strong>STEP STARTED:</strong> {step_name}</div>"
    )
    if category:
        text += "<br/>" + format_custom_message(f"Category: {category}", "gray")
    if description:
        text += "<br/>" + format_custom_message(f"Description: {description}", "gray")
    return text


def format_step_end(
    step_name: str,
    status: StepStatus,
    duration_ms: float,
    message: str = "",
) -> str:
    """ステップ終了バナーを整形する。

    ステータスに応じた色・アイコンと、所要時間の行を含む。
    """
    colour_name, icon = _STATUS_STYLE.get(status, ("blue", "🔵"))
    code = colour(colour_name)
    text = (
        f"<div style='color: {code}; font-weight: bold; border-left: 3px solid {code};"
        f" padding-left: 10px;'>{icon} <strong>STEP ENDED:</strong> {step_name} - "
        f"<span style='text-transform: uppercase;'>{status.value}</span></div>"
    )
    text += "<br/>" + format_performance_message("Duration", f"{duration_ms:.2f}", "ms")
    if message:
        text += "<br/>" + format_custom_message(message, colour_name)
    return text


# ---------------------------------------------------------------------------
# ドメイン別メッセージ
# ---------------------------------------------------------------------------

def format_action_message(action: str, target: str = "") -> str:
    target_text = f" on '{target}'" if target else ""
    return (
        f"<div style='color: {colour('cyan')}; font-weight: bold;'>"
        f"🎯 <strong>ACTION:</strong> {action}{target_text}"
        "</div>"
    )


def format_verification_message(
    description: str,
    expected: str = "",
    actual: str = "",
    passed: bool = True,
) -> str:
    """検証結果を整形する。

    期待値・実績値が両方ある場合は比較行を追加し、
    合否に応じて緑 / 赤の枠で囲む。
    """
    details = ""
    if expected and actual:
        details = f"<br/><small>Expected: <em>{expected}</em> | Actual: <em>{actual}</em></small>"
    body = (
        f"<div style='color: {colour('purple')}; font-weight: bold;'>"
        f"🔍 <strong>VERIFICATION:</strong> {description}{details}"
        "</div>"
    )
    if passed:
        frame = "background-color: #e6ffe6; padding: 10px; border-left: 4px solid green; margin: 5px 0;"
    else:
        frame = "background-color: #ffe6e6; padding: 10px; border-left: 4px solid red; margin: 5px 0;"
    return f"<div style='{frame}'>{body}</div>"


def format_test_data_message(name: str, value: str) -> str:
    return (
        f"<div style='color: {colour('gold')}; font-weight: bold;'>"
        f"📊 <strong>TEST DATA:</strong> {name}: "
        f"<code style='background-color: #f0f0f0; padding: 2px 4px;'>{value}</code>"
        "</div>"
    )


def format_screenshot_message(description: str) -> str:
    return (
        f"<div style='color: {colour('darkblue')}; font-weight: bold;'>"
        f"📸 <strong>SCREENSHOT:</strong> {description}"
        "</div>"
    )


def format_attachment_message(description: str) -> str:
    return format_custom_message(f"📎 ATTACHMENT: {description}", "purple", bold=True)


def format_section_header(title: str, colour_name: str = "darkblue") -> str:
    code = colour(colour_name)
    return (
        f"<div style='color: {code}; font-size: 16px; font-weight: bold;"
        f" border-bottom: 2px solid {code}; padding-bottom: 5px; margin: 10px 0;'>"
        f"📋 {title.upper()}"
        "</div>"
    )


def format_performance_message(name: str, value: str, unit: str = "") -> str:
    unit_text = f" {unit}" if unit else ""
    return (
        f"<div style='color: {colour('brown')}; font-weight: bold;'>"
        f"⏱️ <strong>PERFORMANCE:</strong> {name}: "
        f"<span style='color: {colour('darkgreen')};'>{value}{unit_text}</span>"
        "</div>"
    )


def format_config_message(name: str, value: str) -> str:
    return (
        f"<div style='color: {colour('silver')}; font-weight: bold;'>"
        f"⚙️ <strong>CONFIG:</strong> {name}: "
        f"<code style='background-color: #f0f0f0; padding: 2px 4px;'>{value}</code>"
        "</div>"
    )


def format_table(title: str, rows: Mapping[str, object]) -> str:
    """キー・値の組を HTML テーブルとして整形する。"""
    cells = "".join(
        "<tr>"
        "<td style='border: 1px solid #ddd; padding: 8px; background-color: #f9f9f9;"
        f" font-weight: bold;'>{key}</td>"
        f"<td style='border: 1px solid #ddd; padding: 8px;'>{value}</td>"
        "</tr>"
        for key, value in rows.items()
    )
    return (
        "<div style='margin: 10px 0;'>"
        f"<h4 style='color: {colour('darkblue')}; margin-bottom: 10px;'>{title}</h4>"
        "<table style='border-collapse: collapse; width: 100%; font-family: monospace;'>"
        f"{cells}</table></div>"
    )
