"""
要素ラッパー — Playwright Locator の薄いラッパー

ページオブジェクトから使う要素単位の操作と検証を提供する。
検証（should_*）は Playwright の expect を使い、失敗時は AssertionError を送出する。

主な構成:
  - BaseElement: 共通操作（click, hover, 可視性・テキスト検証 等）
  - Button: ボタン固有の操作
  - TextBox: 入力欄固有の操作
  - Dropdown: select 要素固有の操作
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from playwright.async_api import expect

if TYPE_CHECKING:
    from playwright.async_api import Locator


class BaseElement:
    """Locator をラップする要素の基底クラス。

    Attributes:
        locator: ラップする Playwright Locator
        name: ログ表示用の要素名
    """

    def __init__(self, locator: Locator, name: str = "") -> None:
        self.locator = locator
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name or repr(self.locator)})"

    # ----- 操作 -----

    async def click(self) -> None:
        await self.locator.click()

    async def hover(self) -> None:
        await self.locator.hover()

    async def focus(self) -> None:
        await self.locator.focus()

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        await self.locator.wait_for(state=state, timeout=timeout)

    async def screenshot(self, path: Union[str, Path]) -> Path:
        """要素のスクリーンショットを保存する。"""
        await self.locator.screenshot(path=str(path))
        return Path(path)

    # ----- 状態取得 -----

    async def get_text(self) -> str:
        return await self.locator.inner_text()

    async def is_visible(self) -> bool:
        return await self.locator.is_visible()

    async def is_enabled(self) -> bool:
        return await self.locator.is_enabled()

    async def exists(self) -> bool:
        """DOM 上に 1 つ以上存在するか。"""
        return await self.locator.count() > 0

    # ----- 検証 -----

    async def should_be_visible(self) -> None:
        await expect(self.locator).to_be_visible()

    async def should_be_hidden(self) -> None:
        await expect(self.locator).to_be_hidden()

    async def should_have_text(self, expected: str) -> None:
        await expect(self.locator).to_have_text(expected)


class Button(BaseElement):
    """ボタン要素。"""

    async def double_click(self) -> None:
        await self.locator.dblclick()

    async def click_if_visible(self) -> bool:
        """表示されている場合のみクリックする。クリックした場合は True。"""
        if await self.locator.is_visible():
            await self.locator.click()
            return True
        return False

    async def click_with_delay(self, milliseconds: int) -> None:
        await asyncio.sleep(milliseconds / 1000)
        await self.locator.click()

    async def is_disabled(self) -> bool:
        return not await self.locator.is_enabled()

    async def get_button_type(self) -> Optional[str]:
        return await self.locator.get_attribute("type")

    async def should_be_enabled(self) -> None:
        await expect(self.locator).to_be_enabled()

    async def should_be_disabled(self) -> None:
        await expect(self.locator).to_be_disabled()


class TextBox(BaseElement):
    """テキスト入力要素。get_text() は入力値を返す。"""

    async def set_text(self, text: str) -> None:
        await self.locator.fill(text)

    async def get_text(self) -> str:
        return await self.locator.input_value()

    async def clear(self) -> None:
        await self.locator.fill("")

    async def append_text(self, text: str) -> None:
        current = await self.locator.input_value()
        await self.locator.fill(current + text)

    async def press(self, key: str) -> None:
        await self.locator.press(key)

    async def should_have_placeholder(self, expected: str) -> None:
        await expect(self.locator).to_have_attribute("placeholder", expected)

    async def should_be_read_only(self) -> None:
        await expect(self.locator).not_to_be_editable()


class Dropdown(BaseElement):
    """select 要素。"""

    async def select_by_value(self, value: str) -> list[str]:
        return await self.locator.select_option(value=value)

    async def select_by_label(self, label: str) -> list[str]:
        return await self.locator.select_option(label=label)

    async def get_selected_values(self) -> list[str]:
        return await self.locator.evaluate(
            "el => Array.from(el.selectedOptions).map(o => o.value)"
        )

    async def should_have_selected_value(self, expected: str) -> None:
        await expect(self.locator).to_have_value(expected)
