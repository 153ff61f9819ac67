"""
要素ラッパーのユニットテスト

Playwright の Locator はモック（unittest.mock.AsyncMock）を使用する。
expect() は rpharness.ui.elements.expect をパッチして差し替える。
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rpharness.ui.elements import BaseElement, Button, Dropdown, TextBox


def _make_locator(**returns) -> AsyncMock:
    """モック Locator を生成する。"""
    locator = AsyncMock()
    for name, value in returns.items():
        getattr(locator, name).return_value = value
    return locator


def _patch_expect():
    assertions = AsyncMock()
    return patch("rpharness.ui.elements.expect", MagicMock(return_value=assertions)), assertions


# ===========================================================================
# テスト: BaseElement
# ===========================================================================

class TestBaseElement:
    """BaseElement のテスト。"""

    @pytest.mark.asyncio
    async def test_actions_delegate(self) -> None:
        locator = _make_locator()
        element = BaseElement(locator, "menu")
        await element.click()
        await element.hover()
        await element.focus()
        await element.wait_for("attached", timeout=500)

        locator.click.assert_awaited_once()
        locator.hover.assert_awaited_once()
        locator.focus.assert_awaited_once()
        locator.wait_for.assert_awaited_once_with(state="attached", timeout=500)

    @pytest.mark.asyncio
    async def test_state_queries(self) -> None:
        element = BaseElement(_make_locator(inner_text="Hello", is_visible=True, is_enabled=False, count=2))
        assert await element.get_text() == "Hello"
        assert await element.is_visible() is True
        assert await element.is_enabled() is False
        assert await element.exists() is True

    @pytest.mark.asyncio
    async def test_exists_false(self) -> None:
        assert await BaseElement(_make_locator(count=0)).exists() is False

    @pytest.mark.asyncio
    async def test_screenshot(self, tmp_path: Path) -> None:
        locator = _make_locator()
        path = await BaseElement(locator).screenshot(tmp_path / "el.png")
        locator.screenshot.assert_awaited_once_with(path=str(tmp_path / "el.png"))
        assert path == tmp_path / "el.png"

    @pytest.mark.asyncio
    async def test_should_have_text(self) -> None:
        locator = _make_locator()
        patcher, assertions = _patch_expect()
        with patcher as expect:
            await BaseElement(locator).should_have_text("Welcome")
            await BaseElement(locator).should_be_visible()
        expect.assert_called_with(locator)
        assertions.to_have_text.assert_awaited_once_with("Welcome")
        assertions.to_be_visible.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_expectation_raises(self) -> None:
        patcher, assertions = _patch_expect()
        assertions.to_be_hidden.side_effect = AssertionError("still visible")
        with patcher:
            with pytest.raises(AssertionError, match="still visible"):
                await BaseElement(_make_locator()).should_be_hidden()

    def test_repr_uses_name(self) -> None:
        assert repr(Button(_make_locator(), "submit")) == "Button(submit)"

    def test_repr_without_name_uses_locator(self) -> None:
        locator = _make_locator()
        assert repr(TextBox(locator)) == f"TextBox({locator!r})"


# ===========================================================================
# テスト: Button / TextBox / Dropdown
# ===========================================================================

class TestButton:
    """Button のテスト。"""

    @pytest.mark.asyncio
    async def test_click_if_visible(self) -> None:
        visible = _make_locator(is_visible=True)
        hidden = _make_locator(is_visible=False)
        assert await Button(visible).click_if_visible() is True
        assert await Button(hidden).click_if_visible() is False
        visible.click.assert_awaited_once()
        hidden.click.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_attributes(self) -> None:
        button = Button(_make_locator(is_enabled=False, get_attribute="submit"))
        assert await button.is_disabled() is True
        assert await button.get_button_type() == "submit"

    @pytest.mark.asyncio
    async def test_double_click_and_delay(self) -> None:
        locator = _make_locator()
        await Button(locator).double_click()
        await Button(locator).click_with_delay(1)
        locator.dblclick.assert_awaited_once()
        locator.click.assert_awaited_once()


class TestTextBox:
    """TextBox のテスト。"""

    @pytest.mark.asyncio
    async def test_text_operations(self) -> None:
        locator = _make_locator(input_value="abc")
        box = TextBox(locator, "search")
        await box.set_text("hello")
        assert await box.get_text() == "abc"
        await box.append_text("def")
        await box.clear()
        await box.press("Enter")

        assert [c.args[0] for c in locator.fill.await_args_list] == ["hello", "abcdef", ""]
        locator.press.assert_awaited_once_with("Enter")

    @pytest.mark.asyncio
    async def test_assertions(self) -> None:
        patcher, assertions = _patch_expect()
        with patcher:
            await TextBox(_make_locator()).should_have_placeholder("Email")
            await TextBox(_make_locator()).should_be_read_only()
        assertions.to_have_attribute.assert_awaited_once_with("placeholder", "Email")
        assertions.not_to_be_editable.assert_awaited_once()


class TestDropdown:
    """Dropdown のテスト。"""

    @pytest.mark.asyncio
    async def test_select(self) -> None:
        locator = _make_locator(select_option=["jp"], evaluate=["jp"])
        dropdown = Dropdown(locator)
        assert await dropdown.select_by_value("jp") == ["jp"]
        await dropdown.select_by_label("Japan")
        assert await dropdown.get_selected_values() == ["jp"]
        assert locator.select_option.await_args_list[1].kwargs == {"label": "Japan"}
