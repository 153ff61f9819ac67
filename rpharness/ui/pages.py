"""
ページオブジェクト — Playwright Page の操作をステップとして記録する

StepExecutor を渡すと、ページの操作がステップとしてレポートに記録される。
渡さない場合は通常のページオブジェクトとして動作する。

主な構成:
  - BasePage: 基準 URL からのナビゲーションとステップ実行の共通処理
  - LoginPage: ユーザー名・パスワードによるログインフォーム
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar
from urllib.parse import urljoin

from .elements import Button, TextBox

if TYPE_CHECKING:
    from playwright.async_api import Page

    from ..core.executor import StepExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BasePage:
    """ページオブジェクトの基底クラス。

    Attributes:
        page: Playwright の Page オブジェクト
        base_url: 相対パスの解決に使う基準 URL
        executor: 操作をステップとして記録する StepExecutor（任意）
    """

    path = "/"

    def __init__(
        self,
        page: Page,
        base_url: str = "",
        executor: Optional[StepExecutor] = None,
    ) -> None:
        self.page = page
        self.base_url = base_url
        self.executor = executor

    def url_for(self, path: Optional[str] = None) -> str:
        """基準 URL と相対パスから絶対 URL を組み立てる。"""
        target = self.path if path is None else path
        if not self.base_url:
            return target
        return urljoin(self.base_url.rstrip("/") + "/", target.lstrip("/"))

    async def _step(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        category: str = "Action",
    ) -> T:
        if self.executor is None:
            return await action()
        return await self.executor.run_step_async(name, action, category)

    async def goto(self, path: Optional[str] = None) -> Any:
        """ページを開く。"""
        url = self.url_for(path)
        logger.debug("ページを開きます: %s", url)
        return await self._step(f"Navigate to {url}", lambda: self.page.goto(url), "Navigation")

    async def title(self) -> str:
        return await self.page.title()

    async def verify_title(self, expected: str) -> None:
        """ページタイトルを検証する。不一致の場合は AssertionError。"""
        if self.executor is None:
            _check_title(expected, await self.page.title())
            return

        async with self.executor.begin_step("Verify title", category="Verification") as step:
            actual = await self.page.title()
            step.log_verification("Page title", expected, actual, passed=actual == expected)
            _check_title(expected, actual)


class LoginPage(BasePage):
    """ユーザー名・パスワードのログインフォーム。

    セレクタはサブクラスのクラス属性で差し替えられる。
    """

    path = "/login"
    username_selector = "input[name='username']"
    password_selector = "input[name='password']"
    submit_selector = "button[type='submit']"
    error_selector = ".error-message"

    @property
    def username(self) -> TextBox:
        return TextBox(self.page.locator(self.username_selector), "username")

    @property
    def password(self) -> TextBox:
        return TextBox(self.page.locator(self.password_selector), "password")

    @property
    def submit_button(self) -> Button:
        return Button(self.page.locator(self.submit_selector), "submit")

    async def login(self, username: str, password: str) -> None:
        """フォームに入力して送信する。パスワードはログに出力しない。"""
        if self.executor is None:
            await self._fill_and_submit(username, password)
            return

        async with self.executor.begin_step("Login", category="Action") as step:
            step.log_action("Fill", self.username_selector, username)
            step.log_action("Fill", self.password_selector, "***")
            step.log_action("Click", self.submit_selector)
            await self._fill_and_submit(username, password)

    async def _fill_and_submit(self, username: str, password: str) -> None:
        await self.username.set_text(username)
        await self.password.set_text(password)
        await self.submit_button.click()

    async def error_text(self) -> str:
        return await self.page.locator(self.error_selector).inner_text()


def _check_title(expected: str, actual: str) -> None:
    if actual != expected:
        raise AssertionError(f"title mismatch: expected {expected!r}, got {actual!r}")
