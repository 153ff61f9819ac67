# UI モジュール
# Playwright 用の要素ラッパーとページオブジェクトを提供

from .elements import BaseElement, Button, Dropdown, TextBox
from .pages import BasePage, LoginPage

__all__ = [
    "BaseElement",
    "BasePage",
    "Button",
    "Dropdown",
    "LoginPage",
    "TextBox",
]
