"""
テストライフサイクル（define_case / LifecycleHooks）のユニットテスト

テスト対象:
  - define_case(): 定義時の優先度検証
  - on_test_start(): テスト項目の開始と優先度・カテゴリのログ
  - on_test_end(): 取り残しステップの後始末・失敗時スクリーンショット・結果ログ
  - on_test_end_async(): 非同期スクリーンショット
"""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest

from conftest import RecordingBackend
from rpharness.core.artifacts import ArtifactsManager
from rpharness.core.errors import ConfigurationError, OrphanedStepWarning
from rpharness.core.lifecycle import CaseDefinition, LifecycleHooks, define_case
from rpharness.core.models import LogLevel, StepStatus
from rpharness.core.priority import Priority


def _make_hooks(backend: RecordingBackend, artifacts: ArtifactsManager | None = None) -> LifecycleHooks:
    return LifecycleHooks(backend, artifacts=artifacts)


def _write_png(path: Path) -> None:
    path.write_bytes(b"\x89PNG\r\n\x1a\n")


# ---------------------------------------------------------------------------
# define_case
# ---------------------------------------------------------------------------

class TestDefineCase:
    """define_case() / CaseDefinition のテスト。"""

    def test_attaches_definition(self) -> None:
        @define_case(priority="Critical", categories=["Login", "Smoke"], description="正常ログイン")
        def test_login():
            pass

        definition = test_login.case_definition
        assert definition.name == "test_login"
        assert definition.priority is Priority.CRITICAL
        assert definition.categories == ("Login", "Smoke")
        assert definition.description == "正常ログイン"

    def test_custom_name(self) -> None:
        @define_case(name="Login works")
        def test_login():
            pass

        assert test_login.case_definition.name == "Login works"
        assert test_login.case_definition.priority is None

    def test_unknown_priority_fails_at_definition(self) -> None:
        """未知の優先度はデコレート時点で ConfigurationError。"""
        with pytest.raises(ConfigurationError):

            @define_case(priority="Urgent")
            def test_something():
                pass

    def test_categories_are_tupled(self) -> None:
        definition = CaseDefinition(name="t", categories=["a"])
        assert definition.categories == ("a",)


# ---------------------------------------------------------------------------
# on_test_start
# ---------------------------------------------------------------------------

class TestOnTestStart:
    """on_test_start() のテスト。"""

    def test_starts_root_item_with_attributes(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(
            CaseDefinition("Login works", "Critical", ("Login", "Smoke"), "正常ログイン"),
        )

        item = backend.started[0]
        assert item["name"] == "Login works"
        assert item["parent"] is None
        assert item["description"] == "正常ログイン"
        assert item["attributes"] == [
            ("priority", "Critical"), ("category", "Login"), ("category", "Smoke"),
        ]
        assert session.root_handle == item["handle"]
        assert session.tracker.root_handle == item["handle"]

    def test_logs_priority_guidance(self, backend: RecordingBackend) -> None:
        """優先度のガイダンスが優先度の色で記録される。"""
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t", Priority.CRITICAL))
        texts = [entry.text for entry in backend.logs_for(session.root_handle)]

        assert any("TEST STARTED: T" in t for t in texts)
        guidance_text = next(t for t in texts if "Must pass" in t)
        assert "#FF0000" in guidance_text
        assert any("CRITICAL" in t and "Priority" in t for t in texts)

    def test_without_priority(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("plain"))
        assert backend.started[0]["attributes"] == []
        assert not any("Priority" in e.text for e in backend.logs_for(session.root_handle))

    def test_sessions_have_separate_trackers(self, backend: RecordingBackend) -> None:
        """テストごとに独立したステップレジストリを持つ。"""
        hooks = _make_hooks(backend)
        first = hooks.on_test_start(CaseDefinition("a"))
        second = hooks.on_test_start(CaseDefinition("b"))
        first.tracker.open("step")
        assert len(first.tracker) == 1
        assert len(second.tracker) == 0

    def test_backend_failure_still_returns_session(self, backend: RecordingBackend) -> None:
        backend.fail_on.add("start_item")
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        assert session.root_handle is None
        assert session.executor.run_step("work", lambda: 1) == 1


# ---------------------------------------------------------------------------
# on_test_end
# ---------------------------------------------------------------------------

class TestOnTestEnd:
    """on_test_end() のテスト。"""

    def test_passed_finishes_root(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        session.executor.run_step("Login", lambda: None)
        hooks.on_test_end(session, StepStatus.PASSED)

        assert backend.finished[-1][0] == session.root_handle
        assert backend.finished[-1][2] is StepStatus.PASSED
        assert session.outcome is StepStatus.PASSED
        texts = [e.text for e in backend.logs_for(session.root_handle)]
        assert any("Test duration" in t for t in texts)
        assert any("Test passed" in t for t in texts)

    def test_pending_steps_are_skipped(self, backend: RecordingBackend) -> None:
        """取り残された 3 ステップは SKIPPED で閉じられ、その後テスト項目が終了する。"""
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        for name in ("a", "b", "c"):
            session.tracker.open(name)

        with pytest.warns(OrphanedStepWarning):
            hooks.on_test_end(session, StepStatus.PASSED)

        assert backend.statuses() == [StepStatus.SKIPPED] * 3 + [StepStatus.PASSED]
        assert len(session.tracker) == 0

    def test_warning_as_error_still_finishes_root(self, backend: RecordingBackend) -> None:
        """OrphanedStepWarning がエラー扱いでも、テスト項目は終了してから送出される。"""
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        session.tracker.open("left open")

        with warnings.catch_warnings():
            warnings.simplefilter("error", OrphanedStepWarning)
            with pytest.raises(OrphanedStepWarning):
                hooks.on_test_end(session, StepStatus.PASSED)

        assert backend.statuses() == [StepStatus.SKIPPED, StepStatus.PASSED]
        assert backend.finished[-1][0] == session.root_handle
        assert session.outcome is StepStatus.PASSED
        assert len(session.tracker) == 0

    def test_pending_outcome_rejected(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        with pytest.raises(ValueError):
            hooks.on_test_end(session, StepStatus.PENDING)

    def test_failure_message_logged(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t", "High"))
        hooks.on_test_end(session, StepStatus.FAILED, "AssertionError: boom")

        entries = backend.logs_for(session.root_handle)
        failed = next(e for e in entries if "Test failed" in e.text)
        assert failed.level is LogLevel.ERROR
        assert "AssertionError: boom" in failed.text
        assert not any(e.level is LogLevel.FATAL for e in entries)

    def test_critical_failure_logs_fatal(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t", "Critical"))
        hooks.on_test_end(session, StepStatus.FAILED)
        fatal = [e for e in backend.logs_for(session.root_handle) if e.level is LogLevel.FATAL]
        assert len(fatal) == 1
        assert "blocks the release" in fatal[0].text

    def test_skipped_logs_warning(self, backend: RecordingBackend) -> None:
        hooks = _make_hooks(backend)
        session = hooks.on_test_start(CaseDefinition("t"))
        hooks.on_test_end(session, StepStatus.SKIPPED, "not supported")
        skipped = next(e for e in backend.logs_for(session.root_handle) if "Test skipped" in e.text)
        assert skipped.level is LogLevel.WARNING
        assert backend.statuses() == [StepStatus.SKIPPED]

    def test_failure_screenshot_attached(
        self, backend: RecordingBackend, artifacts: ArtifactsManager,
    ) -> None:
        """失敗時は capture で保存した画像がテスト項目に添付される。"""
        hooks = _make_hooks(backend, artifacts)
        session = hooks.on_test_start(CaseDefinition("Login works"))
        captured: list[Path] = []

        def capture(path: Path) -> None:
            captured.append(path)
            _write_png(path)

        hooks.on_test_end(session, StepStatus.FAILED, capture=capture)

        assert len(captured) == 1
        assert captured[0].parent == artifacts.run_dir / "screenshots"
        assert captured[0].name.startswith("screenshot_Login-works_")
        attachments = backend.attachments()
        assert len(attachments) == 1
        assert attachments[0].mime_type == "image/png"

    def test_no_screenshot_when_passed(
        self, backend: RecordingBackend, artifacts: ArtifactsManager,
    ) -> None:
        hooks = _make_hooks(backend, artifacts)
        session = hooks.on_test_start(CaseDefinition("t"))
        captured: list[Path] = []
        hooks.on_test_end(session, StepStatus.PASSED, capture=captured.append)
        assert captured == []

    def test_screenshot_disabled(
        self, backend: RecordingBackend, artifacts: ArtifactsManager,
    ) -> None:
        hooks = LifecycleHooks(backend, artifacts=artifacts, screenshot_on_failure=False)
        session = hooks.on_test_start(CaseDefinition("t"))
        captured: list[Path] = []
        hooks.on_test_end(session, StepStatus.FAILED, capture=captured.append)
        assert captured == []

    def test_capture_error_is_not_fatal(
        self, backend: RecordingBackend, artifacts: ArtifactsManager,
    ) -> None:
        """スクリーンショット取得の失敗は警告に留め、テスト項目は終了する。"""
        hooks = _make_hooks(backend, artifacts)
        session = hooks.on_test_start(CaseDefinition("t"))

        def capture(path: Path) -> None:
            raise RuntimeError("browser closed")

        hooks.on_test_end(session, StepStatus.FAILED, capture=capture)

        texts = [e.text for e in backend.logs_for(session.root_handle)]
        assert any("browser closed" in t for t in texts)
        assert backend.attachments() == []
        assert backend.statuses() == [StepStatus.FAILED]


class TestOnTestEndAsync:
    """on_test_end_async() のテスト。"""

    @pytest.mark.asyncio
    async def test_awaits_capture(
        self, backend: RecordingBackend, artifacts: ArtifactsManager,
    ) -> None:
        hooks = _make_hooks(backend, artifacts)
        session = hooks.on_test_start(CaseDefinition("t"))

        async def capture(path: Path) -> None:
            _write_png(path)

        await hooks.on_test_end_async(session, StepStatus.FAILED, "boom", capture=capture)
        assert len(backend.attachments()) == 1
        assert session.outcome is StepStatus.FAILED
