# コアモジュール
# ステップレジストリ、ステップ実行、レポート用ロガー、優先度分類、テストライフサイクル、
# 成果物管理、ローカルレポート生成を提供

from .errors import (
    ConfigurationError,
    HarnessError,
    MissingAttachmentError,
    OrphanedStepWarning,
    ReportingTransportError,
)
from .models import Attachment, LogLevel, Step, StepStatus
from .priority import Priority, PriorityDisplay, display_attributes, guidance
from .tracker import StepTracker
from .logger import HarnessLogger
from .executor import ScopedStep, StepExecutor
from .lifecycle import CaseDefinition, HarnessSession, LifecycleHooks, define_case
from .artifacts import ArtifactsManager, mask_secrets
from .reporting import Reporter

__all__ = [
    "ArtifactsManager",
    "Attachment",
    "CaseDefinition",
    "ConfigurationError",
    "HarnessError",
    "HarnessLogger",
    "HarnessSession",
    "LifecycleHooks",
    "LogLevel",
    "MissingAttachmentError",
    "OrphanedStepWarning",
    "Priority",
    "PriorityDisplay",
    "Reporter",
    "ReportingTransportError",
    "ScopedStep",
    "Step",
    "StepExecutor",
    "StepStatus",
    "StepTracker",
    "define_case",
    "display_attributes",
    "guidance",
    "mask_secrets",
]
