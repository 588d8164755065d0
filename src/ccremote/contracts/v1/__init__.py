from __future__ import annotations

from .hook import HookInput, PermissionBehavior, PermissionDecision, PermissionHookOutput, permission_output
from .prompt import PendingPrompt, PromptKind, ResponseAction, ResponseRecord
from .session import ProjectHistoryEntry, RecentProject, SessionEntry, SessionHistoryEntry, SessionKind

__all__ = [
    "HookInput",
    "PendingPrompt",
    "PermissionBehavior",
    "PermissionDecision",
    "PermissionHookOutput",
    "ProjectHistoryEntry",
    "PromptKind",
    "RecentProject",
    "ResponseAction",
    "ResponseRecord",
    "SessionEntry",
    "SessionHistoryEntry",
    "SessionKind",
    "permission_output",
]
