from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PermissionBehavior = Literal["allow", "deny"]


class HookInput(BaseModel):
    """JSON object the assistant CLI writes to a hook's stdin."""

    tool_name: str = ""
    tool_input: Dict[str, Any] = Field(default_factory=dict)
    cwd: str = ""
    session_id: str = ""
    hook_event_name: str = ""
    transcript_path: str = ""
    agent_transcript_path: str = ""
    last_assistant_message: str = ""

    model_config = ConfigDict(extra="ignore")


class PermissionDecision(BaseModel):
    behavior: PermissionBehavior

    model_config = ConfigDict(extra="forbid")


class PermissionHookOutput(BaseModel):
    hook_event_name: Literal["PermissionRequest"] = "PermissionRequest"
    decision: PermissionDecision

    model_config = ConfigDict(extra="forbid")

    def to_wire(self) -> Dict[str, Any]:
        return {
            "hookSpecificOutput": {
                "hookEventName": self.hook_event_name,
                "decision": {"behavior": self.decision.behavior},
            }
        }


def permission_output(action: Optional[str]) -> Dict[str, Any]:
    """Map a mailbox response action onto the hook's stdout document.

    "always" grants the request; the terminal records the standing rule.
    """
    behavior: PermissionBehavior = "allow" if action in ("allow", "always") else "deny"
    return PermissionHookOutput(decision=PermissionDecision(behavior=behavior)).to_wire()
