from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PromptKind = Literal["permission", "plan", "question", "question-freetext"]
ResponseAction = Literal["allow", "deny", "always"]


class PendingPrompt(BaseModel):
    """A prompt awaiting a decision from the chat side.

    Written by a hook, read (and for multi-select, updated) by the bridge.
    """

    kind: PromptKind = "permission"
    workspace: str = ""
    terminal_handle: Optional[str] = None
    tool_name: Optional[str] = None
    tool_input: Dict[str, Any] = Field(default_factory=dict)
    question_text: Optional[str] = None
    options: List[str] = Field(default_factory=list)
    multi_select: bool = False
    selected_options: List[bool] = Field(default_factory=list)
    is_last: bool = False
    created_at: float = 0.0

    model_config = ConfigDict(extra="ignore")


class ResponseRecord(BaseModel):
    action: ResponseAction
    # 1-based, question permission answers only
    selected_option: Optional[int] = None
    responded_at: float = 0.0

    model_config = ConfigDict(extra="ignore")
