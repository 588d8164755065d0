"""
Inline-button payloads.

Telegram limits callback_data to 64 bytes, so payloads are compact
colon-separated strings:

    new:<project>               start a session for a project (name may contain ':')
    perm:<prompt>:<action>      permission / plan decision (allow, deny, always)
    opt:<prompt>:<n>            pick (or toggle, for multi-select) option n
    opt-submit:<prompt>         submit a multi-select question
    qperm:<prompt>:<n>          pick option n of a question that also needs permission

Option numbers are 1-based on the wire. Payloads are parsed once, here, into
one of the dataclasses below; anything else raises CallbackParseError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

PERMISSION_ACTIONS = ("allow", "deny", "always")


class CallbackParseError(ValueError):
    pass


@dataclass(frozen=True)
class NewProjectCallback:
    project: str

    def encode(self) -> str:
        return f"new:{self.project}"


@dataclass(frozen=True)
class PermissionCallback:
    prompt_id: str
    action: str

    def encode(self) -> str:
        return f"perm:{self.prompt_id}:{self.action}"


@dataclass(frozen=True)
class OptionCallback:
    prompt_id: str
    index: int  # 0-based

    def encode(self) -> str:
        return f"opt:{self.prompt_id}:{self.index + 1}"


@dataclass(frozen=True)
class OptionSubmitCallback:
    prompt_id: str

    def encode(self) -> str:
        return f"opt-submit:{self.prompt_id}"


@dataclass(frozen=True)
class QuestionPermissionCallback:
    prompt_id: str
    index: int  # 0-based

    def encode(self) -> str:
        return f"qperm:{self.prompt_id}:{self.index + 1}"


Callback = Union[
    NewProjectCallback,
    PermissionCallback,
    OptionCallback,
    OptionSubmitCallback,
    QuestionPermissionCallback,
]


def _option_index(raw: str, data: str) -> int:
    try:
        n = int(raw)
    except ValueError:
        raise CallbackParseError(f"option number is not an integer: {data!r}") from None
    if n < 1:
        raise CallbackParseError(f"option numbers start at 1: {data!r}")
    return n - 1


def parse_callback(data: str) -> Callback:
    if not data:
        raise CallbackParseError("empty callback data")

    kind, _, rest = data.partition(":")

    if kind == "new":
        if not rest:
            raise CallbackParseError("new: without a project name")
        return NewProjectCallback(project=rest)

    if kind == "opt-submit":
        prompt_id = rest.split(":", 1)[0]
        if not prompt_id:
            raise CallbackParseError("opt-submit: without a prompt id")
        return OptionSubmitCallback(prompt_id=prompt_id)

    if kind not in ("perm", "opt", "qperm"):
        raise CallbackParseError(f"unknown callback type: {data!r}")

    parts = rest.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise CallbackParseError(f"malformed callback: {data!r}")
    prompt_id, arg = parts[0], parts[1]

    if kind == "perm":
        if arg not in PERMISSION_ACTIONS:
            raise CallbackParseError(f"unknown permission action: {data!r}")
        return PermissionCallback(prompt_id=prompt_id, action=arg)
    if kind == "opt":
        return OptionCallback(prompt_id=prompt_id, index=_option_index(arg, data))
    return QuestionPermissionCallback(prompt_id=prompt_id, index=_option_index(arg, data))
