# finbot/services/intents.py
"""
Inbound chat events -> typed intents. Stateless.

Button payloads use the `verb:arg[:arg]` callback_data format:

    menu:main  menu:add  menu:balance  menu:recent  menu:settings  link:start
    mode:manual  mode:nlp
    type:<income|expense>   cat:<type>:<key>   date:<today|yesterday|custom>
    confirm:<save|edit|cancel>
    multi:confirm:<n>  multi:skip:<n>  multi:cancel     (n is 1-based)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

COMMANDS = ("start", "help", "cancel", "menu")


class Action(str, Enum):
    MAIN_MENU = "menu:main"
    ADD_TRANSACTION = "menu:add"
    VIEW_BALANCE = "menu:balance"
    VIEW_RECENT = "menu:recent"
    SETTINGS = "menu:settings"
    LINK_ACCOUNT = "link:start"
    MODE_MANUAL = "mode:manual"
    MODE_NLP = "mode:nlp"
    PICK_TYPE = "type"
    PICK_CATEGORY = "cat"
    PICK_DATE = "date"
    CONFIRM_SAVE = "confirm:save"
    CONFIRM_EDIT = "confirm:edit"
    CONFIRM_CANCEL = "confirm:cancel"
    MULTI_CONFIRM = "multi:confirm"
    MULTI_SKIP = "multi:skip"
    MULTI_CANCEL = "multi:cancel"


# actions that only make sense inside a given flow
MANUAL_ACTIONS = frozenset({
    Action.PICK_TYPE, Action.PICK_CATEGORY, Action.PICK_DATE,
    Action.CONFIRM_SAVE, Action.CONFIRM_EDIT, Action.CONFIRM_CANCEL,
})
NLP_ACTIONS = frozenset({Action.MULTI_CONFIRM, Action.MULTI_SKIP, Action.MULTI_CANCEL})

_FIXED = {
    a.value: a for a in Action
    if ":" in a.value and a not in (Action.MULTI_CONFIRM, Action.MULTI_SKIP)
}


@dataclass(frozen=True)
class CommandIntent:
    name: str


@dataclass(frozen=True)
class ButtonIntent:
    action: Action
    value: str | None = None
    extra: str | None = None
    index: int | None = None


@dataclass(frozen=True)
class TextIntent:
    text: str


@dataclass(frozen=True)
class UnknownIntent:
    raw: str


Intent = Union[CommandIntent, ButtonIntent, TextIntent, UnknownIntent]


@dataclass(frozen=True)
class ChatUser:
    telegram_id: int
    chat_id: int
    first_name: str | None = None
    username: str | None = None


@dataclass(frozen=True)
class Event:
    conversation_id: str
    user: ChatUser
    intent: Intent


def button(action: Action, *args: object) -> str:
    """callback_data for a button; inverse of normalize_callback."""
    return ":".join([action.value, *(str(a) for a in args)])


def normalize_callback(data: str | None) -> Intent:
    raw = (data or "").strip()
    if raw in _FIXED:
        return ButtonIntent(_FIXED[raw])

    parts = raw.split(":")
    head, args = parts[0], parts[1:]
    if head == "type" and len(args) == 1:
        return ButtonIntent(Action.PICK_TYPE, value=args[0])
    if head == "cat" and len(args) == 2:
        return ButtonIntent(Action.PICK_CATEGORY, value=args[1], extra=args[0])
    if head == "date" and len(args) == 1:
        return ButtonIntent(Action.PICK_DATE, value=args[0])
    if head == "multi" and len(args) == 2 and args[1].isdigit():
        action = {"confirm": Action.MULTI_CONFIRM, "skip": Action.MULTI_SKIP}.get(args[0])
        if action is not None:
            return ButtonIntent(action, index=int(args[1]))
    return UnknownIntent(raw)


def normalize_message(text: str | None) -> Intent:
    t = (text or "").strip()
    if t.startswith("/"):
        # "/start@my_bot payload" -> "start"
        name = t[1:].split(maxsplit=1)[0].split("@", 1)[0].lower() if len(t) > 1 else ""
        if name in COMMANDS:
            return CommandIntent(name)
        return UnknownIntent(t)
    if t.lower() == "cancel":
        return CommandIntent("cancel")
    return TextIntent(t)
