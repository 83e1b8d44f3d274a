from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .domain import InstallConfig
from .probes import ProbeName, ProbeOutcome


# ── Input tokens ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Up:
    pass


@dataclass(frozen=True)
class Down:
    pass


@dataclass(frozen=True)
class Enter:
    pass


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class Toggle:
    letter: str


@dataclass(frozen=True)
class Character:
    ch: str


@dataclass(frozen=True)
class ProbeResultToken:
    name: ProbeName
    result: ProbeOutcome


@dataclass(frozen=True)
class ActionProgress:
    index: int
    total: int
    name: str


@dataclass(frozen=True)
class ActionsFinished:
    ok: bool
    failed_action: str = ""
    cause: str = ""


@dataclass(frozen=True)
class ConfigSaved:
    path: str = ""
    error: str = ""


UP = Up()
DOWN = Down()
ENTER = Enter()
BACK = Back()
QUIT = Quit()
BACKSPACE = Backspace()

Token = Union[
    Up, Down, Enter, Back, Quit, Backspace, Toggle, Character,
    ProbeResultToken, ActionProgress, ActionsFinished, ConfigSaved,
]


# ── Side effects requested by the engine ───────────────────────────

@dataclass(frozen=True)
class StartProbe:
    name: ProbeName


@dataclass(frozen=True)
class RunActions:
    config: InstallConfig


@dataclass(frozen=True)
class SaveConfig:
    config: InstallConfig


@dataclass(frozen=True)
class ExitSession:
    code: int = 0


Effect = Union[StartProbe, RunActions, SaveConfig, ExitSession]


# Cyrillic keys accepted in place of the Latin command letters.
COMMAND_ALIASES = {
    "й": "q",
    "б": "b",
    "д": "l",
    "к": "r",
    "п": "g",
    "ы": "s",
    "ц": "w",
    "в": "d",
}

_KEY_TOKENS = {
    "up": UP,
    "down": DOWN,
    "enter": ENTER,
    "escape": BACK,
    "backspace": BACKSPACE,
    "ctrl+q": QUIT,
}


def normalize_key(key: str, character: str | None = None) -> Token | None:
    """Translate a raw key event into an engine token, or None for keys the engine never uses."""
    token = _KEY_TOKENS.get(key)
    if token is not None:
        return token
    if character and len(character) == 1 and character.isprintable():
        return Character(character)
    return None


def command_letter(ch: str) -> str:
    lowered = ch.lower()
    return COMMAND_ALIASES.get(lowered, lowered)
