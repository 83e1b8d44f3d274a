from __future__ import annotations

import logging
import string
from dataclasses import replace
from typing import Callable

from .domain import (
    FILESYSTEMS,
    HOSTNAME_MAX,
    PASSWORD_MAX,
    SUPPORTED_LOCALES,
    TIMEZONES,
    USERNAME_MAX,
    ConfigDraft,
    next_choice,
    validate_draft,
)
from .phrases import DEFAULT_PHRASES, PhraseTable, validate_phrases
from .probes import DisksResult, ProbeName
from .state import (
    OPTION_ROWS,
    ROW_TOGGLES,
    TERMINAL_GRAPH,
    TEXT_ROWS,
    TOGGLE_LETTERS,
    Step,
    StepGraph,
    WizardState,
    is_virtualized,
    listed_disks,
)
from .tokens import (
    ActionProgress,
    ActionsFinished,
    Back,
    Backspace,
    Character,
    ConfigSaved,
    Down,
    Effect,
    Enter,
    ExitSession,
    ProbeResultToken,
    Quit,
    RunActions,
    SaveConfig,
    StartProbe,
    Toggle,
    Token,
    Up,
    command_letter,
)
from .views import View, render_view, required_phrases

log = logging.getLogger(__name__)

Transition = tuple[WizardState, tuple[Effect, ...]]

EXIT_BUFFER_MAX = 10
HOSTNAME_CHARS = frozenset(string.ascii_letters + string.digits + "-")
USERNAME_CHARS = frozenset(string.ascii_lowercase + string.digits + "_-")

# Text row -> (accepted character, maximum length).
TEXT_LIMITS: dict[str, tuple[Callable[[str], bool], int]] = {
    "hostname": (HOSTNAME_CHARS.__contains__, HOSTNAME_MAX),
    "username": (USERNAME_CHARS.__contains__, USERNAME_MAX),
    "password": (lambda ch: ch.isprintable() and not ch.isspace(), PASSWORD_MAX),
}

# Probes (re)started whenever a step is entered.
ENTRY_PROBES: dict[Step, tuple[ProbeName, ...]] = {
    Step.DISK_SELECT: (ProbeName.DISKS,),
    Step.DISK_INFO: (ProbeName.DISKS,),
    Step.OPTIONS: (ProbeName.VIRTUALIZATION,),
    Step.VM_INSTALL: (ProbeName.HARDWARE,),
    Step.HARDWARE_INFO: (ProbeName.HARDWARE,),
    Step.REQUIREMENTS: (ProbeName.HARDWARE,),
    Step.NETWORK_CHECK: (ProbeName.NETWORK,),
    Step.NETWORK_DIAG: (ProbeName.INTERFACE,),
}

# Disk lists are never reused across visits.
FRESH_ON_ENTRY = frozenset({Step.DISK_SELECT, Step.DISK_INFO})

STARTUP_PROBES = (ProbeName.VIRTUALIZATION, ProbeName.HARDWARE, ProbeName.NETWORK)

INFO_STEPS = frozenset({
    Step.VM_INSTALL,
    Step.HARDWARE_INFO,
    Step.REQUIREMENTS,
    Step.CONFIG_SAVE,
    Step.DISK_INFO,
    Step.NETWORK_CHECK,
    Step.NETWORK_DIAG,
})

NO_EFFECTS: tuple[Effect, ...] = ()


def _update(state: WizardState, **changes: object) -> WizardState:
    if all(getattr(state, key) == value for key, value in changes.items()):
        return state
    return replace(state, **changes)


class WizardEngine:
    """Finite-state controller for the installer wizard.

    ``transition`` and ``render`` are pure: they never perform I/O and never
    mutate the state they are given. Anything that needs the outside world is
    returned as an effect for the caller to run, whose outcome comes back as a
    token.
    """

    def __init__(self, phrases: PhraseTable = DEFAULT_PHRASES, graph: StepGraph = TERMINAL_GRAPH) -> None:
        validate_phrases(phrases, required_phrases(graph))
        self.phrases = phrases
        self.graph = graph
        self._handlers: dict[Step, Callable[[WizardState, Token], Transition]] = {
            Step.WELCOME: self._on_welcome,
            Step.MENU: self._on_menu,
            Step.DISK_SELECT: self._on_disk_select,
            Step.OPTIONS: self._on_options,
            Step.SUMMARY: self._on_summary,
            Step.INSTALL_FAILED: self._on_install_failed,
            Step.INSTALL_DONE: self._on_install_done,
            Step.EXIT_CONFIRM: self._on_exit_confirm,
        }
        for step in INFO_STEPS:
            self._handlers[step] = self._on_info

    def required_phrases(self) -> set[str]:
        return required_phrases(self.graph)

    def start(self, locale: str | None = None) -> Transition:
        code = locale if locale in self.phrases.locales else self.phrases.default_locale
        draft_locale = code if code in SUPPORTED_LOCALES else ConfigDraft().locale
        state = WizardState(step=Step.WELCOME, draft=ConfigDraft(locale=draft_locale), locale=code)
        effects: list[Effect] = []
        for name in STARTUP_PROBES:
            state, requested = self._request(state, name)
            effects.extend(requested)
        log.info("Wizard started (graph=%s, locale=%s)", self.graph.name, code)
        return state, tuple(effects)

    def render(self, state: WizardState) -> View:
        return render_view(state, self.phrases, self.graph)

    def transition(self, state: WizardState, token: Token) -> Transition:
        if state.exited:
            return state, NO_EFFECTS
        if isinstance(token, ProbeResultToken):
            return self._apply_probe(state, token), NO_EFFECTS
        if isinstance(token, (ActionProgress, ActionsFinished)):
            return self._apply_runner(state, token), NO_EFFECTS
        if isinstance(token, ConfigSaved):
            return _update(state, saved_path=token.path or None, save_error=token.error or None), NO_EFFECTS
        handler = self._handlers.get(state.step)
        if handler is None:
            return state, NO_EFFECTS
        return handler(state, token)

    # ── Helpers ─────────────────────────────────────────────────────

    def _request(self, state: WizardState, name: ProbeName, refresh: bool = True) -> Transition:
        if name in state.pending:
            return state, NO_EFFECTS
        if not refresh and name in state.probes:
            return state, NO_EFFECTS
        return replace(state, pending=state.pending | {name}), (StartProbe(name),)

    def _goto(self, state: WizardState, step: Step, **changes: object) -> Transition:
        changes.setdefault("cursor", 0)
        if step is Step.EXIT_CONFIRM:
            changes["text_buffer"] = ""
        if step is Step.CONFIG_SAVE:
            changes.update(saved_path=None, save_error=None)
        if step in FRESH_ON_ENTRY and ProbeName.DISKS in state.probes:
            changes["probes"] = {k: v for k, v in state.probes.items() if k is not ProbeName.DISKS}
        state = replace(state, step=step, **changes)

        effects: list[Effect] = []
        for name in ENTRY_PROBES.get(step, ()):
            state, requested = self._request(state, name, refresh=step is not Step.OPTIONS)
            effects.extend(requested)
        if step is Step.CONFIG_SAVE:
            effects.append(SaveConfig(state.draft.freeze()))
        return state, tuple(effects)

    def _go_back(self, state: WizardState) -> Transition:
        target = self.graph.back.get(state.step)
        if target is None:
            return state, NO_EFFECTS
        return self._goto(state, target)

    def _common(self, state: WizardState, token: Token, letter: str | None) -> Transition | None:
        """Back and quit handling shared by every navigable step."""
        if isinstance(token, Back) or letter == "b":
            return self._go_back(state)
        if isinstance(token, Quit) or letter == "q":
            return self._goto(state, Step.EXIT_CONFIRM)
        return None

    def _toggle_locale(self, state: WizardState) -> Transition:
        locales = self.phrases.locales
        return _update(state, locale=next_choice(locales, state.locale)), NO_EFFECTS

    def _toggle(self, state: WizardState, field_name: str) -> Transition:
        if field_name == "install_guest_agent" and not is_virtualized(state):
            return state, NO_EFFECTS
        current = getattr(state.draft, field_name)
        return replace(state, draft=replace(state.draft, **{field_name: not current})), NO_EFFECTS

    @staticmethod
    def _letter(token: Token) -> str | None:
        if isinstance(token, Character):
            return command_letter(token.ch)
        if isinstance(token, Toggle):
            return command_letter(token.letter)
        return None

    # ── Message tokens ──────────────────────────────────────────────

    def _apply_probe(self, state: WizardState, token: ProbeResultToken) -> WizardState:
        probes = {**state.probes, token.name: token.result}
        changes: dict[str, object] = {"probes": probes, "pending": state.pending - {token.name}}

        if token.name is ProbeName.VIRTUALIZATION and state.confirmed is None:
            staged = replace(state, probes=probes)
            if state.draft.install_guest_agent and not is_virtualized(staged):
                log.info("Virtualization no longer detected; clearing guest agent option")
                changes["draft"] = replace(state.draft, install_guest_agent=False)

        if token.name is ProbeName.DISKS and state.step is Step.DISK_SELECT and isinstance(token.result, DisksResult):
            count = len([d for d in token.result.disks if not d.is_sentinel])
            changes["cursor"] = min(state.cursor, max(0, count - 1))

        return replace(state, **changes)

    def _apply_runner(self, state: WizardState, token: ActionProgress | ActionsFinished) -> WizardState:
        if state.step is not Step.INSTALLING:
            return state
        if isinstance(token, ActionProgress):
            return replace(state, progress=(token.index, token.total, token.name))
        if token.ok:
            log.info("Installation finished successfully")
            return replace(state, step=Step.INSTALL_DONE, cursor=0)
        log.warning("Installation failed at %s: %s", token.failed_action, token.cause)
        return replace(state, step=Step.INSTALL_FAILED, cursor=0, failure=(token.failed_action, token.cause))

    # ── Step handlers ───────────────────────────────────────────────

    def _on_welcome(self, state: WizardState, token: Token) -> Transition:
        letter = self._letter(token)
        if isinstance(token, Enter):
            return self._goto(state, self.graph.welcome_next)
        if letter == "l" and self.graph.hub is Step.WELCOME:
            return self._toggle_locale(state)
        if isinstance(token, Back) or isinstance(token, Quit) or letter == "q":
            return self._goto(state, Step.EXIT_CONFIRM)
        return state, NO_EFFECTS

    def _on_menu(self, state: WizardState, token: Token) -> Transition:
        count = len(self.graph.menu)
        if count and isinstance(token, Up):
            return _update(state, menu_cursor=(state.menu_cursor - 1) % count), NO_EFFECTS
        if count and isinstance(token, Down):
            return _update(state, menu_cursor=(state.menu_cursor + 1) % count), NO_EFFECTS
        if count and isinstance(token, Enter):
            _, target = self.graph.menu[state.menu_cursor % count]
            return self._goto(state, target)
        letter = self._letter(token)
        if letter == "l":
            return self._toggle_locale(state)
        if isinstance(token, Back) or isinstance(token, Quit) or letter == "q":
            return self._goto(state, Step.EXIT_CONFIRM)
        return state, NO_EFFECTS

    def _on_disk_select(self, state: WizardState, token: Token) -> Transition:
        disks = listed_disks(state)
        if isinstance(token, Up):
            if not disks:
                return state, NO_EFFECTS
            return _update(state, cursor=max(0, state.cursor - 1)), NO_EFFECTS
        if isinstance(token, Down):
            if not disks:
                return state, NO_EFFECTS
            return _update(state, cursor=min(len(disks) - 1, state.cursor + 1)), NO_EFFECTS
        if isinstance(token, Enter):
            if not 0 <= state.cursor < len(disks):
                return state, NO_EFFECTS
            record = disks[state.cursor]
            if not record.selectable:
                return state, NO_EFFECTS
            draft = replace(state.draft, disk=record.path, disk_label=record.label)
            log.info("Target disk selected: %s", record.path)
            return self._goto(state, Step.OPTIONS, draft=draft)

        letter = self._letter(token)
        if letter == "r" and ProbeName.DISKS not in state.pending:
            probes = {k: v for k, v in state.probes.items() if k is not ProbeName.DISKS}
            return self._request(replace(state, probes=probes, cursor=0), ProbeName.DISKS)
        return self._common(state, token, letter) or (state, NO_EFFECTS)

    def _on_options(self, state: WizardState, token: Token) -> Transition:
        row = OPTION_ROWS[min(state.cursor, len(OPTION_ROWS) - 1)]
        draft = state.draft

        if isinstance(token, Up):
            return _update(state, cursor=max(0, state.cursor - 1)), NO_EFFECTS
        if isinstance(token, Down):
            return _update(state, cursor=min(len(OPTION_ROWS) - 1, state.cursor + 1)), NO_EFFECTS

        if row in TEXT_ROWS and isinstance(token, Character):
            current = getattr(draft, row)
            allowed, limit = TEXT_LIMITS[row]
            if not allowed(token.ch) or len(current) >= limit:
                return state, NO_EFFECTS
            return replace(state, draft=replace(draft, **{row: current + token.ch})), NO_EFFECTS
        if isinstance(token, Backspace):
            if row not in TEXT_ROWS or not getattr(draft, row):
                return state, NO_EFFECTS
            return replace(state, draft=replace(draft, **{row: getattr(draft, row)[:-1]})), NO_EFFECTS

        if isinstance(token, Enter):
            return self._on_options_enter(state, row)

        letter = self._letter(token)
        if letter in TOGGLE_LETTERS:
            return self._toggle(state, TOGGLE_LETTERS[letter])
        if isinstance(token, Toggle):
            return state, NO_EFFECTS
        return self._common(state, token, letter) or (state, NO_EFFECTS)

    def _on_options_enter(self, state: WizardState, row: str) -> Transition:
        draft = state.draft
        if row in TEXT_ROWS:
            return _update(state, cursor=state.cursor + 1), NO_EFFECTS
        if row == "timezone":
            return replace(state, draft=replace(draft, timezone=next_choice(TIMEZONES, draft.timezone))), NO_EFFECTS
        if row == "filesystem":
            return replace(state, draft=replace(draft, filesystem=next_choice(FILESYSTEMS, draft.filesystem))), NO_EFFECTS
        if row == "locale":
            locale = next_choice(tuple(SUPPORTED_LOCALES), draft.locale)
            return replace(state, draft=replace(draft, locale=locale)), NO_EFFECTS
        if row in ROW_TOGGLES:
            return self._toggle(state, ROW_TOGGLES[row])
        issues = validate_draft(draft, guest_agent_allowed=is_virtualized(state))
        if issues:
            log.debug("Options not accepted: %s", "; ".join(issues))
            return state, NO_EFFECTS
        return self._goto(state, Step.SUMMARY)

    def _on_summary(self, state: WizardState, token: Token) -> Transition:
        if isinstance(token, Enter):
            issues = validate_draft(state.draft, guest_agent_allowed=is_virtualized(state))
            if issues:
                log.debug("Summary not confirmed: %s", "; ".join(issues))
                return state, NO_EFFECTS
            config = state.draft.freeze()
            log.info("Configuration confirmed for %s", config.disk)
            confirmed = replace(state, step=Step.INSTALLING, cursor=0, confirmed=config, progress=None, failure=None)
            return confirmed, (RunActions(config),)
        return self._common(state, token, self._letter(token)) or (state, NO_EFFECTS)

    def _on_install_failed(self, state: WizardState, token: Token) -> Transition:
        if isinstance(token, Enter) and state.confirmed is not None:
            log.info("Retrying installation from the first action")
            retry = replace(state, step=Step.INSTALLING, progress=None, failure=None)
            return retry, (RunActions(state.confirmed),)
        letter = self._letter(token)
        if isinstance(token, Back) or letter == "b":
            return self._goto(state, Step.SUMMARY, confirmed=None, failure=None, progress=None)
        if isinstance(token, Quit) or letter == "q":
            return self._goto(state, Step.EXIT_CONFIRM, confirmed=None, failure=None, progress=None)
        return state, NO_EFFECTS

    def _on_install_done(self, state: WizardState, token: Token) -> Transition:
        if isinstance(token, Enter):
            return replace(state, exited=True), (ExitSession(0),)
        return state, NO_EFFECTS

    def _on_info(self, state: WizardState, token: Token) -> Transition:
        letter = self._letter(token)
        if isinstance(token, Enter) or letter == "r":
            effects: list[Effect] = []
            for name in ENTRY_PROBES.get(state.step, ()):
                if name is ProbeName.DISKS and name not in state.pending:
                    state = replace(state, probes={k: v for k, v in state.probes.items() if k is not name})
                state, requested = self._request(state, name)
                effects.extend(requested)
            return state, tuple(effects)
        return self._common(state, token, letter) or (state, NO_EFFECTS)

    def _on_exit_confirm(self, state: WizardState, token: Token) -> Transition:
        if isinstance(token, Character):
            buffer = state.text_buffer + token.ch.upper()
            if len(buffer) > EXIT_BUFFER_MAX:
                return state, NO_EFFECTS
            return replace(state, text_buffer=buffer), NO_EFFECTS
        if isinstance(token, Backspace):
            if not state.text_buffer:
                return state, NO_EFFECTS
            return replace(state, text_buffer=state.text_buffer[:-1]), NO_EFFECTS
        if isinstance(token, Enter):
            phrase = self.phrases.text(state.locale, "exit_phrase").upper()
            if state.text_buffer != phrase:
                return state, NO_EFFECTS
            log.info("Exit confirmed by operator")
            return replace(state, exited=True), (ExitSession(0),)
        if isinstance(token, Back):
            return self._go_back(state)
        return state, NO_EFFECTS
