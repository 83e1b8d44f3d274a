from __future__ import annotations

import logging
import sys
from collections import deque
from pathlib import Path
from threading import Thread
from typing import Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Header, ProgressBar, Static

from .domain import InstallConfig
from .engine import WizardEngine
from .executor import ActionEvent, InstallAction, run_actions
from .logger import setup_logging
from .phrases import DEFAULT_PHRASES, PhraseError, PhraseTable
from .planner import build_actions
from .probes import ProbeName, ProbeResult, run_probe
from .settings import Settings, SettingsError, load_settings
from .state import GRAPHS, WizardState
from .summary import save_summary
from .tokens import (
    QUIT,
    ActionProgress,
    ActionsFinished,
    ConfigSaved,
    Effect,
    ExitSession,
    ProbeResultToken,
    RunActions,
    SaveConfig,
    StartProbe,
    Token,
    normalize_key,
)
from .views import View

log = logging.getLogger(__name__)

Emit = Callable[[Token], None]
ActionFactory = Callable[[InstallConfig], list[InstallAction]]


class InstallerApp(App):
    CSS = """
    Screen { background: #0b1118; color: #f6f8fa; }
    Header { background: #103252; color: #f6f8fa; }

    #frame { height: 1fr; padding: 1 2; }

    #title {
        height: 3;
        content-align: center middle;
        border: heavy #2ec27e;
        background: #102133;
        margin-bottom: 1;
        text-style: bold;
    }
    #body {
        border: round #2f6fa2;
        padding: 1;
        height: 1fr;
        overflow: auto;
    }
    #warnings { height: auto; color: #f0c674; padding: 0 1; }
    #progress { margin: 1 0; }
    #hint {
        height: 3;
        border: tall #1f4f7a;
        padding: 0 1;
        content-align: left middle;
    }
    #footer { height: 1; color: #9fc6e8; padding: 0 1; }
    .hidden { display: none; }
    """

    def __init__(
        self,
        settings: Settings | None = None,
        phrases: PhraseTable = DEFAULT_PHRASES,
        probes: dict[ProbeName, Callable[[], ProbeResult]] | None = None,
        actions: ActionFactory | None = None,
        background: bool = True,
    ) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self.engine = WizardEngine(phrases, GRAPHS[self.settings.graph])
        self.probes = probes or self.settings.probe_table()
        self.actions = actions or (lambda config: build_actions(config, delay=self.settings.action_delay))
        self.background = background
        self.state = WizardState()
        self.view: View | None = None
        self._queue: deque[Token] = deque()
        self._draining = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="frame"):
            yield Static("", id="title")
            yield Static("", id="body")
            yield Static("", id="warnings")
            yield ProgressBar(total=1, show_eta=False, id="progress", classes="hidden")
            yield Static("", id="hint")
            yield Static("", id="footer")

    def on_mount(self) -> None:
        self.title = self.engine.phrases.text(self.settings.locale, "title")
        self.state, effects = self.engine.start(self.settings.locale)
        for effect in effects:
            self._perform(effect)
        self._paint()

    def on_key(self, event) -> None:
        token = normalize_key(event.key, event.character)
        if token is None:
            return
        event.stop()
        event.prevent_default()
        self.feed(token)

    def action_quit(self) -> None:
        self.feed(QUIT)

    def feed(self, token: Token) -> None:
        """Apply ``token`` (and anything queued while applying it) then repaint."""
        self._queue.append(token)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self.state, effects = self.engine.transition(self.state, self._queue.popleft())
                for effect in effects:
                    self._perform(effect)
        finally:
            self._draining = False
        if self.is_running:
            self._paint()

    # ── Effects ─────────────────────────────────────────────────────

    def _perform(self, effect: Effect) -> None:
        if isinstance(effect, StartProbe):
            self._spawn(lambda emit: self._probe_job(effect.name, emit))
        elif isinstance(effect, RunActions):
            self._spawn(lambda emit: self._install_job(effect.config, emit))
        elif isinstance(effect, SaveConfig):
            self._spawn(lambda emit: self._save_job(effect.config, emit))
        elif isinstance(effect, ExitSession):
            log.info("Session finished with code %d", effect.code)
            self.exit(return_code=effect.code)

    def _spawn(self, job: Callable[[Emit], None]) -> None:
        if not self.background:
            job(self.feed)
            return

        def emit(token: Token) -> None:
            try:
                self.call_from_thread(self.feed, token)
            except RuntimeError:
                log.debug("Dropped %s: app is no longer running", type(token).__name__)

        Thread(target=job, args=(emit,), daemon=True).start()

    def _probe_job(self, name: ProbeName, emit: Emit) -> None:
        emit(ProbeResultToken(name, run_probe(name, self.probes)))

    def _install_job(self, config: InstallConfig, emit: Emit) -> None:
        def on_event(event: ActionEvent) -> None:
            if event.kind == "progress":
                emit(ActionProgress(event.index, event.total, event.name))
            elif event.kind == "failure":
                emit(ActionsFinished(False, event.name, event.cause))
            else:
                emit(ActionsFinished(True))

        try:
            actions = self.actions(config)
        except Exception as exc:
            log.exception("Building the action list failed")
            emit(ActionsFinished(False, "", str(exc) or type(exc).__name__))
            return
        run_actions(config, actions, on_event=on_event)

    def _save_job(self, config: InstallConfig, emit: Emit) -> None:
        try:
            path = save_summary(config, Path(self.settings.summary_path))
        except OSError as exc:
            log.warning("Saving configuration failed: %s", exc)
            emit(ConfigSaved(error=str(exc)))
            return
        emit(ConfigSaved(path=str(path)))

    # ── Painting ────────────────────────────────────────────────────

    def _paint(self) -> None:
        view = self.engine.render(self.state)
        self.view = view
        self.query_one("#title", Static).update(view.title)

        body = Text()
        for idx, line in enumerate(view.lines):
            if idx:
                body.append("\n")
            if idx == view.highlighted:
                body.append(f"➤ {line}", style="bold #2ec27e")
            elif idx in view.disabled:
                body.append(f"  {line}", style="dim")
            else:
                body.append(f"  {line}")
        self.query_one("#body", Static).update(body)

        warnings = Text("\n".join(f"⚠ {w}" for w in view.warnings))
        self.query_one("#warnings", Static).update(warnings)

        bar = self.query_one("#progress", ProgressBar)
        if view.progress is None:
            bar.add_class("hidden")
        else:
            index, total = view.progress
            bar.remove_class("hidden")
            bar.update(total=max(total, 1), progress=index)

        self.query_one("#hint", Static).update(Text(view.hint))
        self.query_one("#footer", Static).update(Text(view.footer))


def run(settings: Settings | None = None) -> int:
    try:
        settings = settings or load_settings()
        app = InstallerApp(settings)
    except (SettingsError, PhraseError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    setup_logging(Path(settings.log_file) if settings.log_file else None, settings.verbose, stderr=False)
    app.run()
    return app.return_code or 0
