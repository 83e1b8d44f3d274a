from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .domain import InstallConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionFailure:
    cause: str


ActionOutcome = Optional[ActionFailure]


@dataclass(frozen=True)
class InstallAction:
    name: str
    run: Callable[[InstallConfig], ActionOutcome]


@dataclass(frozen=True)
class ActionEvent:
    kind: str  # "progress" | "failure" | "success"
    index: int = 0
    total: int = 0
    name: str = ""
    cause: str = ""


@dataclass
class RunResult:
    ok: bool
    completed: list[str] = field(default_factory=list)
    failed_action: str = ""
    cause: str = ""
    log_path: Path | None = None


EventCallback = Callable[[ActionEvent], None]


def _open_log(log_dir: Path | None) -> Path | None:
    out_dir = log_dir or Path.cwd() / "generated" / "logs"
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.warning("Cannot create action log directory %s: %s", out_dir, exc)
        return None
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return out_dir / f"install-{ts}.log"


def _invoke(action: InstallAction, config: InstallConfig) -> ActionOutcome:
    try:
        outcome = action.run(config)
    except Exception as exc:  # an action may fail any way it likes; report it as a failure
        return ActionFailure(str(exc) or exc.__class__.__name__)
    if isinstance(outcome, ActionFailure):
        return outcome
    return None


def run_actions(
    config: InstallConfig,
    actions: list[InstallAction],
    on_event: EventCallback | None = None,
    log_dir: Path | None = None,
) -> RunResult:
    """Run ``actions`` strictly in order, stopping at the first failure.

    A progress event is emitted after each attempted action (including the one
    that fails), followed by exactly one failure or success event.
    """
    total = len(actions)
    log_path = _open_log(log_dir)
    lines = [f"# run_actions disk={config.disk} hostname={config.hostname} total={total}"]
    result = RunResult(ok=True, log_path=log_path)

    for idx, action in enumerate(actions, start=1):
        log.info("[%d/%d] %s", idx, total, action.name)
        failure = _invoke(action, config)
        if on_event:
            on_event(ActionEvent("progress", idx, total, action.name))
        if failure is not None:
            log.error("Action %s failed: %s", action.name, failure.cause)
            lines.append(f"[FAIL] {action.name}: {failure.cause}")
            result.ok = False
            result.failed_action = action.name
            result.cause = failure.cause
            break
        lines.append(f"[OK] {action.name}")
        result.completed.append(action.name)

    if log_path is not None:
        try:
            log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as exc:
            log.warning("Cannot write action log %s: %s", log_path, exc)
            result.log_path = None

    if on_event:
        if result.ok:
            on_event(ActionEvent("success", total, total))
        else:
            on_event(ActionEvent("failure", len(result.completed) + 1, total, result.failed_action, result.cause))
    return result
