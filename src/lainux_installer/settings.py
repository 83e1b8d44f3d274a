from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from functools import partial
from pathlib import Path
from typing import Callable, Mapping

from .domain import DEFAULT_LOCALE
from .probes import (
    DEFAULT_CHECK_HOST,
    DEFAULT_CHECK_PORT,
    DEFAULT_LOOKUP_URL,
    PROBES,
    ProbeName,
    ProbeResult,
    probe_network,
)
from .summary import DEFAULT_SUMMARY_PATH

GRAPH_NAMES = ("terminal", "guided")
ENV_PREFIX = "LAINUX_"


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    locale: str = DEFAULT_LOCALE
    graph: str = "terminal"
    log_file: str = ""
    summary_path: str = str(DEFAULT_SUMMARY_PATH)
    action_delay: float = 0.5
    check_host: str = DEFAULT_CHECK_HOST
    check_port: int = DEFAULT_CHECK_PORT
    lookup_url: str = DEFAULT_LOOKUP_URL
    verbose: bool = False

    def probe_table(self) -> dict[ProbeName, Callable[[], ProbeResult]]:
        table = dict(PROBES)
        table[ProbeName.NETWORK] = partial(
            probe_network, host=self.check_host, port=self.check_port, lookup_url=self.lookup_url
        )
        return table


_FIELD_TYPES = {f.name: f.type for f in fields(Settings)}


def settings_path() -> Path:
    return Path.home() / ".config" / "lainux-installer" / "settings.json"


def locale_from_environment(env: Mapping[str, str]) -> str:
    for key in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = env.get(key, "")
        if value:
            return "RU" if value.lower().startswith("ru") else DEFAULT_LOCALE
    return DEFAULT_LOCALE


def _coerce(name: str, value: object) -> object:
    kind = _FIELD_TYPES[name]
    try:
        if kind == "bool":
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if kind == "int":
            return int(value)  # type: ignore[arg-type]
        if kind == "float":
            return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Invalid value for {name}: {value!r}") from exc
    return str(value)


def validate_settings(settings: Settings) -> list[str]:
    issues: list[str] = []
    if settings.graph not in GRAPH_NAMES:
        issues.append(f"graph must be one of: {', '.join(GRAPH_NAMES)}.")
    if settings.action_delay < 0:
        issues.append("action_delay must not be negative.")
    if not 0 < settings.check_port < 65536:
        issues.append("check_port must be between 1 and 65535.")
    return issues


def load_settings(path: Path | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Defaults, then the JSON settings file, then LAINUX_* environment variables."""
    environ = os.environ if env is None else env
    values: dict[str, object] = {"locale": locale_from_environment(environ)}

    source = path or settings_path()
    if source.exists():
        try:
            raw = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsError(f"Cannot read settings file {source}: {exc}") from exc
        if not isinstance(raw, dict):
            raise SettingsError(f"Settings file {source} must hold a JSON object.")
        values.update({k: _coerce(k, v) for k, v in raw.items() if k in _FIELD_TYPES})

    for name in _FIELD_TYPES:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            values[name] = _coerce(name, environ[key])

    settings = replace(Settings(), **values)
    settings = replace(settings, locale=settings.locale.upper())
    issues = validate_settings(settings)
    if issues:
        raise SettingsError(" ".join(issues))
    return settings
