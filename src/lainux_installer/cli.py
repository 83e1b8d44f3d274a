from __future__ import annotations

import argparse
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path

from . import __version__
from .domain import FILESYSTEMS, SUPPORTED_LOCALES, TIMEZONES, ConfigDraft, validate_draft
from .executor import ActionEvent, run_actions
from .logger import setup_logging
from .phrases import DEFAULT_PHRASES, PhraseError, validate_phrases
from .planner import build_actions
from .probes import DisksResult, ProbeFailure, ProbeName, ProbeOutcome, VirtualizationFacts, run_probe
from .settings import GRAPH_NAMES, Settings, SettingsError, load_settings
from .state import GRAPHS
from .summary import render_summary
from .views import required_phrases


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings(Path(args.settings) if args.settings else None)
    overrides = {}
    if getattr(args, "locale", None):
        overrides["locale"] = args.locale.upper()
    if getattr(args, "graph", None):
        overrides["graph"] = args.graph
    if args.verbose:
        overrides["verbose"] = True
    if args.log_file:
        overrides["log_file"] = args.log_file
    return Settings(**{**asdict(settings), **overrides})


def format_outcome(outcome: ProbeOutcome) -> list[str]:
    if isinstance(outcome, ProbeFailure):
        return [f"FAIL {outcome.probe.value}: {outcome.cause}"]
    if isinstance(outcome, DisksResult):
        if not outcome.disks:
            return ["no usable disks"]
        lines = []
        for disk in outcome.disks:
            if disk.is_sentinel:
                lines.append("no disks (enumeration failed)")
                continue
            name = " ".join(p for p in (disk.vendor, disk.model) if p) or "-"
            flag = "" if disk.selectable else " [not selectable]"
            lines.append(f"{disk.path}\t{disk.size}\t{disk.kind.value}\t{name}\tpartitions={disk.partitions}{flag}")
        return lines
    if is_dataclass(outcome):
        data = asdict(outcome)
        if "facts" in data:
            data = data["facts"]
        return [f"{key}: {'unknown' if value is None else value}" for key, value in data.items()]
    return [str(outcome)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lainux-installer-cli")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", type=str, default="", help="Path to a settings.json file")
    parser.add_argument("--log-file", type=str, default="", help="Write the log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", default=False)
    sub = parser.add_subparsers(dest="cmd", required=True)

    probe = sub.add_parser("probe", help="Run one system probe and print its result")
    probe.add_argument("name", choices=[p.value for p in ProbeName])

    check = sub.add_parser("check-locales", help="Verify every locale has every phrase the wizard needs")
    check.add_argument("--graph", choices=GRAPH_NAMES, default=None)

    install = sub.add_parser("install", help="Run the installation sequence without the interface")
    install.add_argument("--disk", type=str, required=True)
    install.add_argument("--hostname", type=str, default=ConfigDraft().hostname)
    install.add_argument("--username", type=str, default=ConfigDraft().username)
    install.add_argument("--password", type=str, default="")
    install.add_argument("--timezone", type=str, default=ConfigDraft().timezone, choices=TIMEZONES)
    install.add_argument("--filesystem", type=str, default=ConfigDraft().filesystem, choices=FILESYSTEMS)
    install.add_argument("--locale", type=str, default=None, choices=sorted(SUPPORTED_LOCALES))
    install.add_argument("--no-desktop", action="store_true", default=False)
    install.add_argument("--guest-agent", action="store_true", default=False)
    install.add_argument("--ssh-server", action="store_true", default=False)
    install.add_argument("--no-swap", action="store_true", default=False)
    install.add_argument("--execute", action="store_true",
                         help="Run the actions (default prints them as a dry run)")

    tui = sub.add_parser("tui", help="Start the interactive installer")
    tui.add_argument("--locale", type=str, default=None)
    tui.add_argument("--graph", choices=GRAPH_NAMES, default=None)

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except SettingsError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if args.cmd == "tui":
        from .app import run

        return run(settings)

    setup_logging(Path(settings.log_file) if settings.log_file else None, settings.verbose)

    if args.cmd == "probe":
        name = ProbeName(args.name)
        for line in format_outcome(run_probe(name, settings.probe_table())):
            print(line)
        return 0

    if args.cmd == "check-locales":
        return _run_check_locales(settings)

    return _run_install(args, settings)


def _run_check_locales(settings: Settings) -> int:
    graph = GRAPHS[settings.graph]
    try:
        validate_phrases(DEFAULT_PHRASES, required_phrases(graph))
    except PhraseError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    print(f"OK {len(DEFAULT_PHRASES.locales)} locales, {len(required_phrases(graph))} phrases ({graph.name})")
    return 0


def _run_install(args: argparse.Namespace, settings: Settings) -> int:
    draft = ConfigDraft(
        disk=args.disk,
        disk_label=args.disk,
        hostname=args.hostname,
        username=args.username,
        password=args.password,
        timezone=args.timezone,
        filesystem=args.filesystem,
        install_desktop=not args.no_desktop,
        install_guest_agent=args.guest_agent,
        install_ssh_server=args.ssh_server,
        enable_swap=not args.no_swap,
        locale=settings.locale if settings.locale in SUPPORTED_LOCALES else ConfigDraft().locale,
    )
    guest_agent_allowed = True
    if draft.install_guest_agent:
        outcome = run_probe(ProbeName.VIRTUALIZATION, settings.probe_table())
        guest_agent_allowed = isinstance(outcome, VirtualizationFacts) and outcome.is_virtualized
    issues = validate_draft(draft, guest_agent_allowed=guest_agent_allowed)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}", file=sys.stderr)
        return 2

    config = draft.freeze()
    print(render_summary(config), end="")
    actions = build_actions(config)

    if not args.execute:
        for idx, action in enumerate(actions, start=1):
            print(f"{idx:02d}. {action.name}")
        return 0

    def on_event(event: ActionEvent) -> None:
        if event.kind == "progress":
            print(f"[{event.index}/{event.total}] {event.name}")

    result = run_actions(config, actions, on_event=on_event)
    if result.ok:
        print(f"Install OK. Log: {result.log_path}")
        return 0
    print(f"Install FAILED at {result.failed_action}: {result.cause}. Log: {result.log_path}")
    return 4


if __name__ == "__main__":
    raise SystemExit(run_cli())
