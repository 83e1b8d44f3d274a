from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from .domain import DEFAULT_LOCALE, ConfigDraft, InstallConfig
from .probes import DiskRecord, DisksResult, ProbeName, ProbeOutcome, VirtualizationFacts


class Step(str, Enum):
    WELCOME = "welcome"
    MENU = "menu"
    DISK_SELECT = "disk-select"
    OPTIONS = "options"
    SUMMARY = "summary"
    INSTALLING = "installing"
    INSTALL_FAILED = "install-failed"
    INSTALL_DONE = "install-done"
    VM_INSTALL = "vm-install"
    HARDWARE_INFO = "hardware-info"
    REQUIREMENTS = "requirements"
    CONFIG_SAVE = "config-save"
    DISK_INFO = "disk-info"
    NETWORK_CHECK = "network-check"
    NETWORK_DIAG = "network-diagnostics"
    EXIT_CONFIRM = "exit-confirm"


OPTION_ROWS = (
    "hostname",
    "username",
    "password",
    "timezone",
    "filesystem",
    "locale",
    "desktop",
    "guest_agent",
    "ssh_server",
    "swap",
    "reveal_password",
    "continue",
)

# Rows edited by typing.
TEXT_ROWS = frozenset({"hostname", "username", "password"})

# Option row -> ConfigDraft boolean field.
ROW_TOGGLES = {
    "desktop": "install_desktop",
    "guest_agent": "install_guest_agent",
    "ssh_server": "install_ssh_server",
    "swap": "enable_swap",
    "reveal_password": "reveal_root_password",
}

# Toggle letter -> ConfigDraft boolean field.
TOGGLE_LETTERS = {
    "d": "install_desktop",
    "g": "install_guest_agent",
    "s": "install_ssh_server",
    "w": "enable_swap",
    "r": "reveal_root_password",
}


@dataclass(frozen=True)
class WizardState:
    step: Step = Step.WELCOME
    cursor: int = 0
    menu_cursor: int = 0
    draft: ConfigDraft = field(default_factory=ConfigDraft)
    locale: str = DEFAULT_LOCALE
    pending: frozenset[ProbeName] = frozenset()
    probes: Mapping[ProbeName, ProbeOutcome] = field(default_factory=dict)
    text_buffer: str = ""
    confirmed: InstallConfig | None = None
    progress: tuple[int, int, str] | None = None
    failure: tuple[str, str] | None = None
    saved_path: str | None = None
    save_error: str | None = None
    exited: bool = False


@dataclass(frozen=True)
class StepGraph:
    """Which steps a presentation target offers and where ``back`` leads from each."""

    name: str
    hub: Step
    welcome_next: Step
    back: Mapping[Step, Step]
    menu: tuple[tuple[str, Step], ...] = ()

    @property
    def steps(self) -> frozenset[Step]:
        reachable = {Step.WELCOME, self.hub, self.welcome_next, Step.EXIT_CONFIRM}
        reachable.update(target for _, target in self.menu)
        reachable.update(self.back)
        reachable.update(self.back.values())
        if Step.DISK_SELECT in reachable:
            reachable.update(
                {Step.OPTIONS, Step.SUMMARY, Step.INSTALLING, Step.INSTALL_FAILED, Step.INSTALL_DONE}
            )
        return frozenset(reachable)


TERMINAL_GRAPH = StepGraph(
    name="terminal",
    hub=Step.MENU,
    welcome_next=Step.MENU,
    menu=(
        ("menu_install_hardware", Step.DISK_SELECT),
        ("menu_install_vm", Step.VM_INSTALL),
        ("menu_hardware_info", Step.HARDWARE_INFO),
        ("menu_requirements", Step.REQUIREMENTS),
        ("menu_config", Step.CONFIG_SAVE),
        ("menu_disk_info", Step.DISK_INFO),
        ("menu_network_check", Step.NETWORK_CHECK),
        ("menu_network_diag", Step.NETWORK_DIAG),
        ("menu_exit", Step.EXIT_CONFIRM),
    ),
    back={
        Step.WELCOME: Step.EXIT_CONFIRM,
        Step.MENU: Step.EXIT_CONFIRM,
        Step.DISK_SELECT: Step.MENU,
        Step.OPTIONS: Step.DISK_SELECT,
        Step.SUMMARY: Step.OPTIONS,
        Step.INSTALL_FAILED: Step.SUMMARY,
        Step.VM_INSTALL: Step.MENU,
        Step.HARDWARE_INFO: Step.MENU,
        Step.REQUIREMENTS: Step.MENU,
        Step.CONFIG_SAVE: Step.MENU,
        Step.DISK_INFO: Step.MENU,
        Step.NETWORK_CHECK: Step.MENU,
        Step.NETWORK_DIAG: Step.MENU,
        Step.EXIT_CONFIRM: Step.MENU,
    },
)

GUIDED_GRAPH = StepGraph(
    name="guided",
    hub=Step.WELCOME,
    welcome_next=Step.DISK_SELECT,
    back={
        Step.WELCOME: Step.EXIT_CONFIRM,
        Step.DISK_SELECT: Step.WELCOME,
        Step.OPTIONS: Step.DISK_SELECT,
        Step.SUMMARY: Step.OPTIONS,
        Step.INSTALL_FAILED: Step.SUMMARY,
        Step.EXIT_CONFIRM: Step.WELCOME,
    },
)

GRAPHS = {graph.name: graph for graph in (TERMINAL_GRAPH, GUIDED_GRAPH)}


def listed_disks(state: WizardState) -> tuple[DiskRecord, ...]:
    """Real disk records from the last disk probe; sentinel and failures yield nothing."""
    outcome = state.probes.get(ProbeName.DISKS)
    if not isinstance(outcome, DisksResult):
        return ()
    return tuple(d for d in outcome.disks if not d.is_sentinel)


def is_virtualized(state: WizardState) -> bool:
    outcome = state.probes.get(ProbeName.VIRTUALIZATION)
    return isinstance(outcome, VirtualizationFacts) and outcome.is_virtualized
