from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping

from .domain import SUPPORTED_LOCALES, validate_hostname, validate_username
from .phrases import PhraseTable
from .probes import (
    DiskRecord,
    HardwareFacts,
    InterfaceFacts,
    NetworkStatus,
    ProbeFailure,
    ProbeName,
    VirtualizationFacts,
)
from .state import OPTION_ROWS, Step, StepGraph, WizardState, is_virtualized, listed_disks

MIN_RAM_MB = 1024
MIN_CORES = 2
MIN_TMP_MB = 2048


@dataclass(frozen=True)
class View:
    """Locale-resolved projection of one wizard state, ready to paint."""

    step: Step
    title: str
    lines: tuple[str, ...] = ()
    highlighted: int | None = None
    warnings: tuple[str, ...] = ()
    hint: str = ""
    footer: str = ""
    progress: tuple[int, int] | None = None
    disabled: frozenset[int] = frozenset()


COMMON_PHRASES = {"title", "version_line", "unknown", "no_data", "scanning", "value_on", "value_off"}

_DISK_PHRASES = {"disk_none", "disk_probe_failed", "disk_removable", "disk_partitions"}

STEP_PHRASES: dict[Step, set[str]] = {
    Step.WELCOME: {"welcome_title", "welcome_body", "welcome_start", "welcome_hint", "menu_language"},
    Step.MENU: {"menu_language", "menu_hint", "hw_arch", "hw_kernel"},
    Step.DISK_SELECT: {"disk_title", "disk_warning_erase", "disk_hint"} | _DISK_PHRASES,
    Step.OPTIONS: {
        "options_title",
        "options_hostname",
        "options_username",
        "options_password",
        "options_timezone",
        "options_filesystem",
        "options_locale",
        "options_desktop",
        "options_guest_agent",
        "options_ssh_server",
        "options_swap",
        "options_reveal_password",
        "options_continue",
        "options_guest_agent_unavailable",
        "options_guest_agent_pending",
        "options_invalid_hostname",
        "options_invalid_username",
        "options_password_required",
        "options_hint",
    },
    Step.SUMMARY: {
        "summary_title",
        "summary_disk",
        "summary_services",
        "summary_warning",
        "summary_hint",
        "options_hostname",
        "options_username",
        "options_password",
        "options_timezone",
        "options_filesystem",
        "options_locale",
        "options_desktop",
        "options_guest_agent",
        "options_ssh_server",
        "options_swap",
        "options_reveal_password",
    },
    Step.INSTALLING: {"install_title", "install_preparing"},
    Step.INSTALL_FAILED: {"install_failed_title", "install_failed_action", "install_failed_hint"},
    Step.INSTALL_DONE: {"install_done_title", "install_done_body", "install_done_hint"},
    Step.VM_INSTALL: {"vm_title", "vm_requirements", "vm_kvm_available", "vm_kvm_missing", "vm_missing_tools", "hint_continue"},
    Step.HARDWARE_INFO: {
        "hw_title",
        "hw_overview",
        "hw_hostname",
        "hw_arch",
        "hw_kernel",
        "hw_cpu",
        "hw_cores",
        "hw_memory",
        "hw_graphics",
        "hw_advanced",
        "hw_virt",
        "hw_virt_supported",
        "hw_virt_unavailable",
        "hw_firmware_uefi",
        "hw_firmware_bios",
        "hw_uptime",
        "hw_load",
        "hint_continue",
    },
    Step.REQUIREMENTS: {
        "req_title",
        "req_ram",
        "req_cores",
        "req_tmp",
        "req_ram_warning",
        "req_cpu_warning",
        "req_disk_warning",
        "req_missing_tools",
        "req_meets",
        "req_may_not_perform",
        "hint_continue",
    },
    Step.CONFIG_SAVE: {"config_title", "config_saving", "config_saved", "config_save_failed", "hint_continue"},
    Step.DISK_INFO: {"diskinfo_title", "hint_continue"} | _DISK_PHRASES,
    Step.NETWORK_CHECK: {"net_title", "net_checking", "net_connected", "net_offline", "net_public_ip", "net_hint"},
    Step.NETWORK_DIAG: {"diag_title", "diag_interface", "diag_gateway", "diag_no_interface", "net_hint"},
    Step.EXIT_CONFIRM: {"exit_prompt", "exit_type_to_confirm", "exit_phrase", "exit_hint"},
}


def required_phrases(graph: StepGraph) -> set[str]:
    """Every phrase name any step of ``graph`` may request."""
    names = set(COMMON_PHRASES)
    for step in graph.steps:
        names |= STEP_PHRASES.get(step, set())
    names.update(key for key, _ in graph.menu)
    return names


def _value(t: Mapping[str, str], value: str | None) -> str:
    return value if value else t["unknown"]


def _switch(t: Mapping[str, str], flag: bool) -> str:
    return t["value_on"] if flag else t["value_off"]


def _locale_label(code: str) -> str:
    return SUPPORTED_LOCALES.get(code, {}).get("label", code)


def _password(password: str, reveal: bool) -> str:
    return password if reveal else "*" * len(password)


def _hardware(state: WizardState) -> HardwareFacts | None:
    outcome = state.probes.get(ProbeName.HARDWARE)
    return outcome if isinstance(outcome, HardwareFacts) else None


def _waiting(state: WizardState, name: ProbeName) -> bool:
    return name in state.pending and name not in state.probes


def _disk_line(t: Mapping[str, str], disk: DiskRecord) -> str:
    name = " ".join(p for p in (disk.vendor, disk.model) if p) or t["unknown"]
    line = f"{disk.path}  {disk.size}  {disk.kind.value}  {name}  {disk.partitions} {t['disk_partitions']}"
    if not disk.selectable:
        line += f" ({t['disk_removable']})"
    return line


def _disk_lines(state: WizardState, t: Mapping[str, str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    outcome = state.probes.get(ProbeName.DISKS)
    if outcome is None:
        return (t["scanning"],), ()
    if isinstance(outcome, ProbeFailure):
        return (), (t["disk_probe_failed"], t["disk_none"])
    disks = listed_disks(state)
    if not disks:
        return (), (t["disk_none"],)
    return tuple(_disk_line(t, d) for d in disks), ()


# ── Per-step projections ────────────────────────────────────────────

def _welcome(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    footer = t["version_line"]
    if graph.hub is Step.WELCOME:
        footer = f"{footer} | {t['menu_language']}: {_locale_label(state.locale)}"
    return View(
        step=state.step,
        title=t["welcome_title"],
        lines=(t["welcome_body"], t["welcome_start"]),
        highlighted=1,
        hint=t["welcome_hint"],
        footer=footer,
    )


def _menu(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    facts = _hardware(state)
    arch = _value(t, facts.get("arch") if facts else None)
    kernel = _value(t, facts.get("kernel") if facts else None)
    count = len(graph.menu)
    return View(
        step=state.step,
        title=t["title"],
        lines=tuple(t[key] for key, _ in graph.menu),
        highlighted=state.menu_cursor % count if count else None,
        hint=t["menu_hint"],
        footer=f"{t['menu_language']}: {_locale_label(state.locale)} | "
               f"{t['hw_arch']}: {arch} | {t['hw_kernel']}: {kernel}",
    )


def _disk_select(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    lines, warnings = _disk_lines(state, t)
    has_disks = bool(listed_disks(state))
    if has_disks:
        warnings = warnings + (t["disk_warning_erase"],)
    disabled = frozenset(i for i, d in enumerate(listed_disks(state)) if not d.selectable)
    return View(
        step=state.step,
        title=t["disk_title"],
        lines=lines,
        highlighted=state.cursor if has_disks else None,
        warnings=warnings,
        hint=t["disk_hint"],
        disabled=disabled,
    )


def _options(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    draft = state.draft
    values = {
        "hostname": (t["options_hostname"], draft.hostname),
        "username": (t["options_username"], draft.username),
        "password": (t["options_password"], _password(draft.password, draft.reveal_root_password)),
        "timezone": (t["options_timezone"], draft.timezone),
        "filesystem": (t["options_filesystem"], draft.filesystem),
        "locale": (t["options_locale"], _locale_label(draft.locale)),
        "desktop": (t["options_desktop"], _switch(t, draft.install_desktop)),
        "guest_agent": (t["options_guest_agent"], _switch(t, draft.install_guest_agent)),
        "ssh_server": (t["options_ssh_server"], _switch(t, draft.install_ssh_server)),
        "swap": (t["options_swap"], _switch(t, draft.enable_swap)),
        "reveal_password": (t["options_reveal_password"], _switch(t, draft.reveal_root_password)),
    }
    lines = []
    for row in OPTION_ROWS:
        if row == "continue":
            lines.append(t["options_continue"])
        else:
            label, value = values[row]
            lines.append(f"{label}: {value}")

    warnings: list[str] = []
    disabled: set[int] = set()
    if not is_virtualized(state):
        disabled.add(OPTION_ROWS.index("guest_agent"))
        if ProbeName.VIRTUALIZATION not in state.probes:
            warnings.append(t["options_guest_agent_pending"])
        else:
            warnings.append(t["options_guest_agent_unavailable"])

    if not validate_hostname(draft.hostname):
        warnings.append(t["options_invalid_hostname"])
    if not validate_username(draft.username):
        warnings.append(t["options_invalid_username"])
    if not draft.password:
        warnings.append(t["options_password_required"])

    return View(
        step=state.step,
        title=t["options_title"],
        lines=tuple(lines),
        highlighted=min(state.cursor, len(OPTION_ROWS) - 1),
        warnings=tuple(warnings),
        hint=t["options_hint"],
        disabled=frozenset(disabled),
    )


def _summary(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    draft = state.draft
    services = [
        t[key]
        for key, flag in (
            ("options_desktop", draft.install_desktop),
            ("options_guest_agent", draft.install_guest_agent),
            ("options_ssh_server", draft.install_ssh_server),
            ("options_swap", draft.enable_swap),
        )
        if flag
    ]
    lines = (
        f"{t['summary_disk']}: {_value(t, draft.disk_label or draft.disk)}",
        f"{t['options_hostname']}: {draft.hostname}",
        f"{t['options_username']}: {draft.username}",
        f"{t['options_password']}: {_password(draft.password, draft.reveal_root_password)}",
        f"{t['options_timezone']}: {draft.timezone}",
        f"{t['options_filesystem']}: {draft.filesystem}",
        f"{t['options_locale']}: {_locale_label(draft.locale)}",
        f"{t['summary_services']}: {', '.join(services) if services else t['value_off']}",
        f"{t['options_reveal_password']}: {_switch(t, draft.reveal_root_password)}",
    )
    return View(
        step=state.step,
        title=t["summary_title"],
        lines=lines,
        warnings=(t["summary_warning"],),
        hint=t["summary_hint"],
    )


def _installing(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    if state.progress is None:
        return View(step=state.step, title=t["install_title"], lines=(t["install_preparing"],), progress=(0, 0))
    index, total, name = state.progress
    return View(step=state.step, title=t["install_title"], lines=(f"[{index}/{total}] {name}",), progress=(index, total))


def _install_failed(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    name, cause = state.failure or ("", "")
    return View(
        step=state.step,
        title=t["install_failed_title"],
        lines=(f"{t['install_failed_action']}: {_value(t, name)}",),
        warnings=(cause,) if cause else (),
        hint=t["install_failed_hint"],
    )


def _install_done(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    return View(
        step=state.step,
        title=t["install_done_title"],
        lines=(t["install_done_body"],),
        hint=t["install_done_hint"],
    )


def _vm_install(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    facts = _hardware(state)
    lines = [t["vm_requirements"]]
    if facts is None and _waiting(state, ProbeName.HARDWARE):
        lines.append(t["scanning"])
    elif facts is not None and facts.get("virt") == "supported":
        lines.append(t["vm_kvm_available"])
    else:
        lines.append(t["vm_kvm_missing"])
    virt = state.probes.get(ProbeName.VIRTUALIZATION)
    if isinstance(virt, VirtualizationFacts) and virt.hypervisor:
        lines.append(virt.hypervisor)
    warnings: tuple[str, ...] = ()
    if facts is not None and facts.get("missing_vm_tools"):
        warnings = (f"{t['vm_missing_tools']}: {_tool_list(facts.get('missing_vm_tools'))}",)
    return View(step=state.step, title=t["vm_title"], lines=tuple(lines), warnings=warnings, hint=t["hint_continue"])


def _hardware_info(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    facts = _hardware(state)
    if facts is None:
        status = t["scanning"] if _waiting(state, ProbeName.HARDWARE) else t["no_data"]
        return View(step=state.step, title=t["hw_title"], lines=(status,), hint=t["hint_continue"])
    lines = [
        t["hw_overview"],
        f"{t['hw_hostname']}: {_value(t, facts.get('hostname'))}",
        f"{t['hw_arch']}: {_value(t, facts.get('arch'))}",
        f"{t['hw_kernel']}: {_value(t, facts.get('kernel'))}",
        f"{t['hw_cpu']}: {_value(t, facts.get('cpu'))}",
        f"{t['hw_cores']}: {_value(t, facts.get('cores'))}",
        f"{t['hw_memory']}: {_value(t, facts.get('memory'))}",
        f"{t['hw_graphics']}: {_value(t, facts.get('gpu'))}",
        t["hw_advanced"],
    ]
    virt = facts.get("virt")
    if virt is None:
        lines.append(f"{t['hw_virt']}: {t['unknown']}")
    else:
        lines.append(t["hw_virt_supported"] if virt == "supported" else t["hw_virt_unavailable"])
    lines.append(t["hw_firmware_uefi"] if facts.get("firmware") == "uefi" else t["hw_firmware_bios"])
    lines.append(f"{t['hw_uptime']}: {_value(t, facts.get('uptime'))}")
    lines.append(f"{t['hw_load']}: {_value(t, facts.get('load'))}")
    return View(step=state.step, title=t["hw_title"], lines=tuple(lines), hint=t["hint_continue"])


def _tool_list(value: str | None) -> str:
    return ", ".join(tool for tool in (value or "").split(",") if tool)


def _as_int(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def requirement_warnings(facts: HardwareFacts) -> list[str]:
    """Phrase names of every minimum requirement the host is known to miss."""
    missed = []
    ram = _as_int(facts.get("memory_mb"))
    if ram is not None and ram < MIN_RAM_MB:
        missed.append("req_ram_warning")
    cores = _as_int(facts.get("cores"))
    if cores is not None and cores < MIN_CORES:
        missed.append("req_cpu_warning")
    tmp = _as_int(facts.get("tmp_free_mb"))
    if tmp is not None and tmp < MIN_TMP_MB:
        missed.append("req_disk_warning")
    if facts.get("missing_tools"):
        missed.append("req_missing_tools")
    return missed


def _requirements(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    facts = _hardware(state)
    if facts is None:
        status = t["scanning"] if _waiting(state, ProbeName.HARDWARE) else t["no_data"]
        return View(step=state.step, title=t["req_title"], lines=(status,), hint=t["hint_continue"])
    tmp = facts.get("tmp_free_mb")
    lines = [
        f"{t['req_ram']}: {_value(t, facts.get('memory'))}",
        f"{t['req_cores']}: {_value(t, facts.get('cores'))}",
        f"{t['req_tmp']}: {_value(t, f'{tmp} MB' if tmp else None)}",
    ]
    missed = requirement_warnings(facts)
    lines.append(t["req_may_not_perform"] if missed else t["req_meets"])
    return View(
        step=state.step,
        title=t["req_title"],
        lines=tuple(lines),
        warnings=tuple(
            f"{t[name]}: {_tool_list(facts.get('missing_tools'))}" if name == "req_missing_tools" else t[name]
            for name in missed
        ),
        hint=t["hint_continue"],
    )


def _config_save(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    warnings: tuple[str, ...] = ()
    if state.save_error:
        lines = (t["config_save_failed"],)
        warnings = (state.save_error,)
    elif state.saved_path:
        lines = (f"{t['config_saved']} {state.saved_path}",)
    else:
        lines = (t["config_saving"],)
    return View(step=state.step, title=t["config_title"], lines=lines, warnings=warnings, hint=t["hint_continue"])


def _disk_info(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    lines, warnings = _disk_lines(state, t)
    return View(step=state.step, title=t["diskinfo_title"], lines=lines, warnings=warnings, hint=t["hint_continue"])


def _network_check(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    outcome = state.probes.get(ProbeName.NETWORK)
    warnings: tuple[str, ...] = ()
    if outcome is None or ProbeName.NETWORK in state.pending:
        lines: tuple[str, ...] = (t["net_checking"],)
    elif isinstance(outcome, NetworkStatus) and outcome.online:
        lines = (t["net_connected"], f"{t['net_public_ip']}: {_value(t, outcome.public_address)}")
    elif isinstance(outcome, NetworkStatus):
        lines = (t["net_offline"],)
    else:
        lines = (t["net_offline"],)
        warnings = (t["no_data"],)
    return View(step=state.step, title=t["net_title"], lines=lines, warnings=warnings, hint=t["net_hint"])


def _network_diag(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    outcome = state.probes.get(ProbeName.INTERFACE)
    warnings: tuple[str, ...] = ()
    if outcome is None or ProbeName.INTERFACE in state.pending:
        lines: tuple[str, ...] = (t["scanning"],)
    elif isinstance(outcome, InterfaceFacts) and outcome.interface:
        lines = (
            f"{t['diag_interface']}: {outcome.interface}",
            f"{t['diag_gateway']}: {_value(t, outcome.gateway)}",
        )
    elif isinstance(outcome, InterfaceFacts):
        lines = (t["diag_no_interface"],)
    else:
        lines = (t["diag_no_interface"],)
        warnings = (t["no_data"],)
    return View(step=state.step, title=t["diag_title"], lines=lines, warnings=warnings, hint=t["net_hint"])


def _exit_confirm(state: WizardState, t: Mapping[str, str], graph: StepGraph) -> View:
    return View(
        step=state.step,
        title=t["exit_prompt"],
        lines=(f"{t['exit_type_to_confirm']} {t['exit_phrase']}", f"> {state.text_buffer}"),
        highlighted=1,
        hint=t["exit_hint"],
    )


RENDERERS: dict[Step, Callable[[WizardState, Mapping[str, str], StepGraph], View]] = {
    Step.WELCOME: _welcome,
    Step.MENU: _menu,
    Step.DISK_SELECT: _disk_select,
    Step.OPTIONS: _options,
    Step.SUMMARY: _summary,
    Step.INSTALLING: _installing,
    Step.INSTALL_FAILED: _install_failed,
    Step.INSTALL_DONE: _install_done,
    Step.VM_INSTALL: _vm_install,
    Step.HARDWARE_INFO: _hardware_info,
    Step.REQUIREMENTS: _requirements,
    Step.CONFIG_SAVE: _config_save,
    Step.DISK_INFO: _disk_info,
    Step.NETWORK_CHECK: _network_check,
    Step.NETWORK_DIAG: _network_diag,
    Step.EXIT_CONFIRM: _exit_confirm,
}


def render_view(state: WizardState, phrases: PhraseTable, graph: StepGraph) -> View:
    return RENDERERS[state.step](state, phrases.lookup(state.locale), graph)
