from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence


TIMEZONES = (
    "UTC",
    "Europe/Moscow",
    "Europe/London",
    "Europe/Berlin",
    "America/New_York",
    "America/Los_Angeles",
    "Asia/Tokyo",
)

FILESYSTEMS = ("ext4", "btrfs", "xfs", "f2fs")

SUPPORTED_LOCALES = {
    "EN": {"label": "English"},
    "RU": {"label": "Русский"},
}

DEFAULT_TIMEZONE = "UTC"
DEFAULT_FILESYSTEM = "ext4"
DEFAULT_LOCALE = "EN"
DEFAULT_HOSTNAME = "lainux-pc"
DEFAULT_USERNAME = "lainux-user"

HOSTNAME_MAX = 63
_HOSTNAME_RE = re.compile(r"[a-z0-9]([a-z0-9\-]*[a-z0-9])?", re.IGNORECASE)

USERNAME_MAX = 32
PASSWORD_MAX = 128
_USERNAME_RE = re.compile(r"[a-z_][a-z0-9_\-]*")


@dataclass
class ConfigDraft:
    disk: str | None = None
    disk_label: str = ""
    hostname: str = DEFAULT_HOSTNAME
    username: str = DEFAULT_USERNAME
    password: str = field(default="", repr=False)
    timezone: str = DEFAULT_TIMEZONE
    filesystem: str = DEFAULT_FILESYSTEM
    install_desktop: bool = True
    install_guest_agent: bool = False
    install_ssh_server: bool = False
    enable_swap: bool = True
    reveal_root_password: bool = False
    locale: str = DEFAULT_LOCALE

    def freeze(self) -> InstallConfig:
        return InstallConfig(
            disk=self.disk or "",
            disk_label=self.disk_label,
            hostname=self.hostname,
            username=self.username,
            password=self.password,
            timezone=self.timezone,
            filesystem=self.filesystem,
            install_desktop=self.install_desktop,
            install_guest_agent=self.install_guest_agent,
            install_ssh_server=self.install_ssh_server,
            enable_swap=self.enable_swap,
            reveal_root_password=self.reveal_root_password,
            locale=self.locale,
        )


@dataclass(frozen=True)
class InstallConfig:
    """Read-only snapshot of the draft handed to the action runner."""

    disk: str
    disk_label: str
    hostname: str
    username: str
    password: str = field(repr=False)
    timezone: str
    filesystem: str
    install_desktop: bool
    install_guest_agent: bool
    install_ssh_server: bool
    enable_swap: bool
    reveal_root_password: bool
    locale: str


def validate_hostname(hostname: str) -> bool:
    if not hostname or len(hostname) > HOSTNAME_MAX:
        return False
    return _HOSTNAME_RE.fullmatch(hostname) is not None


def validate_username(username: str) -> bool:
    if not username or len(username) > USERNAME_MAX:
        return False
    return _USERNAME_RE.fullmatch(username) is not None


def validate_draft(draft: ConfigDraft, guest_agent_allowed: bool = True) -> list[str]:
    issues: list[str] = []
    if not draft.disk:
        issues.append("A target disk must be selected.")
    if not draft.hostname:
        issues.append("Hostname must not be empty.")
    elif len(draft.hostname) > HOSTNAME_MAX:
        issues.append(f"Hostname must be at most {HOSTNAME_MAX} characters.")
    elif not validate_hostname(draft.hostname):
        issues.append("Hostname may contain only letters, digits and inner hyphens.")
    if not draft.username:
        issues.append("Username must not be empty.")
    elif not validate_username(draft.username):
        issues.append("Username may contain only lowercase letters, digits, _ and - and must not start with a digit.")
    if not draft.password:
        issues.append("Password must not be empty.")
    elif len(draft.password) > PASSWORD_MAX:
        issues.append(f"Password must be at most {PASSWORD_MAX} characters.")
    if draft.timezone not in TIMEZONES:
        issues.append(f"Timezone must be one of: {', '.join(TIMEZONES)}.")
    if draft.filesystem not in FILESYSTEMS:
        issues.append(f"Filesystem must be one of: {', '.join(FILESYSTEMS)}.")
    if draft.locale not in SUPPORTED_LOCALES:
        issues.append(f"Locale must be one of: {', '.join(SUPPORTED_LOCALES)}.")
    if draft.install_guest_agent and not guest_agent_allowed:
        issues.append("Guest agent can only be installed inside a virtual machine.")
    return issues


def next_choice(values: Sequence[str], current: str) -> str:
    """Return the entry after ``current``, wrapping; unknown values restart at the first."""
    try:
        idx = values.index(current)
    except ValueError:
        return values[0]
    return values[(idx + 1) % len(values)]
