from __future__ import annotations

import logging
import time
from typing import Callable

from .domain import InstallConfig
from .executor import ActionOutcome, InstallAction

log = logging.getLogger(__name__)


def _simulated(description: Callable[[InstallConfig], str], delay: float) -> Callable[[InstallConfig], ActionOutcome]:
    def run(config: InstallConfig) -> ActionOutcome:
        log.info("Simulated: %s", description(config))
        if delay:
            time.sleep(delay)
        return None

    return run


def build_actions(config: InstallConfig, delay: float = 0.0) -> list[InstallAction]:
    """Default installation sequence. Every action only logs what it would do."""
    steps: list[tuple[str, Callable[[InstallConfig], str]]] = [
        ("Preparing disk", lambda c: f"wipe partition table on {c.disk}, create EFI and root partitions"),
        ("Creating filesystems", lambda c: f"format root partition of {c.disk} as {c.filesystem}"),
        ("Mounting partitions", lambda c: "mount root at /mnt and EFI at /mnt/boot"),
        ("Installing base system", lambda c: "install base packages into /mnt"),
        (
            "Configuring system",
            lambda c: f"hostname={c.hostname} timezone={c.timezone} locale={c.locale}",
        ),
    ]
    if config.install_desktop:
        steps.append(("Installing desktop environment", lambda c: "install xorg and a desktop session"))
    if config.install_guest_agent:
        steps.append(("Installing guest agent", lambda c: "install and enable qemu-guest-agent"))
    if config.install_ssh_server:
        steps.append(("Installing SSH server", lambda c: "install and enable openssh"))
    if config.enable_swap:
        steps.append(("Creating swap", lambda c: "create and enable /swapfile"))
    steps += [
        ("Creating user account", lambda c: f"useradd -m -G wheel {c.username} and set its password"),
        ("Installing bootloader", lambda c: f"grub-install --bootloader-id=lainux {c.disk}"),
        ("Finalizing installation", lambda c: "unmount /mnt and sync"),
    ]
    return [InstallAction(name, _simulated(describe, delay)) for name, describe in steps]
