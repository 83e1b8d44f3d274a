from __future__ import annotations

import logging
from pathlib import Path

from .domain import InstallConfig

log = logging.getLogger(__name__)

DEFAULT_SUMMARY_PATH = Path("/tmp/lainux-install.conf")


def render_summary(config: InstallConfig) -> str:
    lines = [
        "# LainuxOS installation configuration",
        f"disk={config.disk}",
        f"disk_label={config.disk_label}",
        f"hostname={config.hostname}",
        f"username={config.username}",
        f"timezone={config.timezone}",
        f"filesystem={config.filesystem}",
        f"locale={config.locale}",
        f"desktop={'yes' if config.install_desktop else 'no'}",
        f"guest_agent={'yes' if config.install_guest_agent else 'no'}",
        f"ssh_server={'yes' if config.install_ssh_server else 'no'}",
        f"swap={'yes' if config.enable_swap else 'no'}",
    ]
    return "\n".join(lines) + "\n"


def save_summary(config: InstallConfig, path: Path | None = None) -> Path:
    target = path or DEFAULT_SUMMARY_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_summary(config), encoding="utf-8")
    log.info("Configuration summary written to %s", target)
    return target
