from __future__ import annotations

import json
import logging
import os
import platform
import shutil
import socket
import urllib.request
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Union

from .infrastructure import CommandRunner

log = logging.getLogger(__name__)


class ProbeName(str, Enum):
    DISKS = "disks"
    HARDWARE = "hardware"
    NETWORK = "network"
    VIRTUALIZATION = "virtualization"
    INTERFACE = "interface"


class DiskKind(str, Enum):
    NVME_SSD = "NVMe SSD"
    SATA_SSD = "SATA SSD"
    HDD = "HDD"
    UNKNOWN = "Unknown"
    REMOVABLE = "Removable"


@dataclass(frozen=True)
class DiskRecord:
    path: str
    size: str
    kind: DiskKind
    vendor: str = ""
    model: str = ""
    partitions: int = 0
    removable: bool = False

    @property
    def is_sentinel(self) -> bool:
        return self is NO_DISKS or self.path == ""

    @property
    def selectable(self) -> bool:
        return not self.is_sentinel and not self.removable and self.kind is not DiskKind.REMOVABLE

    @property
    def label(self) -> str:
        parts = [self.vendor, self.model]
        name = " ".join(p for p in parts if p) or DiskKind.UNKNOWN.value
        return f"{self.path} ({self.size} {self.kind.value}) {name}"


# Placeholder meaning "enumeration ran but produced nothing usable".
NO_DISKS = DiskRecord(path="", size="", kind=DiskKind.UNKNOWN)


@dataclass(frozen=True)
class DisksResult:
    disks: tuple[DiskRecord, ...]


HARDWARE_FACTS = (
    "hostname",
    "arch",
    "kernel",
    "cpu",
    "cores",
    "memory",
    "memory_mb",
    "gpu",
    "uptime",
    "load",
    "firmware",
    "virt",
    "tmp_free_mb",
    "missing_tools",
    "missing_vm_tools",
)

# Commands a disk installation relies on.
INSTALL_TOOLS = (
    "arch-chroot",
    "pacstrap",
    "genfstab",
    "sgdisk",
    "partprobe",
    "mkfs.fat",
    "mkfs.ext4",
    "mount",
    "umount",
    "blkid",
    "lsblk",
    "grub-install",
)

VM_TOOLS = ("qemu-system-x86_64", "qemu-img")


@dataclass(frozen=True)
class HardwareFacts:
    facts: dict[str, str | None] = field(default_factory=dict)

    def get(self, name: str) -> str | None:
        return self.facts.get(name)


@dataclass(frozen=True)
class NetworkStatus:
    online: bool
    public_address: str | None = None


@dataclass(frozen=True)
class VirtualizationFacts:
    is_virtualized: bool
    hypervisor: str | None = None


@dataclass(frozen=True)
class InterfaceFacts:
    interface: str | None
    gateway: str | None = None


@dataclass(frozen=True)
class ProbeFailure:
    probe: ProbeName
    cause: str


ProbeResult = Union[DisksResult, HardwareFacts, NetworkStatus, VirtualizationFacts, InterfaceFacts]
ProbeOutcome = Union[ProbeResult, ProbeFailure]


# ── Disks ───────────────────────────────────────────────────────────

_EXCLUDED_TYPES = {"rom", "loop"}
_EXCLUDED_PREFIXES = ("loop", "sr", "ram", "zram", "fd")
_AMBIGUOUS_PREFIXES = ("sd", "vd", "hd", "xvd")


def _flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes"}


def classify_disk(name: str, rotational: bool | None, removable: bool = False, transport: str = "") -> DiskKind:
    if removable or transport.lower() == "usb":
        return DiskKind.REMOVABLE
    if name.startswith("nvme"):
        return DiskKind.NVME_SSD
    if name.startswith(_AMBIGUOUS_PREFIXES):
        if rotational is None:
            return DiskKind.UNKNOWN
        return DiskKind.HDD if rotational else DiskKind.SATA_SSD
    return DiskKind.UNKNOWN


def parse_lsblk_json(payload: str) -> list[DiskRecord]:
    """Normalize ``lsblk -J`` output; optical and loop devices never leave this function."""
    data = json.loads(payload)
    disks: list[DiskRecord] = []
    for dev in data.get("blockdevices", []):
        name = str(dev.get("name") or "").strip()
        dev_type = str(dev.get("type") or "").strip().lower()
        if not name or dev_type in _EXCLUDED_TYPES or name.startswith(_EXCLUDED_PREFIXES):
            continue
        if dev_type and dev_type != "disk":
            continue
        rota = dev.get("rota")
        removable = _flag(dev.get("rm"))
        transport = str(dev.get("tran") or "")
        children = dev.get("children") or []
        disks.append(
            DiskRecord(
                path=f"/dev/{name}",
                size=str(dev.get("size") or "?").strip(),
                kind=classify_disk(name, None if rota is None else _flag(rota), removable, transport),
                vendor=str(dev.get("vendor") or "").strip(),
                model=str(dev.get("model") or "").strip(),
                partitions=sum(1 for child in children if str(child.get("type") or "") == "part"),
                removable=removable,
            )
        )
    return disks


def probe_disks(runner: CommandRunner | None = None) -> DisksResult:
    runtime = runner or CommandRunner(timeout=5.0)
    result = runtime.lsblk("-J", "-o", "NAME,SIZE,TYPE,ROTA,RM,TRAN,VENDOR,MODEL")
    if not result.ok:
        log.warning("lsblk failed (rc=%s): %s", result.returncode, result.output)
        return DisksResult(disks=(NO_DISKS,))
    try:
        disks = parse_lsblk_json(result.output)
    except (ValueError, AttributeError, TypeError) as exc:
        log.warning("Unparseable lsblk output: %s", exc)
        return DisksResult(disks=(NO_DISKS,))
    log.info("Disk probe found %d device(s)", len(disks))
    return DisksResult(disks=tuple(disks))


# ── Hardware ────────────────────────────────────────────────────────

def human_size_kb(kib: int) -> str:
    value = float(kib)
    for unit in ("KiB", "MiB", "GiB", "TiB"):
        if value < 1024 or unit == "TiB":
            return f"{value:.1f} {unit}" if unit != "KiB" else f"{int(value)} {unit}"
        value /= 1024
    return f"{value:.1f} TiB"  # pragma: no cover


def kernel_major(release: str) -> str | None:
    token = release.strip().split("-")[0]
    return token or None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return None


def _cpu_model(runner: CommandRunner, cpuinfo: Path) -> str | None:
    lscpu = runner.run(["lscpu"])
    if lscpu.ok:
        for line in lscpu.output.splitlines():
            if line.strip().startswith("Model name"):
                value = line.split(":", 1)[1].strip() if ":" in line else ""
                if value:
                    return value
    text = _read_text(cpuinfo)
    if text:
        for line in text.splitlines():
            if line.startswith("model name") and ":" in line:
                return line.split(":", 1)[1].strip() or None
    return None


def _memory_kb(meminfo: Path) -> int | None:
    text = _read_text(meminfo)
    if not text:
        return None
    for line in text.splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1])
            break
    return None


def _gpu(runner: CommandRunner) -> str | None:
    lspci = runner.run(["lspci"])
    if not lspci.ok:
        return None
    for line in lspci.output.splitlines():
        lowered = line.lower()
        if "vga" in lowered or "3d" in lowered or "display" in lowered:
            parts = line.split(":", 2)
            if len(parts) == 3:
                return parts[2].strip()
    return None


def _uptime(runner: CommandRunner) -> str | None:
    pretty = runner.run(["uptime", "-p"])
    if pretty.ok and pretty.output:
        return pretty.output
    plain = runner.run(["uptime"])
    if plain.ok and plain.output:
        return plain.output
    return None


def _load(loadavg: Path) -> str | None:
    text = _read_text(loadavg)
    if not text:
        return None
    parts = text.split()
    if len(parts) < 3:
        return None
    return " ".join(parts[:3])


def _has_virt_extensions(cpuinfo: Path) -> bool | None:
    text = _read_text(cpuinfo)
    if text is None:
        return None
    for line in text.splitlines():
        if line.startswith("flags"):
            flags = line.split(":", 1)[-1].split()
            return "vmx" in flags or "svm" in flags
    return False


def _tmp_free_mb(tmp: Path) -> str | None:
    try:
        usage = shutil.disk_usage(tmp)
    except OSError:
        return None
    return str(usage.free // (1024 * 1024))


def _missing(tools: tuple[str, ...], which: Callable[[str], str | None]) -> str:
    missing = [tool for tool in tools if not which(tool)]
    if missing:
        log.info("Missing tools: %s", ", ".join(missing))
    return ",".join(missing)


def probe_hardware(
    runner: CommandRunner | None = None,
    proc: Path = Path("/proc"),
    efi_dir: Path = Path("/sys/firmware/efi"),
    tmp_dir: Path = Path("/tmp"),
    which: Callable[[str], str | None] = shutil.which,
) -> HardwareFacts:
    runtime = runner or CommandRunner(timeout=3.0)
    cpuinfo = proc / "cpuinfo"
    facts: dict[str, str | None] = dict.fromkeys(HARDWARE_FACTS)

    facts["hostname"] = socket.gethostname() or None
    facts["arch"] = platform.machine() or None
    facts["kernel"] = kernel_major(platform.release())
    facts["cpu"] = _cpu_model(runtime, cpuinfo)
    cores = os.cpu_count()
    facts["cores"] = str(cores) if cores else None

    mem_kb = _memory_kb(proc / "meminfo")
    if mem_kb:
        facts["memory"] = human_size_kb(mem_kb)
        facts["memory_mb"] = str(mem_kb // 1024)

    facts["gpu"] = _gpu(runtime)
    facts["uptime"] = _uptime(runtime)
    facts["load"] = _load(proc / "loadavg")
    facts["firmware"] = "uefi" if efi_dir.exists() else "bios"
    virt = _has_virt_extensions(cpuinfo)
    if virt is not None:
        facts["virt"] = "supported" if virt else "none"
    facts["tmp_free_mb"] = _tmp_free_mb(tmp_dir)
    facts["missing_tools"] = _missing(INSTALL_TOOLS, which)
    facts["missing_vm_tools"] = _missing(VM_TOOLS, which)
    return HardwareFacts(facts=facts)


# ── Network ─────────────────────────────────────────────────────────

DEFAULT_CHECK_HOST = "1.1.1.1"
DEFAULT_CHECK_PORT = 53
DEFAULT_LOOKUP_URL = "https://api.ipify.org"


def probe_network(
    host: str = DEFAULT_CHECK_HOST,
    port: int = DEFAULT_CHECK_PORT,
    lookup_url: str = DEFAULT_LOOKUP_URL,
    connect_timeout: float = 3.0,
    lookup_timeout: float = 5.0,
) -> NetworkStatus:
    try:
        with socket.create_connection((host, port), timeout=connect_timeout):
            pass
    except OSError as exc:
        log.info("Connectivity check to %s:%s failed: %s", host, port, exc)
        return NetworkStatus(online=False)

    try:
        with urllib.request.urlopen(lookup_url, timeout=lookup_timeout) as resp:
            address = resp.read(64).decode("utf-8", errors="ignore").strip()
    except (OSError, ValueError) as exc:
        log.info("Public address lookup failed: %s", exc)
        return NetworkStatus(online=True)
    return NetworkStatus(online=True, public_address=address or None)


# ── Virtualization ──────────────────────────────────────────────────

HYPERVISOR_SIGNATURES = {
    "kvm": "KVM",
    "qemu": "QEMU",
    "vmware": "VMware",
    "virtualbox": "VirtualBox",
    "innotek": "VirtualBox",
    "xen": "Xen",
    "microsoft corporation": "Hyper-V",
    "hyper-v": "Hyper-V",
    "parallels": "Parallels",
    "bochs": "Bochs",
}


def _match_signature(text: str) -> str | None:
    lowered = text.lower()
    for needle, name in HYPERVISOR_SIGNATURES.items():
        if needle in lowered:
            return name
    return None


def probe_virtualization(
    cpuinfo: Path = Path("/proc/cpuinfo"),
    dmi_dir: Path = Path("/sys/class/dmi/id"),
) -> VirtualizationFacts:
    flagged = False
    hypervisor: str | None = None
    text = _read_text(cpuinfo) or ""
    for line in text.splitlines():
        if line.startswith("flags") and "hypervisor" in line.split(":", 1)[-1].split():
            flagged = True
        elif line.startswith("model name") and hypervisor is None:
            hypervisor = _match_signature(line.split(":", 1)[-1])

    for entry in ("sys_vendor", "product_name", "bios_vendor"):
        if hypervisor:
            break
        value = _read_text(dmi_dir / entry)
        if value:
            hypervisor = _match_signature(value)

    return VirtualizationFacts(is_virtualized=flagged or hypervisor is not None, hypervisor=hypervisor)


# ── Interface ───────────────────────────────────────────────────────

def parse_ip_route(output: str) -> InterfaceFacts:
    fallback: str | None = None
    for line in output.splitlines():
        fields = line.split()
        if "dev" not in fields:
            continue
        idx = fields.index("dev")
        if idx + 1 >= len(fields):
            continue
        iface = fields[idx + 1]
        if fields and fields[0] == "default":
            gateway = fields[fields.index("via") + 1] if "via" in fields[:-1] else None
            return InterfaceFacts(interface=iface, gateway=gateway)
        if fallback is None and iface != "lo":
            fallback = iface
    return InterfaceFacts(interface=fallback)


def probe_interface(runner: CommandRunner | None = None) -> InterfaceFacts:
    runtime = runner or CommandRunner(timeout=3.0)
    result = runtime.ip("route")
    if not result.ok:
        raise RuntimeError(result.output or f"ip route exited with {result.returncode}")
    return parse_ip_route(result.output)


# ── Dispatch ────────────────────────────────────────────────────────

PROBES: dict[ProbeName, Callable[[], ProbeResult]] = {
    ProbeName.DISKS: probe_disks,
    ProbeName.HARDWARE: probe_hardware,
    ProbeName.NETWORK: probe_network,
    ProbeName.VIRTUALIZATION: probe_virtualization,
    ProbeName.INTERFACE: probe_interface,
}


def run_probe(name: ProbeName, probes: dict[ProbeName, Callable[[], ProbeResult]] | None = None) -> ProbeOutcome:
    table = probes or PROBES
    try:
        return table[name]()
    except Exception as exc:  # probe boundary: nothing escapes as an exception
        log.warning("Probe %s failed: %s", name.value, exc)
        return ProbeFailure(probe=name, cause=str(exc) or exc.__class__.__name__)
