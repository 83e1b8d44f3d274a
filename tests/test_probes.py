import json
import socket
from pathlib import Path

from lainux_installer import probes as probes_module
from lainux_installer.infrastructure import CommandResult
from lainux_installer.probes import (
    NO_DISKS,
    DiskKind,
    DisksResult,
    NetworkStatus,
    ProbeFailure,
    ProbeName,
    classify_disk,
    human_size_kb,
    kernel_major,
    parse_ip_route,
    parse_lsblk_json,
    probe_disks,
    probe_hardware,
    probe_interface,
    probe_network,
    probe_virtualization,
    run_probe,
)


class FakeRunner:
    def __init__(self, outputs: dict[str, CommandResult] | None = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []

    def run(self, argv: list[str], timeout: float | None = None) -> CommandResult:
        self.calls.append(argv)
        return self.outputs.get(" ".join(argv), CommandResult(False, 127, f"{argv[0]}: command not found"))

    def lsblk(self, *args: str) -> CommandResult:
        return self.run(["lsblk", *args])

    def ip(self, *args: str) -> CommandResult:
        return self.run(["ip", *args])


LSBLK_ARGS = "lsblk -J -o NAME,SIZE,TYPE,ROTA,RM,TRAN,VENDOR,MODEL"

LSBLK_PAYLOAD = {
    "blockdevices": [
        {"name": "nvme0n1", "size": "476.9G", "type": "disk", "rota": False, "rm": False,
         "tran": "nvme", "vendor": None, "model": "Samsung SSD 980",
         "children": [{"name": "nvme0n1p1", "type": "part"}, {"name": "nvme0n1p2", "type": "part"}]},
        {"name": "sda", "size": "931.5G", "type": "disk", "rota": True, "rm": False,
         "tran": "sata", "vendor": "ATA     ", "model": "WDC WD10EZEX"},
        {"name": "sdb", "size": "240G", "type": "disk", "rota": "0", "rm": "0", "tran": "sata",
         "vendor": "ATA", "model": "Kingston"},
        {"name": "sdc", "size": "14.9G", "type": "disk", "rota": "1", "rm": "1", "tran": "usb",
         "vendor": "SanDisk", "model": "Cruzer"},
        {"name": "sr0", "size": "1024M", "type": "rom", "rota": True, "rm": True},
        {"name": "loop0", "size": "55M", "type": "loop", "rota": False, "rm": False},
        {"name": "mmcblk0", "size": "29G", "type": "disk", "rota": False, "rm": False},
    ]
}


def test_parse_lsblk_filters_and_classifies() -> None:
    disks = parse_lsblk_json(json.dumps(LSBLK_PAYLOAD))
    by_path = {d.path: d for d in disks}
    assert list(by_path) == ["/dev/nvme0n1", "/dev/sda", "/dev/sdb", "/dev/sdc", "/dev/mmcblk0"]
    assert by_path["/dev/nvme0n1"].kind is DiskKind.NVME_SSD
    assert by_path["/dev/nvme0n1"].partitions == 2
    assert by_path["/dev/sda"].kind is DiskKind.HDD
    assert by_path["/dev/sda"].vendor == "ATA"
    assert by_path["/dev/sdb"].kind is DiskKind.SATA_SSD
    assert by_path["/dev/sdc"].kind is DiskKind.REMOVABLE
    assert by_path["/dev/sdc"].selectable is False
    assert by_path["/dev/mmcblk0"].kind is DiskKind.UNKNOWN
    assert by_path["/dev/mmcblk0"].selectable is True


def test_classify_disk_without_rotation_info() -> None:
    assert classify_disk("sda", None) is DiskKind.UNKNOWN
    assert classify_disk("vda", False) is DiskKind.SATA_SSD
    assert classify_disk("xvda", True) is DiskKind.HDD
    assert classify_disk("sdz", False, transport="usb") is DiskKind.REMOVABLE


def test_probe_disks_success() -> None:
    runner = FakeRunner({LSBLK_ARGS: CommandResult(True, 0, json.dumps(LSBLK_PAYLOAD))})
    result = probe_disks(runner)  # type: ignore[arg-type]
    assert isinstance(result, DisksResult)
    assert len(result.disks) == 5
    assert [d.path for d in result.disks if d.selectable] == ["/dev/nvme0n1", "/dev/sda", "/dev/sdb", "/dev/mmcblk0"]


def test_probe_disks_empty_listing_is_not_failure() -> None:
    runner = FakeRunner({LSBLK_ARGS: CommandResult(True, 0, json.dumps({"blockdevices": [
        {"name": "sr0", "size": "1G", "type": "rom"},
    ]}))})
    assert probe_disks(runner).disks == ()  # type: ignore[arg-type]


def test_probe_disks_missing_command_yields_sentinel() -> None:
    result = probe_disks(FakeRunner())  # type: ignore[arg-type]
    assert result.disks == (NO_DISKS,)
    assert result.disks[0].is_sentinel
    assert not result.disks[0].selectable


def test_probe_disks_garbage_output_yields_sentinel() -> None:
    runner = FakeRunner({LSBLK_ARGS: CommandResult(True, 0, "not json")})
    assert probe_disks(runner).disks == (NO_DISKS,)  # type: ignore[arg-type]


def test_kernel_major_and_sizes() -> None:
    assert kernel_major("6.8.0-45-generic") == "6.8.0"
    assert kernel_major("") is None
    assert human_size_kb(512) == "512 KiB"
    assert human_size_kb(16 * 1024 * 1024) == "16.0 GiB"


def _fake_proc(tmp_path: Path, cpu_flags: str = "fpu vmx sse") -> Path:
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "cpuinfo").write_text(
        f"processor\t: 0\nmodel name\t: Intel(R) Core(TM) i5\nflags\t\t: {cpu_flags}\n", encoding="utf-8"
    )
    (proc / "meminfo").write_text("MemTotal:       16318480 kB\nMemFree: 1 kB\n", encoding="utf-8")
    (proc / "loadavg").write_text("0.52 0.58 0.59 1/1000 12345\n", encoding="utf-8")
    return proc


def test_probe_hardware_collects_facts(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(probes_module.platform, "release", lambda: "6.1.0-18-amd64")
    monkeypatch.setattr(probes_module.platform, "machine", lambda: "x86_64")
    runner = FakeRunner({
        "lscpu": CommandResult(True, 0, "Architecture: x86_64\nModel name:   AMD Ryzen 7 5800X"),
        "lspci": CommandResult(True, 0, "00:02.0 VGA compatible controller: Intel UHD Graphics 630"),
        "uptime -p": CommandResult(True, 0, "up 2 hours, 3 minutes"),
    })
    efi = tmp_path / "efi"
    efi.mkdir()
    facts = probe_hardware(
        runner, proc=_fake_proc(tmp_path), efi_dir=efi, tmp_dir=tmp_path, which=lambda tool: f"/usr/bin/{tool}"  # type: ignore[arg-type]
    )
    assert facts.get("arch") == "x86_64"
    assert facts.get("kernel") == "6.1.0"
    assert facts.get("cpu") == "AMD Ryzen 7 5800X"
    assert facts.get("memory") == "15.6 GiB"
    assert facts.get("memory_mb") == "15936"
    assert facts.get("gpu") == "Intel UHD Graphics 630"
    assert facts.get("uptime") == "up 2 hours, 3 minutes"
    assert facts.get("load") == "0.52 0.58 0.59"
    assert facts.get("firmware") == "uefi"
    assert facts.get("virt") == "supported"
    assert facts.get("tmp_free_mb") is not None
    assert facts.get("missing_tools") == ""
    assert facts.get("missing_vm_tools") == ""


def test_probe_hardware_missing_sources_are_unknown(tmp_path) -> None:
    proc = tmp_path / "empty-proc"
    proc.mkdir()
    facts = probe_hardware(
        FakeRunner(), proc=proc, efi_dir=tmp_path / "no-efi", tmp_dir=tmp_path / "missing"  # type: ignore[arg-type]
    )
    assert facts.get("cpu") is None
    assert facts.get("memory") is None
    assert facts.get("gpu") is None
    assert facts.get("uptime") is None
    assert facts.get("load") is None
    assert facts.get("virt") is None
    assert facts.get("tmp_free_mb") is None
    assert facts.get("firmware") == "bios"


def test_probe_hardware_falls_back_to_cpuinfo(tmp_path) -> None:
    runner = FakeRunner({"uptime": CommandResult(True, 0, "10:00 up 1 day")})
    facts = probe_hardware(runner, proc=_fake_proc(tmp_path, "fpu sse"), efi_dir=tmp_path / "x")  # type: ignore[arg-type]
    assert facts.get("cpu") == "Intel(R) Core(TM) i5"
    assert facts.get("uptime") == "10:00 up 1 day"
    assert facts.get("virt") == "none"


def test_probe_hardware_reports_missing_tools(tmp_path) -> None:
    absent = {"sgdisk", "grub-install", "qemu-img"}
    facts = probe_hardware(
        FakeRunner(),  # type: ignore[arg-type]
        proc=tmp_path,
        efi_dir=tmp_path / "x",
        which=lambda tool: None if tool in absent else f"/usr/bin/{tool}",
    )
    assert facts.get("missing_tools") == "sgdisk,grub-install"
    assert facts.get("missing_vm_tools") == "qemu-img"


def test_probe_virtualization_flag_and_dmi(tmp_path) -> None:
    cpuinfo = tmp_path / "cpuinfo"
    cpuinfo.write_text("model name\t: QEMU Virtual CPU version 2.5+\nflags\t: fpu hypervisor\n", encoding="utf-8")
    facts = probe_virtualization(cpuinfo, tmp_path / "dmi")
    assert facts.is_virtualized is True
    assert facts.hypervisor == "QEMU"

    bare = tmp_path / "bare"
    bare.write_text("model name\t: AMD Ryzen\nflags\t: fpu svm\n", encoding="utf-8")
    dmi = tmp_path / "dmi"
    dmi.mkdir()
    (dmi / "sys_vendor").write_text("ASUSTeK COMPUTER INC.\n", encoding="utf-8")
    assert probe_virtualization(bare, dmi).is_virtualized is False

    (dmi / "product_name").write_text("VirtualBox\n", encoding="utf-8")
    facts = probe_virtualization(bare, dmi)
    assert facts.is_virtualized is True
    assert facts.hypervisor == "VirtualBox"


def test_probe_network_offline(monkeypatch) -> None:
    def refuse(address, timeout):  # type: ignore[no-untyped-def]
        raise OSError("unreachable")

    monkeypatch.setattr(socket, "create_connection", refuse)
    assert probe_network() == NetworkStatus(online=False)


class _Conn:
    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, *exc):  # type: ignore[no-untyped-def]
        return False


class _Resp(_Conn):
    def read(self, size: int) -> bytes:
        return b"203.0.113.7\n"


def test_probe_network_online_with_address(monkeypatch) -> None:
    monkeypatch.setattr(socket, "create_connection", lambda address, timeout: _Conn())
    monkeypatch.setattr(probes_module.urllib.request, "urlopen", lambda url, timeout: _Resp())
    assert probe_network() == NetworkStatus(online=True, public_address="203.0.113.7")


def test_probe_network_lookup_failure_still_online(monkeypatch) -> None:
    def broken(url, timeout):  # type: ignore[no-untyped-def]
        raise OSError("dns")

    monkeypatch.setattr(socket, "create_connection", lambda address, timeout: _Conn())
    monkeypatch.setattr(probes_module.urllib.request, "urlopen", broken)
    assert probe_network() == NetworkStatus(online=True, public_address=None)


def test_parse_ip_route_default_and_fallback() -> None:
    output = "default via 192.168.1.1 dev wlp3s0 proto dhcp metric 600\n192.168.1.0/24 dev wlp3s0 scope link\n"
    facts = parse_ip_route(output)
    assert facts.interface == "wlp3s0"
    assert facts.gateway == "192.168.1.1"

    facts = parse_ip_route("10.0.0.0/8 dev eth0 scope link\n")
    assert facts.interface == "eth0"
    assert facts.gateway is None
    assert parse_ip_route("").interface is None


def test_run_probe_converts_exceptions() -> None:
    outcome = run_probe(ProbeName.INTERFACE, {ProbeName.INTERFACE: lambda: probe_interface(FakeRunner())})  # type: ignore[arg-type]
    assert isinstance(outcome, ProbeFailure)
    assert outcome.probe is ProbeName.INTERFACE
    assert "ip" in outcome.cause

    def explode():  # type: ignore[no-untyped-def]
        raise ValueError()

    outcome = run_probe(ProbeName.HARDWARE, {ProbeName.HARDWARE: explode})
    assert outcome == ProbeFailure(ProbeName.HARDWARE, "ValueError")
