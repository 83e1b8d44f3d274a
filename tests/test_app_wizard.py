import asyncio

from lainux_installer.app import InstallerApp
from lainux_installer.executor import ActionFailure, InstallAction
from lainux_installer.probes import (
    DiskKind,
    DiskRecord,
    DisksResult,
    HardwareFacts,
    InterfaceFacts,
    NetworkStatus,
    ProbeName,
    VirtualizationFacts,
)
from lainux_installer.settings import Settings
from lainux_installer.state import OPTION_ROWS, Step


# ── Helper ──────────────────────────────────────────────────────────

def _probes(disks=None):
    records = disks if disks is not None else (
        DiskRecord("/dev/vda", "40G", DiskKind.SATA_SSD, "Virtio", "Block Device", 0),
    )
    return {
        ProbeName.DISKS: lambda: DisksResult(tuple(records)),
        ProbeName.HARDWARE: lambda: HardwareFacts({"arch": "x86_64", "kernel": "6.8.0", "cores": "4"}),
        ProbeName.NETWORK: lambda: NetworkStatus(online=True, public_address="203.0.113.7"),
        ProbeName.VIRTUALIZATION: lambda: VirtualizationFacts(True, "KVM"),
        ProbeName.INTERFACE: lambda: InterfaceFacts("eth0", "10.0.2.2"),
    }


def _app(tmp_path, actions=None, disks=None, factory=None):
    settings = Settings(action_delay=0, summary_path=str(tmp_path / "install.conf"))
    calls: list[str] = []
    if actions is None:
        actions = [
            InstallAction("Preparing disk", lambda c: calls.append(c.disk)),
            InstallAction("Installing bootloader", lambda c: calls.append("boot")),
        ]
    factory = factory or (lambda config: list(actions))
    app = InstallerApp(settings, probes=_probes(disks), actions=factory, background=False)
    return app, calls


async def _to_options(pilot, app):
    await pilot.press("enter")  # welcome -> menu
    await pilot.press("enter")  # menu -> disk selection
    await pilot.press("enter")  # disk -> options
    await pilot.pause()
    assert app.state.step is Step.OPTIONS


# ── Tests ───────────────────────────────────────────────────────────

def test_app_starts_at_welcome_with_probes_applied(tmp_path) -> None:
    async def _run() -> None:
        app, _ = _app(tmp_path)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            assert app.state.step is Step.WELCOME
            assert app.state.pending == frozenset()
            assert ProbeName.VIRTUALIZATION in app.state.probes
            await pilot.press("enter")
            assert app.state.step is Step.MENU
            assert "x86_64" in app.view.footer

    asyncio.run(_run())


def test_full_install_flow(tmp_path) -> None:
    async def _run() -> None:
        app, calls = _app(tmp_path)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await _to_options(pilot, app)
            assert app.state.draft.disk == "/dev/vda"
            await pilot.press("down", "down", "down", "g")  # timezone row
            assert app.state.draft.install_guest_agent is True
            await pilot.press("up", "p", "w")
            assert app.state.draft.password == "pw"
            await pilot.press(*["down"] * len(OPTION_ROWS), "enter")
            assert app.state.step is Step.SUMMARY
            await pilot.press("enter")
            await pilot.pause()
            assert app.state.step is Step.INSTALL_DONE
            assert calls == ["/dev/vda", "boot"]
            assert app.state.confirmed.install_guest_agent is True
            await pilot.press("enter")
            await pilot.pause()
        assert app.return_code == 0

    asyncio.run(_run())


def test_failed_install_returns_to_summary(tmp_path) -> None:
    async def _run() -> None:
        actions = [InstallAction("Mounting partitions", lambda c: ActionFailure("mount: busy"))]
        app, _ = _app(tmp_path, actions=actions)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await _to_options(pilot, app)
            await pilot.press("down", "down", "p", "w")
            await pilot.press(*["down"] * len(OPTION_ROWS), "enter", "enter")
            await pilot.pause()
            assert app.state.step is Step.INSTALL_FAILED
            assert "Mounting partitions" in app.view.lines[0]
            assert "mount: busy" in app.view.warnings
            await pilot.press("escape")
            assert app.state.step is Step.SUMMARY
            assert app.state.confirmed is None

    asyncio.run(_run())


def test_no_disks_blocks_selection(tmp_path) -> None:
    async def _run() -> None:
        app, _ = _app(tmp_path, disks=())
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await pilot.press("enter", "enter", "enter")
            await pilot.pause()
            assert app.state.step is Step.DISK_SELECT
            assert app.view.lines == ()
            assert app.view.warnings

    asyncio.run(_run())


def test_config_save_writes_summary(tmp_path) -> None:
    async def _run() -> None:
        app, _ = _app(tmp_path)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await pilot.press("enter", "down", "down", "down", "down", "enter")
            await pilot.pause()
            assert app.state.step is Step.CONFIG_SAVE
            assert app.state.saved_path == str(tmp_path / "install.conf")
            assert (tmp_path / "install.conf").exists()

    asyncio.run(_run())


def test_quit_requires_typed_phrase(tmp_path) -> None:
    async def _run() -> None:
        app, _ = _app(tmp_path)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await pilot.press("enter", "q")
            assert app.state.step is Step.EXIT_CONFIRM
            await pilot.press("e", "x", "enter")
            assert app.state.step is Step.EXIT_CONFIRM
            assert app.view.lines[1] == "> EX"
            await pilot.press("i", "t", "enter")
            await pilot.pause()
        assert app.return_code == 0

    asyncio.run(_run())


def test_action_factory_error_fails_install(tmp_path) -> None:
    def broken(config):
        raise RuntimeError("no plan for " + config.disk)

    async def _run() -> None:
        app, _ = _app(tmp_path, factory=broken)
        async with app.run_test(size=(120, 40)) as pilot:
            await pilot.pause()
            await _to_options(pilot, app)
            await pilot.press("down", "down", "p", "w")
            await pilot.press(*["down"] * len(OPTION_ROWS), "enter", "enter")
            await pilot.pause()
            assert app.state.step is Step.INSTALL_FAILED
            assert "no plan for /dev/vda" in app.view.warnings

    asyncio.run(_run())
