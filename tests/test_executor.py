from lainux_installer.domain import ConfigDraft
from lainux_installer.executor import ActionFailure, InstallAction, run_actions


def _config():
    return ConfigDraft(disk="/dev/sda", disk_label="/dev/sda").freeze()


def test_run_actions_success_emits_progress_then_success(tmp_path) -> None:
    seen: list[str] = []
    events = []
    actions = [
        InstallAction("Preparing disk", lambda c: seen.append(f"prep {c.disk}")),
        InstallAction("Finalizing installation", lambda c: seen.append("final")),
    ]
    result = run_actions(_config(), actions, on_event=events.append, log_dir=tmp_path)
    assert result.ok is True
    assert result.completed == ["Preparing disk", "Finalizing installation"]
    assert seen == ["prep /dev/sda", "final"]
    assert [(e.kind, e.index, e.total) for e in events] == [("progress", 1, 2), ("progress", 2, 2), ("success", 2, 2)]
    assert result.log_path is not None and result.log_path.exists()
    assert "[OK] Preparing disk" in result.log_path.read_text(encoding="utf-8")


def test_run_actions_stops_at_first_failure(tmp_path) -> None:
    calls: list[str] = []
    events = []

    def fail(config):  # type: ignore[no-untyped-def]
        calls.append("mount")
        return ActionFailure("mount: /mnt busy")

    actions = [
        InstallAction("Preparing disk", lambda c: calls.append("prep")),
        InstallAction("Mounting partitions", fail),
        InstallAction("Installing bootloader", lambda c: calls.append("boot")),
    ]
    result = run_actions(_config(), actions, on_event=events.append, log_dir=tmp_path)
    assert result.ok is False
    assert result.failed_action == "Mounting partitions"
    assert result.cause == "mount: /mnt busy"
    assert calls == ["prep", "mount"]
    assert [e.kind for e in events] == ["progress", "progress", "failure"]
    assert events[-1].name == "Mounting partitions"
    assert events[-1].index == 2
    assert "[FAIL] Mounting partitions" in result.log_path.read_text(encoding="utf-8")


def test_run_actions_converts_exceptions(tmp_path) -> None:
    def boom(config):  # type: ignore[no-untyped-def]
        raise RuntimeError("grub-install exited 1")

    result = run_actions(_config(), [InstallAction("Installing bootloader", boom)], log_dir=tmp_path)
    assert result.ok is False
    assert result.cause == "grub-install exited 1"


def test_rerun_starts_from_first_action(tmp_path) -> None:
    attempts = {"n": 0}
    calls: list[str] = []

    def flaky(config):  # type: ignore[no-untyped-def]
        attempts["n"] += 1
        calls.append("flaky")
        return ActionFailure("busy") if attempts["n"] == 1 else None

    actions = [InstallAction("first", lambda c: calls.append("first")), InstallAction("flaky", flaky)]
    assert run_actions(_config(), actions, log_dir=tmp_path).ok is False
    assert run_actions(_config(), actions, log_dir=tmp_path).ok is True
    assert calls == ["first", "flaky", "first", "flaky"]


def test_run_actions_without_actions(tmp_path) -> None:
    events = []
    result = run_actions(_config(), [], on_event=events.append, log_dir=tmp_path)
    assert result.ok is True
    assert [e.kind for e in events] == ["success"]


def test_unwritable_log_dir_does_not_fail_run(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    result = run_actions(_config(), [InstallAction("a", lambda c: None)], log_dir=blocker / "logs")
    assert result.ok is True
    assert result.log_path is None
