from __future__ import annotations

from dataclasses import dataclass
import subprocess


@dataclass
class CommandResult:
    ok: bool
    returncode: int
    output: str


class CommandRunner:
    """Runs external commands and folds every failure into a CommandResult."""

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def run(self, argv: list[str], timeout: float | None = None) -> CommandResult:
        limit = self.timeout if timeout is None else timeout
        try:
            proc = subprocess.run(argv, capture_output=True, text=True, check=False, timeout=limit)
        except subprocess.TimeoutExpired as exc:
            partial = exc.stdout or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            output = f"Command timed out after {limit:g}s: {' '.join(argv)}\n{partial}"
            return CommandResult(ok=False, returncode=124, output=output.strip())
        except FileNotFoundError:
            return CommandResult(ok=False, returncode=127, output=f"{argv[0]}: command not found")
        except PermissionError:
            return CommandResult(ok=False, returncode=126, output=f"{argv[0]}: permission denied")
        output = proc.stdout or ""
        if proc.returncode != 0 and proc.stderr:
            output = f"{output}{proc.stderr}"
        return CommandResult(ok=(proc.returncode == 0), returncode=proc.returncode, output=output.strip())

    def lsblk(self, *args: str) -> CommandResult:
        return self.run(["lsblk", *args])

    def ip(self, *args: str) -> CommandResult:
        return self.run(["ip", *args])
