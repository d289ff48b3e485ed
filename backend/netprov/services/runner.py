from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence


logger = logging.getLogger(__name__)

# stderr fragments meaning "the thing being removed is already gone"
ABSENT_MARKERS = (
    "cannot find device",
    "no such device",
    "does not exist",
    "no such file",
    "no such process",
    "cannot assign requested address",
    "does a matching rule exist",
    "cannot delete qdisc with handle of zero",
    "pidfile not valid",
)


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str


class CommandError(Exception):
    def __init__(self, args: Sequence[str], returncode: int, output: str, timed_out: bool = False) -> None:
        self.argv = list(args)
        self.returncode = returncode
        self.output = output
        self.timed_out = timed_out
        super().__init__(f"`{' '.join(self.argv)}` exited {returncode}: {output}")

    @property
    def is_absent(self) -> bool:
        if self.timed_out:
            return False
        # pkill: no process matched
        if self.argv and self.argv[0] == "pkill" and self.returncode == 1:
            return True
        text = self.output.lower()
        return any(marker in text for marker in ABSENT_MARKERS)


class CommandRunner:
    """Runs external network commands with a bounded timeout."""

    def __init__(self, timeout: float = 15.0, use_sudo: bool = True) -> None:
        self.timeout = timeout
        try:
            is_root = os.geteuid() == 0
        except AttributeError:
            is_root = False
        self._sudo = use_sudo and not is_root

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        argv = list(args)
        cmd = ["sudo", "-n"] + argv if self._sudo else argv
        limit = timeout or self.timeout
        logger.debug(f"exec: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CommandError(argv, 127, str(exc)) from exc

        try:
            out, err = await asyncio.wait_for(proc.communicate(), limit)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise CommandError(argv, -1, f"timed out after {limit:.0f}s", timed_out=True)
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise

        stdout = out.decode(errors="replace")
        stderr = err.decode(errors="replace")
        if proc.returncode != 0:
            if self._sudo and "password" in stderr.lower():
                stderr = "sudo requires a password; configure passwordless sudo for the service user. " + stderr
            raise CommandError(argv, proc.returncode, stderr.strip() or stdout.strip())
        return CommandResult(argv, proc.returncode, stdout, stderr)
