"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from .errors import LocalVMError

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Combined stdout and stderr; vmrun reports errors on stdout."""
        return '\n'.join(p for p in (self.stdout, self.stderr) if p)


class CmdError(LocalVMError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.output}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def raise_for_result(cmd: Sequence[str], res: CmdResult) -> None:
    """Log the raw output of a failed native command and raise CmdError."""
    if res.code == 0:
        return
    log.opt(depth=1).error(
        'Command failed code={} cmd={} stderr={} stdout={}',
        res.code,
        shell_join(cmd),
        res.stderr.strip(),
        res.stdout.strip(),
    )
    raise CmdError(list(cmd), res)


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    text: bool = True,
    input_text: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
) -> CmdResult:
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    p = subprocess.run(
        list(cmd),
        input=input_text if input_text is not None else None,
        capture_output=capture,
        text=text,
        env=env,
    )
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check:
        raise_for_result(cmd, res)
    if p.returncode == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which

    return _which(cmd)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
