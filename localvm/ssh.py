"""Helpers for constructing and running SSH commands against the guest."""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from .engine import VirtualizationEngine
from .machine import SSHOptions
from .util import run_cmd

log = logger

# ssh flags that take no argument. This is a heuristic.
SSH_BOOL_FLAGS = '46AaCfGgKkMNnqsTtVvXxYy'

# ssh options that take exactly one argument (no spaces). Also a heuristic.
SSH_OPTION_FLAGS = 'BbcDEeFIiJLlmOopQRSWw'


def is_ssh_bool_flags(arg: str) -> bool:
    """True for one or more grouped boolean flags such as ``-4`` or ``-A6``."""
    if len(arg) < 2 or arg[0] != '-':
        return False
    return all(ch in SSH_BOOL_FLAGS for ch in arg[1:])


def is_ssh_option_flag(arg: str) -> bool:
    return len(arg) == 2 and arg[0] == '-' and arg[1] in SSH_OPTION_FLAGS


def split_ssh_args(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Separate ssh flags/options from a trailing remote command.

    ssh wants every option before the hostname and treats everything after
    it as the remote command, so the guest IP has to go in between:

        localvm ssh -l root shutdown -h now
        ssh -l root <ip> shutdown -h now

    Boolean flags pass through, an option flag consumes the next argument,
    and the first argument that is neither starts the remote command.

    Example:
        >>> split_ssh_args(['-A', '-l', 'root', 'uptime', '-p'])
        (['-A', '-l', 'root'], ['uptime', '-p'])
    """
    args = list(args)
    ssh_args: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if is_ssh_bool_flags(arg):
            ssh_args.append(arg)
            i += 1
        elif is_ssh_option_flag(arg) and i + 1 < len(args):
            ssh_args.extend([arg, args[i + 1]])
            i += 2
        else:
            break
    return ssh_args, args[i:]


def ssh_base_args(options: SSHOptions) -> list[str]:
    args: list[str] = []
    if options.login:
        args.extend(['-l', options.login])
    if options.identity_file:
        args.extend(['-i', options.identity_file])
    return args


def build_ssh_command(
    args: Sequence[str], ip: str, options: SSHOptions | None = None
) -> list[str]:
    ssh_args, remote = split_ssh_args(args)
    base = ssh_base_args(options or SSHOptions())
    return ['ssh', *base, *ssh_args, ip, *remote]


def ssh(engine: VirtualizationEngine, args: Sequence[str] = ()) -> int:
    """Open an interactive SSH session to the guest; returns ssh's exit code."""
    ip = engine.ip()
    cmd = build_ssh_command(args, ip, engine.machine.ssh)
    log.debug('Connecting to {} via ssh', ip)
    return run_cmd(cmd, check=False, capture=False).code
