"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import shlex
import sys

import scriptconfig as scfg
from loguru import logger

from ..errors import ConfigurationError
from ..host import render_status
from ._common import _BaseCommand, _load_settings, _open_session, log
from .machine import (
    CloneCLI,
    DeleteCLI,
    IPCLI,
    MountCLI,
    RestartCLI,
    SSHCLI,
    StartCLI,
    StopCLI,
)


class StatusCLI(_BaseCommand):
    """Report installed virtualization tools and the local machine record."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        print(render_status(session.cfg, session.machine, session.machine_file))
        return 0


class LocalVMModalCLI(scfg.ModalCLI):
    """A minimalist, idempotent command-line tool for managing local VMs."""

    clone = CloneCLI
    start = StartCLI
    stop = StopCLI
    restart = RestartCLI
    ssh = SSHCLI
    ip = IPCLI
    mount = MountCLI
    delete = DeleteCLI
    status = StatusCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    config_value = None
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    if '--config' in argv:
        try:
            config_value = argv[argv.index('--config') + 1]
        except IndexError:
            pass
    try:
        verbosity = _load_settings(config_value).verbosity
    except (ConfigurationError, ValueError):
        # Reported properly once the command loads the settings itself.
        verbosity = 1

    explicit_verbose = _count_verbose(argv)
    _setup_logging(explicit_verbose, verbosity)

    try:
        rc = LocalVMModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled localvm error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _normalize_argv(argv: list[str]) -> list[str]:
    """Rewrite positional spellings into scriptconfig options."""
    if not argv:
        return argv
    if argv[0] == 'help':
        return ['--help', *argv[1:]]
    if argv[0] == 'clone':
        if len(argv) >= 2 and not argv[1].startswith('-'):
            return ['clone', '--source', argv[1], *argv[2:]]
        return argv
    if argv[0] == 'mount':
        if (
            len(argv) >= 3
            and not argv[1].startswith('-')
            and not argv[2].startswith('-')
        ):
            return [
                'mount',
                '--host_path',
                argv[1],
                '--guest_path',
                argv[2],
                *argv[3:],
            ]
        return argv
    if argv[0] == 'ssh':
        rest = argv[1:]
        if not rest or rest[0] in {'-h', '--help'}:
            return argv
        # Everything after `ssh` belongs to ssh, including its flags.
        return ['ssh', f'--passthrough={shlex.join(rest)}']
    return argv


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
