from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import LocalVMConfig, config_path, load
from ..engine import VirtualizationEngine, engine_from_record
from ..errors import (
    DiscoveryError,
    LocalVMError,
    NoInterfaceError,
)
from ..machine import MachineRecord, load_machine, machine_path, save_machine

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None,
        help='Path to the localvm settings TOML (default: user config dir).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _settings_path(p: str | None) -> Path:
    return Path(p).expanduser().resolve() if p else config_path()


def _load_settings(p: str | None) -> LocalVMConfig:
    return load(_settings_path(p))


@dataclass
class Session:
    cfg: LocalVMConfig
    machine: MachineRecord
    machine_file: Path
    engine: VirtualizationEngine


def _open_session(config: str | None) -> Session:
    cfg = _load_settings(config)
    fpath = machine_path()
    machine = load_machine(fpath)
    engine = engine_from_record(machine, cfg)
    log.debug('Using {} for {}', engine, fpath)
    return Session(cfg, machine, fpath, engine)


def _finish(session: Session) -> None:
    """Persist the record after a successful command.

    Never called when a command raised, so the file always reflects a
    completed operation. Empty records are not written so that commands run
    in a random directory do not leave files behind.
    """
    if session.machine.is_empty():
        return
    save_machine(session.machine, session.machine_file)


def _explain_discovery_error(
    ex: DiscoveryError, engine: VirtualizationEngine
) -> LocalVMError:
    path = engine.machine.path
    if isinstance(ex, NoInterfaceError):
        return LocalVMError(
            f'Cannot determine the IP address: {ex}.\n'
            'Add a NAT or host-only network adapter to the VM, or fix '
            'ssh.interface in the machine file.'
        )
    return LocalVMError(
        f'Could not find an IP address for the VM at {path}.\n'
        'Is it running? Only NAT and host-only (DHCP) networks are searched; '
        'bridged adapters and static addresses cannot be discovered. Wait for '
        'the guest to finish booting and try again.'
    )


def _ip_or_explain(engine: VirtualizationEngine) -> str:
    try:
        return engine.ip()
    except DiscoveryError as ex:
        raise _explain_discovery_error(ex, engine) from ex


__all__ = [name for name in globals() if not name.startswith('__')]
