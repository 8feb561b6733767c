"""Machine record persisted as a JSON sidecar next to the user's project."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .errors import ConfigurationError

log = logger

MACHINE_FILE = 'localvm.json'

# Private folder (relative to the project directory) that holds cloned VMs.
WORK_DIR = '.localvm'


@dataclass
class SSHOptions:
    login: str = ''
    identity_file: str = ''
    # Virtual NIC (e.g. ethernet1) whose address is used for remote access.
    interface: str = ''


@dataclass
class MachineRecord:
    """A cloned VM and what we need to find it or re-clone it after delete.

    ``path`` points at the VM descriptor (``.vmx``, ``.vbox``) and is empty
    until the machine is cloned. ``source`` is the parent VM, optionally
    followed by ``:<snapshot>``.
    """

    path: str = ''
    mounts: dict[str, str] = field(default_factory=dict)
    source: str = ''
    engine: str = ''
    ssh: SSHOptions = field(default_factory=SSHOptions)

    def is_empty(self) -> bool:
        return self == MachineRecord()

    def as_dict(self) -> dict:
        return {
            'path': self.path,
            'mounts': {k: self.mounts[k] for k in sorted(self.mounts)},
            'source': self.source,
            'engine': self.engine,
            'ssh': {
                'login': self.ssh.login,
                'identity_file': self.ssh.identity_file,
                'interface': self.ssh.interface,
            },
        }


def machine_path(directory: str | Path | None = None) -> Path:
    return Path(directory or Path.cwd()) / MACHINE_FILE


def _norm_host_path(path: str | Path) -> str:
    p = Path(path).expanduser()
    try:
        return str(p.resolve())
    except OSError:
        return str(p.absolute())


def _record_from_dict(raw: dict) -> MachineRecord:
    rec = MachineRecord()
    rec.path = str(raw.get('path') or '')
    rec.source = str(raw.get('source') or '')
    rec.engine = str(raw.get('engine') or '')
    mounts = raw.get('mounts') or {}
    if isinstance(mounts, dict):
        rec.mounts = {str(k): str(v) for k, v in mounts.items()}
    ssh = raw.get('ssh') or {}
    if isinstance(ssh, dict):
        for k, v in ssh.items():
            if hasattr(rec.ssh, k):
                setattr(rec.ssh, k, str(v or ''))
    return rec


def load_machine(path: Path | None = None) -> MachineRecord:
    fpath = path or machine_path()
    if not fpath.exists():
        log.debug('No machine file at {}; starting from an empty record', fpath)
        return MachineRecord()
    try:
        raw = json.loads(fpath.read_text(encoding='utf-8'))
    except (OSError, ValueError) as ex:
        raise ConfigurationError(f'Could not read {fpath}: {ex}') from ex
    if not isinstance(raw, dict):
        raise ConfigurationError(f'Could not read {fpath}: expected an object')
    return _record_from_dict(raw)


def save_machine(rec: MachineRecord, path: Path | None = None) -> Path:
    fpath = path or machine_path()
    text = json.dumps(rec.as_dict(), indent=2)
    # Trailing newline so `cat` leaves the terminal prompt alone.
    fpath.write_text(text + '\n', encoding='utf-8')
    log.debug('Saved machine record to {}', fpath)
    return fpath


def add_mount(rec: MachineRecord, host_path: str | Path, guest_path: str) -> None:
    guest_path = (guest_path or '').strip()
    if not guest_path:
        raise ConfigurationError('A guest path is required to mount a folder.')
    rec.mounts[_norm_host_path(host_path)] = guest_path
