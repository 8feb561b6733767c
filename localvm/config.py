"""Host settings: native tool names and host networking file locations."""

from __future__ import annotations

import sys
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .errors import ConfigurationError
from .util import ensure_dir, expand

if sys.platform == 'darwin':
    DEFAULT_NETWORKING_FILE = '/Library/Preferences/VMware Fusion/networking'
    DEFAULT_LEASES_FILE = '/var/db/vmware/vmnet-dhcpd-vmnet{}.leases'
else:
    DEFAULT_NETWORKING_FILE = '/etc/vmware/networking'
    DEFAULT_LEASES_FILE = '/etc/vmware/vmnet{}/dhcpd/dhcpd.leases'


@dataclass
class VMwareConfig:
    vmrun: str = 'vmrun'
    # Passed to vmrun as `-T <host_type>` when set (ws, fusion, player).
    host_type: str = ''
    networking_file: str = DEFAULT_NETWORKING_FILE
    # `{}` is replaced by the virtual network id.
    leases_file: str = DEFAULT_LEASES_FILE


@dataclass
class VirtualBoxConfig:
    vboxmanage: str = 'vboxmanage'
    snapshot_name: str = 'localvm-clone'


@dataclass
class LocalVMConfig:
    vmware: VMwareConfig = field(default_factory=VMwareConfig)
    virtualbox: VirtualBoxConfig = field(default_factory=VirtualBoxConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'LocalVMConfig':
        self.vmware.networking_file = expand(self.vmware.networking_file)
        self.vmware.leases_file = expand(self.vmware.leases_file)
        return self


def config_path() -> Path:
    return Path(ub.Path.appdir('localvm', type='config')) / 'config.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: LocalVMConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    if d.get('verbosity', 1) != 1:
        lines.append(f'verbosity = {d["verbosity"]}')
        lines.append('')
    for section, body in d.items():
        if not isinstance(body, dict):
            continue
        lines.append(f'[{section}]')
        for k, v in body.items():
            if isinstance(v, bool):
                lines.append(f'{k} = {"true" if v else "false"}')
            elif isinstance(v, int):
                lines.append(f'{k} = {v}')
            else:
                lines.append(f'{k} = "{_toml_escape(str(v))}"')
        lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def load(path: Path | None = None) -> LocalVMConfig:
    """Read host settings, falling back to defaults when the file is absent."""
    fpath = path or config_path()
    cfg = LocalVMConfig()
    if not fpath.exists():
        return cfg.expanded_paths()
    try:
        raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    except tomllib.TOMLDecodeError as ex:
        raise ConfigurationError(f'Invalid settings file {fpath}: {ex}') from ex
    for section in ('vmware', 'virtualbox'):
        body = raw.get(section, None)
        if isinstance(body, dict):
            obj = getattr(cfg, section)
            for k, v in body.items():
                if not hasattr(obj, k):
                    continue
                if not isinstance(v, str):
                    raise ConfigurationError(
                        f'Invalid settings file {fpath}: '
                        f'{section}.{k} must be a string, got {v!r}'
                    )
                setattr(obj, k, v)
    if 'verbosity' in raw:
        verbosity = raw['verbosity']
        if isinstance(verbosity, bool) or not isinstance(verbosity, int):
            raise ConfigurationError(
                f'Invalid settings file {fpath}: '
                f'verbosity must be an integer, got {verbosity!r}'
            )
        cfg.verbosity = verbosity
    return cfg.expanded_paths()


def save(path: Path, cfg: LocalVMConfig) -> Path:
    ensure_dir(path.parent)
    path.write_text(dump_toml(cfg), encoding='utf-8')
    return path
