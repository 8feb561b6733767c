"""Host tool checks and status rendering. Reports only; never changes anything."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import LocalVMConfig
from .engine import engine_from_record
from .machine import MachineRecord
from .util import run_cmd, which

log = logger


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('➖' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def check_commands(cfg: LocalVMConfig) -> dict[str, bool]:
    tools = {
        'VMware': cfg.vmware.vmrun,
        'VirtualBox': cfg.virtualbox.vboxmanage,
        'SSH': 'ssh',
    }
    return {label: which(cmd) is not None for label, cmd in tools.items()}


def virtualbox_hostonly_present(cfg: LocalVMConfig) -> bool:
    """VirtualBox ships without a host-only interface; SSH needs one."""
    res = run_cmd(
        [cfg.virtualbox.vboxmanage, 'list', 'hostonlyifs'], check=False
    )
    return res.code == 0 and bool(res.stdout.strip())


def render_status(
    cfg: LocalVMConfig, machine: MachineRecord, machine_file: Path
) -> str:
    lines = ['Host']
    found = check_commands(cfg)
    lines.append(
        status_line(found['VMware'], 'VMware', f'vmrun={cfg.vmware.vmrun}')
    )
    lines.append(
        status_line(
            found['VirtualBox'],
            'VirtualBox',
            f'vboxmanage={cfg.virtualbox.vboxmanage}',
        )
    )
    if found['VirtualBox']:
        if virtualbox_hostonly_present(cfg):
            lines.append(status_line(True, 'VirtualBox host-only interface'))
        else:
            lines.append(
                status_line(
                    False,
                    'VirtualBox host-only interface',
                    'missing; ssh will not work until one is created '
                    '(vboxmanage hostonlyif create)',
                )
            )
    lines.append(status_line(found['SSH'], 'ssh client'))
    lines.append('')
    lines.append('Machine')
    if machine.is_empty():
        lines.append(
            status_line(None, 'not configured', f'no {machine_file.name} here')
        )
        return '\n'.join(lines)
    engine = engine_from_record(machine, cfg)
    lines.append(status_line(None, 'engine', engine.kind))
    lines.append(status_line(None, 'source', machine.source or '(none)'))
    lines.append(
        status_line(engine.found(), 'clone', machine.path or '(not cloned)')
    )
    for host_path, guest_path in sorted(machine.mounts.items()):
        lines.append(status_line(None, 'mount', f'{host_path} -> {guest_path}'))
    return '\n'.join(lines)
