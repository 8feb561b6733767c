"""VMware Workstation / Fusion engine driven through ``vmrun``."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path, PurePosixPath

from loguru import logger

from ..errors import (
    NoConfigurationError,
    NoInterfaceError,
    NotFoundError,
    SourcePoweredOnError,
)
from ..util import raise_for_result, run_cmd
from .base import VirtualizationEngine
from .dhcp import NetworkInterface, detect_ip, read_interfaces

log = logger

IDENTIFIER = 'vmware'

# Substrings of vmrun output that map onto idempotent outcomes.
SOURCE_POWERED_ON = 'should not be powered on'
NOT_POWERED_ON = 'is not powered on'

HGFS_ROOT = '/mnt/hgfs'


def _same_file(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


def _powered_on_message(source: str) -> str:
    return (
        f'The clone source {source!r} is powered on and cannot be cloned.\n'
        'Power it off, or take a snapshot while it is powered off and clone '
        f'that snapshot instead (localvm clone {source}:<snapshot>).'
    )


def share_names(guest_paths: list[str]) -> dict[str, str]:
    """Derive a unique vmrun share name for every guest path.

    Example:
        >>> share_names(['/home/me/code', '/srv/data'])
        {'/home/me/code': 'code', '/srv/data': 'data'}
    """
    names: dict[str, str] = {}
    taken: set[str] = set()
    for guest in guest_paths:
        raw = PurePosixPath(guest).name
        base = re.sub(r'[^A-Za-z0-9_.-]+', '-', raw).strip('-') or 'share'
        name = base
        if name in taken:
            suffix = hashlib.sha1(guest.encode('utf-8')).hexdigest()[:8]
            name = f'{base}-{suffix}'
        taken.add(name)
        names[guest] = name
    return names


class VMware(VirtualizationEngine):
    kind = IDENTIFIER
    descriptor_suffix = '.vmx'

    def _vmrun(self, *args: str) -> list[str]:
        cmd = [self.cfg.vmware.vmrun]
        if self.cfg.vmware.host_type:
            cmd += ['-T', self.cfg.vmware.host_type]
        return [*cmd, *args]

    def _clone(
        self, source: str, snapshot: str, *, work_dir: Path, name: str
    ) -> Path:
        target = work_dir / name / f'{name}.vmx'
        args = ['clone', source, str(target), 'linked']
        if snapshot:
            args.append(f'-snapshot={snapshot}')
        cmd = self._vmrun(*args)
        # TODO: take a powered-off "localvm" snapshot of the source before
        # cloning so repeated linked clones of a running source stop failing.
        res = run_cmd(cmd, check=False)
        if res.code != 0:
            if SOURCE_POWERED_ON in res.output.lower():
                log.debug('vmrun clone output: {}', res.output.strip())
                raise SourcePoweredOnError(_powered_on_message(source))
            raise_for_result(cmd, res)
        return target

    def running_vms(self) -> list[str]:
        """Descriptor paths reported by ``vmrun list``."""
        res = run_cmd(self._vmrun('list'))
        lines = [line.strip() for line in res.stdout.splitlines()]
        # First line is the "Total running VMs: N" header.
        return [line for line in lines[1:] if line]

    def is_running(self) -> bool:
        if not self.found():
            return False
        return any(
            _same_file(p, self.machine.path) for p in self.running_vms()
        )

    def start(self) -> None:
        self.clone('')
        if self.is_running():
            log.info('VM already running: {}', self.machine.path)
            return
        run_cmd(self._vmrun('start', self.machine.path, 'nogui'))
        log.info('VM started: {}', self.machine.path)

    def stop(self) -> None:
        if not self.found():
            return
        cmd = self._vmrun('stop', self.machine.path, 'hard')
        res = run_cmd(cmd, check=False)
        if res.code != 0:
            if NOT_POWERED_ON in res.output.lower():
                log.debug('VM already powered off: {}', self.machine.path)
                return
            raise_for_result(cmd, res)
        log.info('VM stopped: {}', self.machine.path)

    def delete(self) -> None:
        if not self.found():
            return
        self.stop()
        # TODO: vmrun answers "Insufficient permissions" when another VM is a
        # linked clone of this one; explain that instead of the raw output.
        run_cmd(self._vmrun('deleteVM', self.machine.path))
        log.info('VM deleted: {}', self.machine.path)
        self.machine.path = ''

    def interfaces(self) -> list[NetworkInterface]:
        """NICs to search for an address, honouring ``ssh.interface``."""
        path = self.machine.path
        nics = read_interfaces(path)
        if not nics:
            raise NoInterfaceError(
                f'{path} declares no virtual network interfaces'
            )
        wanted = self.machine.ssh.interface.strip().lower()
        if wanted:
            nics = [nic for nic in nics if nic.name == wanted]
            if not nics:
                raise NoInterfaceError(
                    f'{path} has no network interface named {wanted!r}'
                )
        return nics

    def ip(self) -> str:
        if not self.found():
            raise NoConfigurationError()
        for nic in self.interfaces():
            try:
                ip = detect_ip(
                    nic.mac,
                    networking_file=self.cfg.vmware.networking_file,
                    leases_file=self.cfg.vmware.leases_file,
                )
            except NotFoundError:
                log.debug('No current lease for {} ({})', nic.name, nic.mac)
                continue
            # There could be more addresses; the first one is what people want.
            return ip
        raise NotFoundError()

    def mount(self) -> None:
        """Share every host folder in the record with the guest.

        VMware forgets enabled shared folders across power cycles, so this
        re-enables them each time. The guest sees each share under
        ``/mnt/hgfs/<name>``, where the name comes from the guest path.
        """
        if not self.found():
            raise NoConfigurationError()
        mounts = self.machine.mounts
        if not mounts:
            log.info('No mounts configured; nothing to share.')
            return
        path = self.machine.path
        run_cmd(self._vmrun('enableSharedFolders', path))
        names = share_names(sorted(mounts.values()))
        for host_path, guest_path in sorted(mounts.items()):
            share = names[guest_path]
            res = run_cmd(
                self._vmrun('addSharedFolder', path, share, host_path),
                check=False,
            )
            if res.code != 0:
                log.debug('Share {} exists; updating its host path', share)
                run_cmd(
                    self._vmrun(
                        'setSharedFolderState',
                        path,
                        share,
                        host_path,
                        'writable',
                    )
                )
            log.info(
                'Shared {} with the guest at {}/{}', host_path, HGFS_ROOT, share
            )
