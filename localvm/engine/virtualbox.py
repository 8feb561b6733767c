"""VirtualBox engine driven through ``vboxmanage``."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ..errors import EngineNotImplementedError
from ..util import raise_for_result, run_cmd
from .base import VirtualizationEngine

log = logger

IDENTIFIER = 'virtualbox'

NOT_RUNNING = 'is not currently running'


class VirtualBox(VirtualizationEngine):
    kind = IDENTIFIER
    descriptor_suffix = '.vbox'

    def _vboxmanage(self, *args: str) -> list[str]:
        return [self.cfg.virtualbox.vboxmanage, *args]

    def has_snapshot(self, source: str) -> bool:
        name = self.cfg.virtualbox.snapshot_name
        res = run_cmd(
            self._vboxmanage('snapshot', source, 'showvminfo', name),
            check=False,
        )
        return res.code == 0

    def ensure_snapshot(self, source: str) -> str:
        """Take the snapshot a linked clone needs, unless it already exists."""
        name = self.cfg.virtualbox.snapshot_name
        if self.has_snapshot(source):
            return name
        run_cmd(self._vboxmanage('snapshot', source, 'take', name))
        # Only happens the first time a source is cloned, so say so.
        log.info('Created snapshot {!r} of {}', name, source)
        return name

    def _clone(
        self, source: str, snapshot: str, *, work_dir: Path, name: str
    ) -> Path:
        # VirtualBox derives the VM folder from the VM name, so the target is
        # <basefolder>/<name>/<name>.vbox.
        target = work_dir / name / f'{name}.vbox'
        # Linked clones need a snapshot. The implicit one is not written back
        # into the record because the user never asked for it.
        use_snapshot = snapshot or self.ensure_snapshot(source)
        run_cmd(
            self._vboxmanage(
                'clonevm',
                source,
                '--options',
                'link',
                '--basefolder',
                str(work_dir),
                '--name',
                name,
                '--register',
                '--snapshot',
                use_snapshot,
            )
        )
        return target

    def vm_state(self) -> str:
        res = run_cmd(
            self._vboxmanage(
                'showvminfo', self.machine.path, '--machinereadable'
            ),
            check=False,
        )
        if res.code != 0:
            return ''
        for line in res.stdout.splitlines():
            key, _, value = line.partition('=')
            if key.strip() == 'VMState':
                return value.strip().strip('"')
        return ''

    def is_running(self) -> bool:
        if not self.found():
            return False
        return self.vm_state() == 'running'

    def start(self) -> None:
        self.clone('')
        # startvm refuses a machine that is already running.
        if self.is_running():
            log.info('VM already running: {}', self.machine.path)
            return
        run_cmd(
            self._vboxmanage(
                'startvm', self.machine.path, '--type', 'headless'
            )
        )
        log.info('VM started: {}', self.machine.path)

    def stop(self) -> None:
        if not self.found():
            return
        cmd = self._vboxmanage('controlvm', self.machine.path, 'poweroff')
        res = run_cmd(cmd, check=False)
        if res.code != 0:
            if NOT_RUNNING in res.output:
                log.debug('VM already powered off: {}', self.machine.path)
                return
            raise_for_result(cmd, res)
        log.info('VM stopped: {}', self.machine.path)

    def delete(self) -> None:
        if not self.found():
            return
        self.stop()
        run_cmd(
            self._vboxmanage('unregistervm', self.machine.path, '--delete')
        )
        log.info('VM deleted: {}', self.machine.path)
        self.machine.path = ''

    def ip(self) -> str:
        raise EngineNotImplementedError(self.kind, 'ip')

    def mount(self) -> None:
        raise EngineNotImplementedError(self.kind, 'mount')
