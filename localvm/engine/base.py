"""Capability contract shared by every virtualization engine.

When implementing an engine, remember that the user told the machine to do
something now: do not wait for the guest OS to cooperate. Stop cuts the power,
delete is the nuke-it-from-orbit button, and every call is safe to repeat.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from ..config import LocalVMConfig
from ..errors import ConfigurationError
from ..machine import WORK_DIR, MachineRecord
from ..util import ensure_dir

log = logger


def split_snapshot(source: str) -> tuple[str, str]:
    """Split ``<path>:<snapshot>`` into its parts.

    Example:
        >>> split_snapshot('/vms/base.vmx:clean')
        ('/vms/base.vmx', 'clean')
        >>> split_snapshot('/vms/base.vmx')
        ('/vms/base.vmx', '')
    """
    path, _, snapshot = (source or '').partition(':')
    return path, snapshot


def join_snapshot(path: str, snapshot: str) -> str:
    return f'{path}:{snapshot}' if snapshot else path


class VirtualizationEngine(ABC):
    """Lifecycle operations for one machine record on one backend."""

    kind: str = ''
    descriptor_suffix: str = ''

    def __init__(
        self, machine: MachineRecord, cfg: LocalVMConfig | None = None
    ) -> None:
        self.machine = machine
        self.cfg = cfg or LocalVMConfig()

    def __repr__(self) -> str:
        return f'{type(self).__name__}(path={self.machine.path!r})'

    def clone(self, source: str = '') -> None:
        """Clone the source VM unless a clone already exists.

        An explicit ``source`` that differs from the one already cloned is
        refused; the user has to delete first.
        """
        resolved = self._resolve_clone_source(source)
        if resolved is None:
            log.debug('Machine already cloned from {}', self.machine.source)
            return
        src_path, snapshot = split_snapshot(resolved)
        project_dir = Path.cwd()
        work_dir = project_dir / WORK_DIR
        ensure_dir(work_dir)
        # Named after the project folder. Not perfect, but good enough.
        name = project_dir.name
        target = self._clone(src_path, snapshot, work_dir=work_dir, name=name)
        self.machine.path = str(target)
        self.machine.source = join_snapshot(src_path, snapshot)
        self.machine.engine = self.kind
        log.info('Cloned {} to {}', self.machine.source, self.machine.path)

    def _resolve_clone_source(self, source: str) -> str | None:
        """Return the source to clone from, or None if there is nothing to do."""
        source = (source or '').strip()
        if not source and not self.machine.source:
            raise ConfigurationError(
                'no clone source; clone a virtual machine first, '
                'e.g. localvm clone /path/to/some.vmx'
            )
        if self.found():
            if source and source != self.machine.source:
                raise ConfigurationError(
                    f'asked to clone from {source!r} but the virtual machine '
                    f'is already cloned from {self.machine.source!r}; '
                    'you must delete the existing clone before cloning a '
                    'different source'
                )
            return None
        return source or self.machine.source

    @abstractmethod
    def _clone(
        self, source: str, snapshot: str, *, work_dir: Path, name: str
    ) -> Path:
        """Run the native linked clone and return the new descriptor path."""

    @abstractmethod
    def start(self) -> None:
        """Clone if needed, then power on headless. Running is success."""

    @abstractmethod
    def stop(self) -> None:
        """Hard power-off. A missing or stopped machine is success."""

    def restart(self) -> None:
        self.stop()
        self.start()

    @abstractmethod
    def delete(self) -> None:
        """Stop and remove the clone, keeping ``source`` for a re-clone."""

    @abstractmethod
    def ip(self) -> str:
        """Return the first discoverable IP address of the guest."""

    @abstractmethod
    def mount(self) -> None:
        """Make the record's host folders available in the guest."""

    @abstractmethod
    def is_running(self) -> bool:
        """Ask the native tool whether the guest is powered on."""

    def found(self) -> bool:
        path = self.machine.path
        if not path:
            return False
        p = Path(path)
        if self.descriptor_suffix and p.suffix != self.descriptor_suffix:
            return False
        try:
            return p.is_file()
        except OSError:
            return False
