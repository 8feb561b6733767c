"""Engine identification and construction."""

from __future__ import annotations

from ..config import LocalVMConfig
from ..machine import MachineRecord
from .base import VirtualizationEngine, join_snapshot, split_snapshot
from .unknown import IDENTIFIER as UNKNOWN
from .unknown import Unknown
from .virtualbox import IDENTIFIER as VIRTUALBOX
from .virtualbox import VirtualBox
from .vmware import IDENTIFIER as VMWARE
from .vmware import VMware

ENGINES: dict[str, type[VirtualizationEngine]] = {
    VMWARE: VMware,
    VIRTUALBOX: VirtualBox,
    UNKNOWN: Unknown,
}

_SUFFIXES = {
    '.vmx': VMWARE,
    '.vbox': VIRTUALBOX,
}


def identify(source: str) -> str:
    """Guess the engine kind for a clone source from its file suffix.

    Example:
        >>> identify('/vms/base.vmx:clean')
        'vmware'
        >>> identify('/vms/base.ova')
        'unknown'
    """
    # ``:`` introduces a snapshot name, which would hide the suffix.
    path, _ = split_snapshot(source if isinstance(source, str) else '')
    path = path.strip()
    for suffix, kind in _SUFFIXES.items():
        if path.endswith(suffix):
            return kind
    return UNKNOWN


def engine_for(
    source: str, machine: MachineRecord, cfg: LocalVMConfig | None = None
) -> VirtualizationEngine:
    return ENGINES[identify(source)](machine, cfg)


def engine_from_record(
    machine: MachineRecord, cfg: LocalVMConfig | None = None
) -> VirtualizationEngine:
    """Use the cached engine kind, else identify the record's source."""
    if machine.engine in ENGINES and machine.engine != UNKNOWN:
        return ENGINES[machine.engine](machine, cfg)
    return engine_for(machine.source, machine, cfg)


__all__ = [
    'ENGINES',
    'UNKNOWN',
    'VIRTUALBOX',
    'VMWARE',
    'Unknown',
    'VirtualBox',
    'VirtualizationEngine',
    'VMware',
    'engine_for',
    'engine_from_record',
    'identify',
    'join_snapshot',
    'split_snapshot',
]
