"""Placeholder engine for sources we cannot identify."""

from __future__ import annotations

from pathlib import Path

from ..errors import ConfigurationError, NoConfigurationError
from .base import VirtualizationEngine

IDENTIFIER = 'unknown'


class Unknown(VirtualizationEngine):
    """Rejects every lifecycle call so callers need no special case."""

    kind = IDENTIFIER

    def clone(self, source: str = '') -> None:
        if source:
            raise ConfigurationError(
                'unrecognized virtualization format; '
                'specify a path to .vmx or .vbox'
            )
        raise NoConfigurationError()

    def _clone(
        self, source: str, snapshot: str, *, work_dir: Path, name: str
    ) -> Path:
        raise NoConfigurationError()

    def start(self) -> None:
        raise NoConfigurationError()

    def stop(self) -> None:
        raise NoConfigurationError()

    def restart(self) -> None:
        raise NoConfigurationError()

    def delete(self) -> None:
        raise NoConfigurationError()

    def ip(self) -> str:
        raise NoConfigurationError()

    def mount(self) -> None:
        raise NoConfigurationError()

    def is_running(self) -> bool:
        return False

    def found(self) -> bool:
        return False
