"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import LocalVMModalCLI, main

__all__ = ['LocalVMModalCLI', 'main']
