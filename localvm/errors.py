"""Project-specific exception types."""

from __future__ import annotations


class LocalVMError(RuntimeError):
    """Base error for domain-level localvm failures."""


class ConfigurationError(LocalVMError):
    """Raised when the clone source is missing, ambiguous, or conflicting."""


class NoConfigurationError(ConfigurationError):
    """Raised when an operation needs a cloned machine and there is none."""

    def __init__(
        self, message: str = 'no configuration found; you need to clone first'
    ):
        super().__init__(message)


class SourcePoweredOnError(LocalVMError):
    """Raised when the clone source is running and cannot be cloned."""


class DiscoveryError(LocalVMError):
    """Base for MAC/IP/interface lookups that came back empty.

    These do not carry enough context to be shown to a user as-is; callers
    translate them into guidance.
    """


class NotFoundError(DiscoveryError):
    def __init__(self, message: str = 'not found'):
        super().__init__(message)


class NoInterfaceError(DiscoveryError):
    """Raised when the guest has no (matching) virtual network interface."""


class EngineNotImplementedError(LocalVMError, NotImplementedError):
    """Raised by engines for capabilities they do not support."""

    def __init__(self, kind: str = '', operation: str = ''):
        self.kind = kind
        self.operation = operation
        if kind and operation:
            message = (
                f'not implemented: the {kind} engine does not support '
                f'{operation}'
            )
        else:
            message = 'not implemented'
        super().__init__(message)
