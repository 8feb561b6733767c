"""CLI commands for the machine lifecycle: clone, start, stop, ssh, mount."""

from __future__ import annotations

import shlex

import scriptconfig as scfg

from ..engine import engine_for
from ..errors import ConfigurationError, DiscoveryError
from ..machine import add_mount
from ..ssh import ssh as run_ssh
from ._common import (
    _BaseCommand,
    _explain_discovery_error,
    _finish,
    _ip_or_explain,
    _open_session,
    log,
)


class CloneCLI(_BaseCommand):
    """Clone a VM. Start here!"""

    source = scfg.Value(
        '',
        help='Path to a .vmx or .vbox, optionally followed by :<snapshot>.',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        source = str(args.source or '').strip()
        if not source and not session.machine.source:
            raise ConfigurationError(
                'clone source must be specified, e.g. /path/to/some.vmx'
            )
        if source and not session.engine.found():
            # The user may clone a different kind of VM after a delete. An
            # existing clone stays with its own engine, which refuses a
            # different source.
            session.engine = engine_for(source, session.machine, session.cfg)
        session.engine.clone(source)
        _finish(session)
        return 0


class StartCLI(_BaseCommand):
    """Start the VM, cloning it first if needed."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        session.engine.start()
        _finish(session)
        print(
            f'machine {session.machine.path!r} running '
            f'({session.engine.kind})'
        )
        return 0


class StopCLI(_BaseCommand):
    """Cut the VM's power. For a clean shutdown, shut down the guest first."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        session.engine.stop()
        _finish(session)
        return 0


class RestartCLI(_BaseCommand):
    """Stop and start the VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        session.engine.restart()
        _finish(session)
        return 0


class DeleteCLI(_BaseCommand):
    """Stop and delete the VM. The machine file is kept for a re-clone."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        session.engine.delete()
        _finish(session)
        return 0


class IPCLI(_BaseCommand):
    """Write the VM's IP address to stdout."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        print(_ip_or_explain(session.engine))
        _finish(session)
        return 0


class SSHCLI(_BaseCommand):
    """Open an SSH session to the VM.

    Any ssh flags and a remote command may follow, e.g.
    ``localvm ssh -l root uptime``. Login, identity file, and the network
    interface to use can be set under "ssh" in the machine file.
    """

    passthrough = scfg.Value(
        '', help='Shell-quoted arguments passed through to ssh.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        session = _open_session(args.config)
        extra = shlex.split(str(args.passthrough or ''))
        try:
            code = run_ssh(session.engine, extra)
        except DiscoveryError as ex:
            raise _explain_discovery_error(ex, session.engine) from ex
        _finish(session)
        return code


class MountCLI(_BaseCommand):
    """Mount a host folder into the VM (or re-apply configured mounts)."""

    host_path = scfg.Value('', help='Folder on the host to share.')
    guest_path = scfg.Value('', help='Where the folder appears in the guest.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        host_path = str(args.host_path or '').strip()
        guest_path = str(args.guest_path or '').strip()
        if bool(host_path) != bool(guest_path):
            raise ConfigurationError(
                'expected args <host path to mount> <target path in guest>'
            )
        session = _open_session(args.config)
        if host_path:
            add_mount(session.machine, host_path, guest_path)
        else:
            log.debug('Re-applying configured mounts')
        session.engine.mount()
        _finish(session)
        return 0
