from __future__ import annotations

import pytest

from localvm.util import CmdError, CmdResult


class FakeRunner:
    """Stands in for ``run_cmd`` and records every native command.

    ``responses`` maps a subcommand (the first argument after the tool and
    any ``-T`` host type) to a CmdResult, or to a callable taking the command
    and returning one.
    """

    def __init__(self, responses=None):
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self.responses = dict(responses or {})

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        res = self.responses.get(self.subcommand(cmd), CmdResult(0, '', ''))
        if callable(res):
            res = res(cmd)
        if kwargs.get('check', True) and res.code != 0:
            raise CmdError(cmd, res)
        return res

    @staticmethod
    def subcommand(cmd: list[str]) -> str:
        rest = cmd[1:]
        if rest[:1] == ['-T']:
            rest = rest[2:]
        return rest[0] if rest else ''

    @property
    def subcommands(self) -> list[str]:
        return [self.subcommand(cmd) for cmd in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()
