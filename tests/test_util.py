from __future__ import annotations

import pytest

from localvm.errors import LocalVMError
from localvm.util import CmdError, CmdResult, raise_for_result, shell_join
from localvm.util import run_cmd as _run_cmd


def test_shell_join_quotes() -> None:
    cmd = ['vmrun', 'start', '/vms/my vm.vmx', 'nogui']
    s = shell_join(cmd)
    assert "'/vms/my vm.vmx'" in s
    assert s.startswith('vmrun start')


def test_run_cmd_success_and_failure() -> None:
    ok = _run_cmd(['bash', '-c', 'printf ok'], check=True, capture=True)
    assert ok.code == 0
    assert ok.stdout == 'ok'
    bad = _run_cmd(['bash', '-c', 'exit 7'], check=False, capture=True)
    assert bad.code == 7
    with pytest.raises(CmdError):
        _run_cmd(['bash', '-c', 'exit 9'], check=True, capture=True)


def test_cmd_error_is_domain_error_and_carries_output() -> None:
    res = CmdResult(255, 'Error: The file is already in use', '')
    with pytest.raises(LocalVMError, match='already in use') as info:
        raise_for_result(['vmrun', 'deleteVM', '/x.vmx'], res)
    assert info.value.result is res
    assert info.value.cmd == ['vmrun', 'deleteVM', '/x.vmx']


def test_raise_for_result_ignores_success() -> None:
    raise_for_result(['true'], CmdResult(0, '', ''))


def test_cmd_result_output_combines_streams() -> None:
    assert CmdResult(1, 'out', 'err').output == 'out\nerr'
    assert CmdResult(1, '', 'err').output == 'err'
    assert CmdResult(1, '', '').output == ''


def test_run_cmd_failure_carries_output() -> None:
    with pytest.raises(CmdError, match='boom') as info:
        _run_cmd(['bash', '-c', 'echo boom >&2; exit 9'], check=True)
    assert info.value.result.code == 9
    assert info.value.result.stderr.strip() == 'boom'
    assert info.value.cmd == ['bash', '-c', 'echo boom >&2; exit 9']
