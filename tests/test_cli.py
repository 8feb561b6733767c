"""Tests for the localvm command line."""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest

from localvm.cli import LocalVMModalCLI, main
from localvm.cli.machine import CloneCLI, IPCLI, MountCLI, SSHCLI, StartCLI
from localvm.cli.main import StatusCLI, _count_verbose, _normalize_argv
from localvm.config import LocalVMConfig, save
from localvm.engine import VMware
from localvm.errors import (
    ConfigurationError,
    DiscoveryError,
    LocalVMError,
    NoInterfaceError,
    NotFoundError,
)
from localvm.util import CmdError, CmdResult


def _write_cfg(tmp_path: Path) -> Path:
    cfg = LocalVMConfig()
    cfg.vmware.networking_file = str(tmp_path / 'networking')
    cfg.vmware.leases_file = str(tmp_path / 'vmnet{}.leases')
    return save(tmp_path / 'config.toml', cfg)


def _write_machine(project: Path, **fields) -> Path:
    fpath = project / 'localvm.json'
    fpath.write_text(json.dumps(fields), encoding='utf-8')
    return fpath


def _touch_clone_target(cmd: list[str]) -> CmdResult:
    target = Path(cmd[3])
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text('', encoding='utf-8')
    return CmdResult(0, '', '')


@pytest.fixture
def project(monkeypatch, tmp_path: Path, fake_runner):
    work = tmp_path / 'proj'
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setattr('localvm.engine.vmware.run_cmd', fake_runner)
    return Path.cwd()


def test_normalize_argv() -> None:
    assert _normalize_argv([]) == []
    assert _normalize_argv(['help']) == ['--help']
    assert _normalize_argv(['clone', '/vms/base.vmx']) == [
        'clone',
        '--source',
        '/vms/base.vmx',
    ]
    assert _normalize_argv(['clone', '-v']) == ['clone', '-v']
    assert _normalize_argv(['mount', '/src', '/work', '-v']) == [
        'mount',
        '--host_path',
        '/src',
        '--guest_path',
        '/work',
        '-v',
    ]
    assert _normalize_argv(['ssh', '-l', 'root', 'echo', 'a b']) == [
        'ssh',
        "--passthrough=-l root echo 'a b'",
    ]
    assert _normalize_argv(['ssh']) == ['ssh']
    assert _normalize_argv(['start', '-v']) == ['start', '-v']


def test_count_verbose() -> None:
    assert _count_verbose(['start']) == 0
    assert _count_verbose(['start', '-vv', '--verbose']) == 3
    assert _count_verbose(['ssh', '--passthrough=-v']) == 0


def test_clone_writes_machine_file(project, fake_runner, tmp_path) -> None:
    cfg_path = _write_cfg(tmp_path)
    rc = CloneCLI.main(argv=False, config=str(cfg_path), source='/vms/base.vmx')
    assert rc == 0
    data = json.loads((project / 'localvm.json').read_text(encoding='utf-8'))
    assert data['source'] == '/vms/base.vmx'
    assert data['engine'] == 'vmware'
    assert data['path'] == str(project / '.localvm' / 'proj' / 'proj.vmx')
    assert fake_runner.subcommands == ['clone']


def test_clone_without_source(project, fake_runner, tmp_path) -> None:
    cfg_path = _write_cfg(tmp_path)
    with pytest.raises(ConfigurationError, match='must be specified'):
        CloneCLI.main(argv=False, config=str(cfg_path))
    assert not (project / 'localvm.json').exists()
    assert fake_runner.calls == []


def test_clone_unknown_format(project, fake_runner, tmp_path) -> None:
    cfg_path = _write_cfg(tmp_path)
    with pytest.raises(ConfigurationError, match='unrecognized'):
        CloneCLI.main(argv=False, config=str(cfg_path), source='/vms/base.ova')
    assert not (project / 'localvm.json').exists()


def test_clone_refuses_other_engine_over_existing_clone(
    project, fake_runner, tmp_path, monkeypatch
) -> None:
    cfg_path = _write_cfg(tmp_path)
    monkeypatch.setattr('localvm.engine.virtualbox.run_cmd', fake_runner)
    vmx = project / '.localvm' / 'proj' / 'proj.vmx'
    vmx.parent.mkdir(parents=True)
    vmx.write_text('', encoding='utf-8')
    fpath = _write_machine(
        project, path=str(vmx), source='/vms/base.vmx', engine='vmware'
    )
    before = fpath.read_text(encoding='utf-8')
    for source in ('/vms/other.vbox', '/vms/other.ova'):
        with pytest.raises(ConfigurationError, match='delete the existing clone'):
            CloneCLI.main(argv=False, config=str(cfg_path), source=source)
    assert fake_runner.calls == []
    assert fpath.read_text(encoding='utf-8') == before


def test_failed_command_leaves_machine_file(project, fake_runner, tmp_path) -> None:
    cfg_path = _write_cfg(tmp_path)
    fpath = _write_machine(project, source='/vms/base.vmx')
    before = fpath.read_text(encoding='utf-8')
    fake_runner.responses['clone'] = CmdResult(255, 'Error: Unknown error', '')
    with pytest.raises(CmdError):
        StartCLI.main(argv=False, config=str(cfg_path))
    assert fpath.read_text(encoding='utf-8') == before


def test_start_via_modal_cli(project, fake_runner, tmp_path, capsys) -> None:
    cfg_path = _write_cfg(tmp_path)
    _write_machine(project, source='/vms/base.vmx')
    fake_runner.responses['clone'] = _touch_clone_target
    fake_runner.responses['list'] = CmdResult(0, 'Total running VMs: 0\n', '')
    rc = LocalVMModalCLI.main(
        argv=['start', '--config', str(cfg_path)], _noexit=True
    )
    assert rc in (0, None)
    assert fake_runner.subcommands == ['clone', 'list', 'start']
    assert 'running (vmware)' in capsys.readouterr().out
    data = json.loads((project / 'localvm.json').read_text(encoding='utf-8'))
    assert data['path'].endswith('proj.vmx')


def test_ip_prints_address(project, tmp_path, capsys, monkeypatch) -> None:
    cfg_path = _write_cfg(tmp_path)
    _write_machine(project, source='/vms/base.vmx', engine='vmware')
    monkeypatch.setattr(VMware, 'ip', lambda self: '172.16.23.131')
    assert IPCLI.main(argv=False, config=str(cfg_path)) == 0
    assert capsys.readouterr().out.strip() == '172.16.23.131'


@pytest.mark.parametrize(
    'error, expected',
    [
        (NotFoundError(), 'Is it running'),
        (NoInterfaceError('no nics'), 'network adapter'),
    ],
)
def test_ip_explains_discovery_errors(
    project, tmp_path, monkeypatch, error, expected
) -> None:
    cfg_path = _write_cfg(tmp_path)
    _write_machine(project, source='/vms/base.vmx', engine='vmware')

    def fail(self):
        raise error

    monkeypatch.setattr(VMware, 'ip', fail)
    with pytest.raises(LocalVMError, match=expected) as info:
        IPCLI.main(argv=False, config=str(cfg_path))
    assert not isinstance(info.value, DiscoveryError)


def test_ssh_passes_arguments(project, tmp_path, monkeypatch) -> None:
    cfg_path = _write_cfg(tmp_path)
    _write_machine(
        project, source='/vms/base.vmx', engine='vmware', ssh={'login': 'root'}
    )
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))
        return CmdResult(0, '', '')

    monkeypatch.setattr('localvm.ssh.run_cmd', fake_run)
    monkeypatch.setattr(VMware, 'ip', lambda self: '172.16.23.131')
    rc = SSHCLI.main(
        argv=False, config=str(cfg_path), passthrough="-A echo 'a b'"
    )
    assert rc == 0
    assert calls == [
        ['ssh', '-l', 'root', '-A', '172.16.23.131', 'echo', 'a b']
    ]


def test_mount_records_and_applies(project, tmp_path, monkeypatch) -> None:
    cfg_path = _write_cfg(tmp_path)
    _write_machine(project, source='/vms/base.vmx', engine='vmware')
    applied = []
    monkeypatch.setattr(
        VMware, 'mount', lambda self: applied.append(dict(self.machine.mounts))
    )
    host = tmp_path / 'code'
    host.mkdir()
    rc = MountCLI.main(
        argv=False,
        config=str(cfg_path),
        host_path=str(host),
        guest_path='/work/code',
    )
    assert rc == 0
    expected = {str(host.resolve()): '/work/code'}
    assert applied == [expected]
    data = json.loads((project / 'localvm.json').read_text(encoding='utf-8'))
    assert data['mounts'] == expected


def test_mount_needs_both_paths(project, tmp_path) -> None:
    cfg_path = _write_cfg(tmp_path)
    with pytest.raises(ConfigurationError, match='expected args'):
        MountCLI.main(argv=False, config=str(cfg_path), host_path='/src')


def test_status_without_machine(project, tmp_path, capsys, monkeypatch) -> None:
    cfg_path = _write_cfg(tmp_path)
    monkeypatch.setattr('localvm.host.which', lambda cmd: None)
    assert StatusCLI.main(argv=False, config=str(cfg_path)) == 0
    out = capsys.readouterr().out
    assert 'not configured' in out
    assert not (project / 'localvm.json').exists()


def test_main_reports_errors(project, tmp_path, capsys, monkeypatch) -> None:
    cfg_path = _write_cfg(tmp_path)
    cli_main = importlib.import_module('localvm.cli.main')
    monkeypatch.setattr(cli_main, '_setup_logging', lambda *a: None)
    with pytest.raises(SystemExit) as info:
        main(['ip', '--config', str(cfg_path)])
    assert info.value.code == 2
    assert 'ERROR: no configuration found' in capsys.readouterr().err
    assert not (project / 'localvm.json').exists()
