import json
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from pytest import MonkeyPatch

from studioinstall.lib import general
from studioinstall.lib.exceptions import SysCallError
from studioinstall.lib.output import logger


@dataclass
class CommandRecorder:
	"""
	Stands in for process execution: every SysCommand is recorded instead of
	run, and answered with the first registered response whose needle occurs
	in the command line.
	"""

	calls: list[list[str]] = field(default_factory=list)
	inputs: list[bytes | None] = field(default_factory=list)
	responses: list[tuple[str, bytes, int]] = field(default_factory=list)

	def respond(self, needle: str, output: str = '', exit_code: int = 0) -> None:
		self.responses.append((needle, output.encode(), exit_code))

	def fail(self, needle: str, output: str = 'failed', exit_code: int = 1) -> None:
		self.respond(needle, output, exit_code)

	@property
	def commands(self) -> list[str]:
		return [' '.join(cmd) for cmd in self.calls]

	def matching(self, needle: str) -> list[str]:
		return [cmd for cmd in self.commands if needle in cmd]

	def execute(self, command: general.SysCommand) -> None:
		self.calls.append(list(command.cmd))
		self.inputs.append(command.input_data)

		line = ' '.join(command.cmd)
		output, exit_code = b'', 0

		for needle, response, code in self.responses:
			if needle in line:
				output, exit_code = response, code
				break

		command._trace_log = output
		command._exit_code = exit_code

		if exit_code != 0:
			raise SysCallError(f'{line} exited with abnormal exit code [{exit_code}]: {output.decode()}', exit_code, worker_log=output)


@pytest.fixture(autouse=True)
def run_log(tmp_path: Path, monkeypatch: MonkeyPatch) -> Path:
	path = tmp_path / 'studioinstall.log'
	monkeypatch.setattr(logger, '_path', path)
	monkeypatch.setattr(logger, 'verbose', False)
	monkeypatch.setattr(logger, '_console_only', False)
	return path


@pytest.fixture
def syscommand(monkeypatch: MonkeyPatch) -> CommandRecorder:
	recorder = CommandRecorder()
	monkeypatch.setattr(general, 'locate_binary', lambda name: name)
	monkeypatch.setattr(general.SysCommand, '_execute', lambda self: recorder.execute(self))
	return recorder


@pytest.fixture(scope='session')
def data_dir() -> Path:
	return Path(__file__).parent / 'data'


@pytest.fixture(scope='session')
def sgdisk_empty_80g(data_dir: Path) -> str:
	return (data_dir / 'sgdisk_empty_80g.txt').read_text()


@pytest.fixture(scope='session')
def sgdisk_partitioned_50g(data_dir: Path) -> str:
	return (data_dir / 'sgdisk_partitioned_50g.txt').read_text()


@pytest.fixture(scope='session')
def stage3_index(data_dir: Path) -> str:
	return (data_dir / 'latest-stage3-amd64-desktop-systemd.txt').read_text()


@pytest.fixture(scope='session')
def eselect_profiles(data_dir: Path) -> str:
	return (data_dir / 'eselect_profile_list.txt').read_text()


def _partition(disk: str, number: int, separator: str) -> dict[str, object]:
	path = f'{disk}{separator}{number}'
	return {
		'name': path,
		'path': path,
		'size': 1024 * 1024 * 1024,
		'type': 'part',
		'partn': number,
		'uuid': f'0000000{number}-1111-2222-3333-444444444444',
		'partuuid': None,
		'parttype': None,
		'partlabel': None,
		'fstype': None,
		'mountpoints': [None],
	}


@pytest.fixture
def lsblk_disk():
	"""Renders ``lsblk --json`` output for a disk holding the given partition numbers."""

	def _render(disk: str, numbers: tuple[int, ...] = (1, 2, 3, 4, 5), separator: str = '') -> str:
		device = {
			'name': disk,
			'path': disk,
			'size': 80 * 1024 * 1024 * 1024,
			'type': 'disk',
			'partn': None,
			'uuid': None,
			'partuuid': None,
			'parttype': None,
			'partlabel': None,
			'fstype': None,
			'mountpoints': [None],
			'children': [_partition(disk, n, separator) for n in numbers],
		}
		return json.dumps({'blockdevices': [device]})

	return _render


@pytest.fixture
def lsblk_partition():
	def _render(disk: str, number: int, separator: str = '') -> str:
		return json.dumps({'blockdevices': [_partition(disk, number, separator)]})

	return _render
