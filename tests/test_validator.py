from decimal import Decimal
from pathlib import Path

import pytest
from pytest import MonkeyPatch

from studioinstall.lib.disk.device_handler import DiskTool, parse_sgdisk_print
from studioinstall.lib.disk.validator import capacity_in_gib, validate_target
from studioinstall.lib.exceptions import DiskError, PreconditionError
from studioinstall.lib.hardware import SysInfo
from studioinstall.lib.models.device import SizeUnit
from studioinstall.lib.pipeline import ExitCode

from .conftest import CommandRecorder


def _empty_disk(size: str) -> str:
	return (
		f'Disk /dev/sda: 167772160 sectors, {size}\n'
		'Sector size (logical/physical): 512/512 bytes\n'
		f'Total free space is 167772093 sectors ({size})\n'
		'\n'
		'Number  Start (sector)    End (sector)  Size       Code  Name\n'
	)


@pytest.fixture
def block_device(monkeypatch: MonkeyPatch) -> None:
	monkeypatch.setattr(SysInfo, 'is_block_device', staticmethod(lambda path: True))


def test_parse_empty_disk(sgdisk_empty_80g: str) -> None:
	report = parse_sgdisk_print(Path('/dev/sda'), sgdisk_empty_80g)

	assert report.total_size == '80.0 GiB'
	assert report.free_size == '80.0 GiB'
	assert report.partition_count == 0
	assert report.is_unallocated


def test_parse_partitioned_disk(sgdisk_partitioned_50g: str) -> None:
	report = parse_sgdisk_print(Path('/dev/sdb'), sgdisk_partitioned_50g)

	assert report.total_size == '50.0 GiB'
	assert report.free_size == '1007.0 KiB'
	assert report.partition_count == 2
	assert not report.is_unallocated


def test_parse_garbage() -> None:
	with pytest.raises(DiskError):
		parse_sgdisk_print(Path('/dev/sda'), 'Problem opening /dev/sda for reading!')


@pytest.mark.parametrize(
	'reported, expected',
	[
		('80.0 GiB', Decimal('80.0')),
		('0.5 TiB', Decimal('512.0')),
		('1.8 TiB', Decimal('1843.2')),
	],
)
def test_capacity_in_gib(reported: str, expected: Decimal) -> None:
	assert capacity_in_gib(reported) == expected


@pytest.mark.parametrize('reported', ['500.0 MiB', '1007.0 KiB', 'GiB', ''])
def test_capacity_rejects_unit(reported: str) -> None:
	with pytest.raises(PreconditionError) as exc_info:
		capacity_in_gib(reported)

	assert exc_info.value.exit_code == ExitCode.INVALID_SIZE_UNIT


def test_only_gib_and_tib_are_accepted() -> None:
	assert [unit.value for unit in SizeUnit] == ['GiB', 'TiB']


def test_accepts_empty_disk(block_device: None, syscommand: CommandRecorder, sgdisk_empty_80g: str) -> None:
	syscommand.respond('sgdisk --print', sgdisk_empty_80g)

	target = validate_target(Path('/dev/sda'), DiskTool())

	assert target.path == Path('/dev/sda')
	assert target.capacity_gib == Decimal('80.0')
	# validation never writes to the device
	assert syscommand.commands == ['sgdisk --print /dev/sda']


def test_accepts_terabyte_disk(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.respond('sgdisk --print', _empty_disk('0.5 TiB'))

	assert validate_target(Path('/dev/sda'), DiskTool()).capacity_gib == Decimal('512.0')


def test_rejects_non_block_device(syscommand: CommandRecorder, tmp_path: Path) -> None:
	with pytest.raises(PreconditionError) as exc_info:
		validate_target(tmp_path, DiskTool())

	assert exc_info.value.exit_code == ExitCode.UNSUITABLE_DEVICE
	assert syscommand.calls == []


def test_partitioned_disk_is_rejected_before_capacity(
	block_device: None,
	syscommand: CommandRecorder,
	sgdisk_partitioned_50g: str,
) -> None:
	syscommand.respond('sgdisk --print', sgdisk_partitioned_50g)

	with pytest.raises(PreconditionError) as exc_info:
		validate_target(Path('/dev/sdb'), DiskTool())

	# 50 GiB is also below the minimum, the allocation check comes first
	assert exc_info.value.exit_code == ExitCode.UNSUITABLE_DEVICE


def test_rejects_unexpected_unit(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.respond('sgdisk --print', _empty_disk('500.0 MiB'))

	with pytest.raises(PreconditionError) as exc_info:
		validate_target(Path('/dev/sda'), DiskTool())

	assert exc_info.value.exit_code == ExitCode.INVALID_SIZE_UNIT


def test_rejects_small_disk(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.respond('sgdisk --print', _empty_disk('79.9 GiB'))

	with pytest.raises(PreconditionError) as exc_info:
		validate_target(Path('/dev/sda'), DiskTool())

	assert exc_info.value.exit_code == ExitCode.BELOW_MINIMUM_CAPACITY


def test_minimum_is_configurable(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.respond('sgdisk --print', _empty_disk('60.0 GiB'))

	assert validate_target(Path('/dev/sda'), DiskTool(), minimum_gib=50.0).capacity_gib == Decimal('60.0')


def test_unreadable_disk(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.fail('sgdisk --print', 'Problem opening /dev/sda for reading! Error is 2.', exit_code=2)

	with pytest.raises(PreconditionError) as exc_info:
		validate_target(Path('/dev/sda'), DiskTool())

	assert exc_info.value.exit_code == ExitCode.UNSUITABLE_DEVICE


def test_second_run_is_rejected(block_device: None, syscommand: CommandRecorder) -> None:
	syscommand.respond(
		'sgdisk --print',
		'Disk /dev/sda: 167772160 sectors, 80.0 GiB\n'
		'Total free space is 2014 sectors (1007.0 KiB)\n'
		'\n'
		'Number  Start (sector)    End (sector)  Size       Code  Name\n'
		'   1            2048          616447   300.0 MiB   EF00  EFI\n'
		'   2          616448        42559487   20.0 GiB    8304  root\n'
		'   3        42559488        59336703   8.0 GiB     8310  var\n'
		'   4        59336704        76113919   8.0 GiB     8200  swap\n'
		'   5        76113920       167772126   43.7 GiB    8300  home\n',
	)

	with pytest.raises(PreconditionError) as exc_info:
		validate_target(Path('/dev/sda'), DiskTool())

	assert exc_info.value.exit_code == ExitCode.UNSUITABLE_DEVICE
