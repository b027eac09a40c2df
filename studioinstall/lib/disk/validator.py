from decimal import Decimal
from pathlib import Path

from ..exceptions import DiskError, PreconditionError
from ..hardware import SysInfo
from ..models.device import SizeUnit, TargetDevice, parse_reported_size
from ..output import debug, info
from ..pipeline import ExitCode
from .device_handler import DiskTool


def validate_target(path: Path, disk_tool: DiskTool, minimum_gib: Decimal | float = Decimal('80.0')) -> TargetDevice:
	"""
	Checks, in this order, that ``path`` is a block device, that nothing on it
	is allocated, that its size is reported in GiB or TiB and that it holds at
	least ``minimum_gib``. Each failure raises :py:class:`PreconditionError`
	carrying its own exit code, an unreadable partition table counts as an
	unsuitable device. Nothing on the device is modified.
	"""
	if not SysInfo.is_block_device(path):
		raise PreconditionError(f'{path} is not a block device', ExitCode.UNSUITABLE_DEVICE)

	try:
		report = disk_tool.print_table(path)
	except DiskError as err:
		raise PreconditionError(str(err), ExitCode.UNSUITABLE_DEVICE) from err

	if not report.is_unallocated:
		raise PreconditionError(
			f'{path} already has partitions ({report.free_size} free of {report.total_size}), refusing to continue',
			ExitCode.UNSUITABLE_DEVICE,
		)

	capacity_gib = capacity_in_gib(report.total_size)
	minimum = Decimal(str(minimum_gib))

	if capacity_gib < minimum:
		raise PreconditionError(
			f'{path} holds {capacity_gib} GiB, at least {minimum} GiB are required',
			ExitCode.BELOW_MINIMUM_CAPACITY,
		)

	info(f'Target device {path}: {capacity_gib} GiB, unallocated')
	return TargetDevice(path, capacity_gib)


def capacity_in_gib(reported: str) -> Decimal:
	try:
		value, unit = parse_reported_size(reported)
	except ValueError as err:
		raise PreconditionError(str(err), ExitCode.INVALID_SIZE_UNIT) from err

	debug(f'Reported device size: {value} {unit}')

	match unit:
		case SizeUnit.GiB.value:
			return value
		case SizeUnit.TiB.value:
			return value * 1024
		case _:
			raise PreconditionError(f'Unexpected size unit in "{reported}", expected GiB or TiB', ExitCode.INVALID_SIZE_UNIT)
