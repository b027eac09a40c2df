from pathlib import Path

from ..models.device import PartitionPlan, PartitionRole, PartitionTable, TargetDevice
from ..output import debug, info
from ..pipeline import ExitCode, Step
from .device_handler import DiskTool, FilesystemTool

_PARTITION_CODES = {
	PartitionRole.ESP: ExitCode.PARTITION_ESP,
	PartitionRole.ROOT: ExitCode.PARTITION_ROOT,
	PartitionRole.VAR: ExitCode.PARTITION_VAR,
	PartitionRole.SWAP: ExitCode.PARTITION_SWAP,
	PartitionRole.HOME: ExitCode.PARTITION_HOME,
}

_FORMAT_CODES = {
	PartitionRole.ESP: ExitCode.FORMAT_ESP,
	PartitionRole.ROOT: ExitCode.FORMAT_ROOT,
	PartitionRole.VAR: ExitCode.FORMAT_VAR,
	PartitionRole.SWAP: ExitCode.FORMAT_SWAP,
	PartitionRole.HOME: ExitCode.FORMAT_HOME,
}

# root has to come first, the other mount points live on it
_MOUNT_ORDER = (
	(PartitionRole.ROOT, ExitCode.MOUNT_ROOT),
	(PartitionRole.ESP, ExitCode.MOUNT_BOOT),
	(PartitionRole.VAR, ExitCode.MOUNT_VAR),
	(PartitionRole.HOME, ExitCode.MOUNT_HOME),
)


class FilesystemHandler:
	"""
	Applies a :py:class:`PartitionPlan` to the target device: partition
	table, filesystems and mounts under the staging root. Every partition,
	format and mount action is its own step with its own exit code.
	"""

	def __init__(
		self,
		device: TargetDevice,
		plan: PartitionPlan,
		mountpoint: Path,
		disk_tool: DiskTool | None = None,
		fs_tool: FilesystemTool | None = None,
	):
		self._device = device
		self._plan = plan
		self._mountpoint = mountpoint
		self._disk_tool = disk_tool or DiskTool()
		self._fs_tool = fs_tool or FilesystemTool()
		self._table: PartitionTable | None = None

	@property
	def partition_table(self) -> PartitionTable:
		if self._table is None:
			self._table = self._disk_tool.discover_partitions(self._device.path)
			debug(f'Partition table of {self._device.path}: {self._table}')

		return self._table

	def steps(self) -> list[Step]:
		return self.partition_steps() + self.format_steps() + self.mount_steps()

	def partition_steps(self) -> list[Step]:
		return [
			Step(
				f'Create {spec.role.label} partition',
				lambda spec=spec: self._create_partition(spec.role),
				_PARTITION_CODES[spec.role],
			)
			for spec in self._plan.partitions
		]

	def format_steps(self) -> list[Step]:
		return [
			Step(
				f'Format {role.label} partition as {role.fs_type.value}',
				lambda role=role: self._format(role),
				_FORMAT_CODES[role],
			)
			for role in PartitionRole
		]

	def mount_steps(self) -> list[Step]:
		return [
			Step(
				f'Mount {role.label} partition at {role.mountpoint}',
				lambda role=role: self._mount(role),
				code,
			)
			for role, code in _MOUNT_ORDER
		]

	def _create_partition(self, role: PartitionRole) -> None:
		spec = self._plan.get(role)
		path = self._device.path

		self._disk_tool.create_partition(path, spec, new_table=role == PartitionRole.ESP)

		if role == PartitionRole.HOME:
			self._disk_tool.partprobe(path)
			self._disk_tool.udev_sync()

	def _format(self, role: PartitionRole) -> None:
		# the ESP goes without a volume label
		label = None if role == PartitionRole.ESP else role.label
		self._fs_tool.format(role.fs_type, self.partition_table.path(role), label)

	def _mount(self, role: PartitionRole) -> None:
		dev_path = self.partition_table.path(role)
		assert role.mountpoint is not None

		if role == PartitionRole.ROOT:
			target = self._mountpoint
			target.mkdir(parents=True, exist_ok=True)
		else:
			target = self._mountpoint / role.mountpoint.relative_to('/')
			self._fs_tool.prepare_mountpoint(target)

		info(f'Mounting {dev_path} at {target}')
		self._fs_tool.mount(dev_path, target)
