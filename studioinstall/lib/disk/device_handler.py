from __future__ import annotations

import re
from pathlib import Path

from ..exceptions import DiskError, SysCallError
from ..general import SysCommand
from ..models.device import DiskReport, FilesystemType, PartitionRole, PartitionSpec, PartitionTable, ProvisionedPartition
from ..output import debug, error, info, log
from .utils import get_lsblk_info

_DISK_SIZE_REGEX = re.compile(r'^Disk \S+: \d+ sectors, (?P<size>.+)$', re.MULTILINE)
_FREE_SPACE_REGEX = re.compile(r'^Total free space is \d+ sectors \((?P<size>.+)\)$', re.MULTILINE)
_PARTITION_ROW_REGEX = re.compile(r'^\s+\d+\s+\d+\s+\d+\s+', re.MULTILINE)


def parse_sgdisk_print(path: Path, output: str) -> DiskReport:
	"""
	Reads the disk and free-space sizes out of ``sgdisk --print`` output,
	keeping them as the strings sgdisk printed ("80.0 GiB").
	"""
	total = _DISK_SIZE_REGEX.search(output)
	free = _FREE_SPACE_REGEX.search(output)

	if not total or not free:
		raise DiskError(f'Unexpected sgdisk output for {path}:\n{output}')

	return DiskReport(
		path=path,
		total_size=total.group('size').strip(),
		free_size=free.group('size').strip(),
		partition_count=len(_PARTITION_ROW_REGEX.findall(output)),
	)


class DiskTool:
	"""
	Partition table operations on one block device, through sgdisk.
	"""

	def print_table(self, path: Path) -> DiskReport:
		try:
			output = SysCommand(['sgdisk', '--print', str(path)]).decode()
		except SysCallError as err:
			raise DiskError(f'Could not read partition table of {path}: {err.message}') from err

		report = parse_sgdisk_print(path, output)
		debug(f'Disk report for {path}: {report}')
		return report

	def create_partition(self, path: Path, spec: PartitionSpec, new_table: bool = False) -> None:
		"""
		Appends ``spec`` to the partition table of ``path``. With ``new_table``
		the existing table is replaced by an empty GPT in the same call.
		"""
		index = spec.role.index
		cmd = ['sgdisk']

		if new_table:
			cmd.append('--clear')

		cmd += [
			f'--new={index}:0:{spec.sgdisk_size}',
			f'--typecode={index}:{spec.role.type_code}',
			f'--change-name={index}:{spec.role.label}',
			str(path),
		]

		info(f'Creating partition {index} ({spec.role.label}, {spec.sgdisk_size}) on {path}')

		try:
			SysCommand(cmd)
		except SysCallError as err:
			raise DiskError(f'Could not create partition {index} on {path}: {err.message}') from err

	def set_partition_guid(self, path: Path, role: PartitionRole, guid: str) -> None:
		debug(f'Setting unique GUID of partition {role.index} on {path} to {guid}')

		try:
			SysCommand(['sgdisk', f'--partition-guid={role.index}:{guid}', str(path)])
		except SysCallError as err:
			raise DiskError(f'Could not set GUID of partition {role.index} on {path}: {err.message}') from err

	def partprobe(self, path: Path) -> None:
		try:
			SysCommand(['partprobe', str(path)])
		except SysCallError as err:
			if 'have been written, but we have been unable to inform the kernel of the change' in str(err):
				log(f'Partprobe was not able to inform the kernel of the new disk state (ignoring error): {err}', fg='gray')
			else:
				error(f'"partprobe {path}" failed to run (continuing anyway): {err}')

	@staticmethod
	def udev_sync() -> None:
		try:
			SysCommand('udevadm settle')
		except SysCallError as err:
			debug(f'Failed to synchronize with udev: {err}')

	def discover_partitions(self, path: Path) -> PartitionTable:
		"""
		Maps the partitions lsblk reports under ``path`` onto the layout roles
		by partition number, which covers both sdX1 and nvme0n1p1 naming.
		"""
		lsblk_info = get_lsblk_info(path)
		table = PartitionTable(device=path)

		children = sorted((c for c in lsblk_info.children if c.partn), key=lambda c: c.partn or 0)

		for child in children:
			try:
				role = PartitionRole(child.partn)
			except ValueError:
				raise DiskError(f'Unexpected partition {child.path} on {path}') from None

			table.partitions[role] = ProvisionedPartition(role, child.path)

		if missing := [r.name for r in PartitionRole if r not in table.partitions]:
			raise DiskError(f'Partitions missing on {path} after partitioning: {", ".join(missing)}')

		return table


class FilesystemTool:
	"""
	Filesystem creation, mounting and mount point hardening.
	"""

	def format(self, fs_type: FilesystemType, path: Path, label: str | None = None) -> None:
		match fs_type:
			case FilesystemType.Fat32:
				cmd = ['mkfs.vfat', '-F', '32']
				if label:
					cmd += ['-n', label]
			case FilesystemType.Ext4:
				# Force create
				cmd = ['mkfs.ext4', '-F']
				if label:
					cmd += ['-L', label]
			case FilesystemType.LinuxSwap:
				cmd = ['mkswap']
				if label:
					cmd += ['-L', label]

		cmd.append(str(path))

		debug('Formatting filesystem:', ' '.join(cmd))

		try:
			SysCommand(cmd)
		except SysCallError as err:
			msg = f'Could not format {path} with {fs_type.value}: {err.message}'
			error(msg)
			raise DiskError(msg) from err

	def mount(self, dev_path: Path, target_mountpoint: Path, options: list[str] = []) -> None:
		if not target_mountpoint.exists():
			raise DiskError(f'Target mountpoint {target_mountpoint} does not exist')

		cmd = ['mount']

		if options:
			cmd.extend(('-o', ','.join(options)))

		cmd.extend((str(dev_path), str(target_mountpoint)))

		debug(f'Mounting {dev_path}: {" ".join(cmd)}')

		try:
			SysCommand(cmd)
		except SysCallError as err:
			raise DiskError(f'Could not mount {dev_path} at {target_mountpoint}: {err.message}') from err

	def prepare_mountpoint(self, mountpoint: Path) -> None:
		"""
		Creates ``mountpoint`` as an empty, read-only, immutable directory.
		Nothing can be written into it while the real filesystem is not
		mounted on top of it.
		"""
		mountpoint.mkdir(parents=True, exist_ok=True)

		try:
			SysCommand(['chmod', 'a-w', str(mountpoint)])
			SysCommand(['chattr', '+i', str(mountpoint)])
		except SysCallError as err:
			raise DiskError(f'Could not lock down mount point {mountpoint}: {err.message}') from err

	def uuid(self, dev_path: Path) -> str:
		lsblk_info = get_lsblk_info(dev_path)

		if not lsblk_info.uuid:
			raise DiskError(f'Unable to determine filesystem uuid of {dev_path}')

		return lsblk_info.uuid
