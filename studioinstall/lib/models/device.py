from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

ESP_SIZE_MIB = 300
SWAP_SIZE_MIB = 8 * 1024

_REPORTED_SIZE_REGEX = re.compile(r'^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>\S+)\s*$')


class SizeUnit(Enum):
	GiB = 'GiB'
	TiB = 'TiB'


def parse_reported_size(text: str) -> tuple[Decimal, str]:
	"""
	Splits a size the way sgdisk reports it ("80.0 GiB") into its value and
	its unit string. The unit is returned verbatim so callers can reject
	anything they do not expect.
	"""
	match = _REPORTED_SIZE_REGEX.match(text)

	if not match:
		raise ValueError(f'Unparsable size: {text!r}')

	try:
		value = Decimal(match.group('value'))
	except InvalidOperation as err:
		raise ValueError(f'Unparsable size: {text!r}') from err

	return value, match.group('unit')


@dataclass(frozen=True)
class DiskReport:
	path: Path
	total_size: str
	free_size: str
	partition_count: int = 0

	@property
	def is_unallocated(self) -> bool:
		return self.total_size == self.free_size


@dataclass(frozen=True)
class TargetDevice:
	path: Path
	capacity_gib: Decimal


class FilesystemType(Enum):
	Fat32 = 'fat32'
	Ext4 = 'ext4'
	LinuxSwap = 'linux-swap'


class PartitionRole(Enum):
	"""
	The five partitions of the layout, in on-disk order.
	Type codes are sgdisk's short GPT type codes, see ``sgdisk -L``.
	"""

	ESP = 1
	ROOT = 2
	VAR = 3
	SWAP = 4
	HOME = 5

	@property
	def index(self) -> int:
		return self.value

	@property
	def type_code(self) -> str:
		return {
			PartitionRole.ESP: 'ef00',
			PartitionRole.ROOT: '8304',
			PartitionRole.VAR: '8310',
			PartitionRole.SWAP: '8200',
			PartitionRole.HOME: '8300',
		}[self]

	@property
	def label(self) -> str:
		if self == PartitionRole.ESP:
			return 'EFI'
		return self.name.lower()

	@property
	def fs_type(self) -> FilesystemType:
		match self:
			case PartitionRole.ESP:
				return FilesystemType.Fat32
			case PartitionRole.SWAP:
				return FilesystemType.LinuxSwap
			case _:
				return FilesystemType.Ext4

	@property
	def mountpoint(self) -> Path | None:
		return {
			PartitionRole.ESP: Path('/boot'),
			PartitionRole.ROOT: Path('/'),
			PartitionRole.VAR: Path('/var'),
			PartitionRole.SWAP: None,
			PartitionRole.HOME: Path('/home'),
		}[self]


class PartitionGUID(Enum):
	"""
	Partition type GUIDs, https://uapi-group.org/specifications/specs/discoverable_partitions_specification/
	"""

	LINUX_VAR = '4D21B016-B534-45C2-A9FB-5C16E091FD2D'

	@property
	def bytes(self) -> bytes:
		return uuid.UUID(self.value).bytes


@dataclass(frozen=True)
class PartitionSpec:
	role: PartitionRole
	# None means the partition takes whatever is left on the device
	size_mib: int | None

	@property
	def sgdisk_size(self) -> str:
		if self.size_mib is None:
			return '0'
		if self.size_mib % 1024 == 0:
			return f'+{self.size_mib // 1024}G'
		return f'+{self.size_mib}M'

	def table_data(self) -> dict[str, Any]:
		return {
			'index': self.role.index,
			'label': self.role.label,
			'size': self.sgdisk_size.removeprefix('+') if self.size_mib else 'remaining',
			'type_code': self.role.type_code,
			'filesystem': self.role.fs_type.value,
		}


@dataclass(frozen=True)
class PartitionPlan:
	total_gib: Decimal
	partitions: tuple[PartitionSpec, ...]

	def __post_init__(self) -> None:
		roles = [p.role for p in self.partitions]
		if roles != list(PartitionRole):
			raise ValueError(f'Partition plan must hold {[r.name for r in PartitionRole]} in order, got {[r.name for r in roles]}')

		if any(p.size_mib is None for p in self.partitions[:-1]) or self.partitions[-1].size_mib is not None:
			raise ValueError('Only the last partition may take the remaining space')

	def get(self, role: PartitionRole) -> PartitionSpec:
		return self.partitions[role.index - 1]

	@property
	def fixed_mib(self) -> int:
		return sum(p.size_mib for p in self.partitions if p.size_mib is not None)

	@property
	def home_gib(self) -> Decimal:
		return self.total_gib - Decimal(self.fixed_mib) / 1024


@dataclass(frozen=True)
class ProvisionedPartition:
	role: PartitionRole
	dev_path: Path


@dataclass
class PartitionTable:
	device: Path
	partitions: dict[PartitionRole, ProvisionedPartition] = field(default_factory=dict)

	def path(self, role: PartitionRole) -> Path:
		try:
			return self.partitions[role].dev_path
		except KeyError:
			raise ValueError(f'No {role.name} partition known on {self.device}') from None


class LsblkInfo(BaseModel):
	name: str
	path: Path
	size: int
	type: str | None
	partn: int | None = None
	uuid: str | None = None
	partuuid: str | None = None
	parttype: str | None = None
	partlabel: str | None = None
	fstype: str | None = None
	mountpoints: list[Path] = Field(default_factory=list)
	children: list[LsblkInfo] = Field(default_factory=list)

	@field_validator('mountpoints', mode='before')
	@classmethod
	def remove_none(cls, v: list[Path | None] | None) -> list[Path]:
		return [item for item in v or [] if item is not None]

	@classmethod
	def fields(cls) -> list[str]:
		return [name for name in cls.model_fields if name != 'children']
