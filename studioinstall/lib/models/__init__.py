from .device import (
	DiskReport,
	FilesystemType,
	LsblkInfo,
	PartitionPlan,
	PartitionRole,
	PartitionSpec,
	PartitionTable,
	ProvisionedPartition,
	TargetDevice,
)

__all__ = [
	'DiskReport',
	'FilesystemType',
	'LsblkInfo',
	'PartitionPlan',
	'PartitionRole',
	'PartitionSpec',
	'PartitionTable',
	'ProvisionedPartition',
	'TargetDevice',
]
