from decimal import Decimal

from ..models.device import ESP_SIZE_MIB, SWAP_SIZE_MIB, PartitionPlan, PartitionRole, PartitionSpec

# (exclusive upper capacity bound in GiB, root GiB, var GiB)
_TIERS: tuple[tuple[Decimal, int, int], ...] = (
	(Decimal(100), 20, 8),
	(Decimal(128), 30, 12),
	(Decimal(256), 40, 18),
	(Decimal(512), 60, 26),
)
_LARGEST_TIER = (80, 40)


def tier_sizes(capacity_gib: Decimal) -> tuple[int, int]:
	"""Root and var sizes in GiB for a device of ``capacity_gib``."""
	for upper, root, var in _TIERS:
		if capacity_gib < upper:
			return root, var

	return _LARGEST_TIER


def plan_partitions(capacity_gib: Decimal) -> PartitionPlan:
	root_gib, var_gib = tier_sizes(capacity_gib)

	return PartitionPlan(
		total_gib=capacity_gib,
		partitions=(
			PartitionSpec(PartitionRole.ESP, ESP_SIZE_MIB),
			PartitionSpec(PartitionRole.ROOT, root_gib * 1024),
			PartitionSpec(PartitionRole.VAR, var_gib * 1024),
			PartitionSpec(PartitionRole.SWAP, SWAP_SIZE_MIB),
			PartitionSpec(PartitionRole.HOME, None),
		),
	)
