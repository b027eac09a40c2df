import os
import stat
from pathlib import Path


class SysInfo:
	@staticmethod
	def has_uefi() -> bool:
		return os.path.isdir('/sys/firmware/efi')

	@staticmethod
	def cpu_count() -> int:
		# cores this process may run on, not cores installed
		try:
			return len(os.sched_getaffinity(0))
		except AttributeError:
			return os.cpu_count() or 1

	@staticmethod
	def is_block_device(path: Path) -> bool:
		try:
			return stat.S_ISBLK(path.stat().st_mode)
		except OSError:
			return False

	@staticmethod
	def is_root() -> bool:
		return os.getuid() == 0
