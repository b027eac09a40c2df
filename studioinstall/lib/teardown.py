from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .disk.utils import umount
from .exceptions import RequirementError, SysCallError
from .general import SysCommand
from .output import info, warn

# (path below the staging root, unmount recursively), most specific first
UNMOUNT_TARGETS: tuple[tuple[str, bool], ...] = (
	('dev/shm', False),
	('dev/pts', False),
	('proc', True),
	('dev', True),
	('sys', True),
	('run', True),
	('home', False),
	('var', False),
	('boot', False),
)

FOLLOW_UP_STEPS = (
	'Log in as root and the audio user and change the expired temporary passwords',
	'Run the desktop first-boot wizard after logging in to the graphical session',
	'Verify the clock and enable time synchronisation (timedatectl set-ntp true)',
)


@dataclass
class TeardownReport:
	attempted: list[str] = field(default_factory=list)
	failures: dict[str, str] = field(default_factory=dict)

	@property
	def clean(self) -> bool:
		return not self.failures


class Teardown:
	"""
	Unmounts everything under the staging root. Every action is attempted
	regardless of earlier failures; failures are collected, never raised.
	"""

	def __init__(self, mountpoint: Path):
		self._mountpoint = mountpoint

	def actions(self) -> list[tuple[str, Callable[[], None]]]:
		actions: list[tuple[str, Callable[[], None]]] = []

		for relative, recursive in UNMOUNT_TARGETS:
			path = self._mountpoint / relative
			actions.append((str(path), lambda path=path, recursive=recursive: umount(path, recursive=recursive)))

		actions.append((f'{self._mountpoint} (recursive)', lambda: umount(self._mountpoint, recursive=True)))
		actions.append(('sync', self._sync))

		return actions

	def _sync(self) -> None:
		SysCommand('sync')

	def run(self) -> TeardownReport:
		info(f'Unmounting everything below {self._mountpoint}')
		report = TeardownReport()

		for name, action in self.actions():
			report.attempted.append(name)

			try:
				action()
			except (SysCallError, RequirementError, OSError) as err:
				reason = err.message if isinstance(err, SysCallError) else str(err)
				report.failures[name] = reason

		for name, reason in report.failures.items():
			warn(f'Cleanup of {name} failed: {reason.splitlines()[0] if reason else "unknown error"}')

		return report


def print_follow_up() -> None:
	info('Installation finished. Before relying on the new system:')

	for index, step in enumerate(FOLLOW_UP_STEPS, start=1):
		info(f' {index}. {step}')
