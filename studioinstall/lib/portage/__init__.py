import re
from pathlib import Path

from ..chroot import chroot
from ..exceptions import PackageError, SysCallError
from ..general import SysCommand
from ..output import debug, info
from .config import MakeConf, write_locale_gen

# "  [12]  default/linux/amd64/23.0/desktop/systemd (stable) *"
_ESELECT_ROW_REGEX = re.compile(r'^\s*\[(?P<number>\d+)\]\s+(?P<name>\S+)')


def parse_eselect_list(output: str) -> list[tuple[int, str]]:
	"""
	Parses an ``eselect <module> list`` listing into (number, name) pairs,
	dropping status markers such as ``(stable)`` and the active ``*``.
	"""
	entries = []

	for line in output.splitlines():
		if match := _ESELECT_ROW_REGEX.match(line):
			entries.append((int(match.group('number')), match.group('name')))

	return entries


def find_profile(output: str, substring: str) -> tuple[int, str]:
	for number, name in parse_eselect_list(output):
		if substring in name:
			return number, name

	raise PackageError(f'No profile matching "{substring}" is available')


class Portage:
	"""
	The package manager of the installed system, driven through chroot.
	"""

	def __init__(self, target: Path):
		self.target = target

	def run(self, cmd: str, peek_output: bool = False) -> SysCommand:
		return chroot(self.target, cmd, peek_output=peek_output)

	def emerge(self, args: str, packages: str | list[str] = []) -> None:
		if isinstance(packages, str):
			packages = [packages]

		cmd = f'emerge {args} {" ".join(packages)}'.strip()
		info(f'Running {cmd}')

		try:
			self.run(cmd, peek_output=True)
		except SysCallError as err:
			raise PackageError(f'"{cmd}" failed: {err.message}') from err

	def install(self, packages: str | list[str]) -> None:
		self.emerge('--quiet-build --noreplace', packages)

	def sync_tree(self) -> None:
		info('Fetching the package metadata tree')
		self.run('emerge-webrsync', peek_output=True)

	def sync_repository(self, name: str) -> None:
		info(f'Synchronizing repository {name}')
		self.run(f'emaint sync --repo {name}', peek_output=True)

	def add_repository(self, name: str, url: str) -> None:
		info(f'Registering repository {name} from {url}')
		self.run(f'eselect repository add {name} git {url}')

	def init_trust_anchor(self) -> None:
		info('Initializing binary package signing keys')
		self.run('getuto')

	def select_profile(self, substring: str) -> str:
		listing = self.run('eselect profile list').decode()
		number, name = find_profile(listing, substring)

		info(f'Selecting profile [{number}] {name}')
		self.run(f'eselect profile set {number}')
		return name

	def upgrade_world(self, nodeps_packages: list[str]) -> None:
		if nodeps_packages:
			self.emerge('--oneshot --nodeps', nodeps_packages)

		self.emerge('--update --deep --newuse @world')

	def cleanup(self) -> None:
		self.emerge('--depclean')
		debug('Regenerating the metadata cache')
		self.emerge('--regen')


__all__ = [
	'MakeConf',
	'Portage',
	'find_profile',
	'parse_eselect_list',
	'write_locale_gen',
]
