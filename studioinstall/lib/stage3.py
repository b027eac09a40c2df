import re
from pathlib import Path
from urllib.parse import urljoin

from .args import InstallConfig
from .exceptions import DownloadError, SysCallError
from .general import SysCommand
from .networking import download_file, fetch_data_from_url
from .output import debug, info

_ARCHIVE_LINE_REGEX = re.compile(r'^(?P<path>\S+\.tar\.(?:xz|bz2|zst|gz))\s+\d+\s*$')

# pseudo filesystems recursively bound from the host, in mount order
_RBIND_FILESYSTEMS = ('dev', 'sys', 'run')


def parse_stage3_index(content: str) -> str:
	"""
	Returns the archive path listed in a ``latest-stage3-*.txt`` index.
	The file is clearsigned, so PGP armour, comments and blank lines are
	skipped; the first ``<path> <size>`` line wins.
	"""
	for line in content.splitlines():
		if match := _ARCHIVE_LINE_REGEX.match(line.strip()):
			return match.group('path')

	raise DownloadError('No stage3 archive listed in the index file')


class Stage3Installer:
	def __init__(self, config: InstallConfig):
		self._config = config
		self.target = config.mountpoint

	def latest_archive_url(self) -> str:
		index_url = self._config.stage3_index_url
		debug(f'Fetching stage3 index {index_url}')

		archive = parse_stage3_index(fetch_data_from_url(index_url))
		# the listed path is relative to the directory holding the index
		return urljoin(index_url, archive)

	def install(self) -> None:
		url = self.latest_archive_url()
		archive = self.target / Path(url).name

		download_file(url, archive)

		info(f'Extracting {archive.name} into {self.target}')

		try:
			SysCommand([
				'tar',
				'xpf',
				str(archive),
				"--xattrs-include=*.*",
				'--numeric-owner',
				'-C',
				str(self.target),
			])
		finally:
			archive.unlink(missing_ok=True)

	def prepare_chroot(self) -> None:
		info(f'Preparing chroot environment in {self.target}')

		SysCommand(['cp', '--dereference', '/etc/resolv.conf', str(self.target / 'etc')])

		SysCommand(['mount', '--types', 'proc', '/proc', str(self.target / 'proc')])

		for fs in _RBIND_FILESYSTEMS:
			mountpoint = self.target / fs
			mountpoint.mkdir(exist_ok=True)

			try:
				SysCommand(['mount', '--rbind', f'/{fs}', str(mountpoint)])
				SysCommand(['mount', '--make-rslave', str(mountpoint)])
			except SysCallError as err:
				raise SysCallError(f'Could not bind /{fs} into {mountpoint}: {err.message}', err.exit_code, err.worker_log) from err
