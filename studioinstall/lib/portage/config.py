from pathlib import Path


class MakeConf:
	"""
	Appends settings to the installed system's ``/etc/portage/make.conf``.
	Lines are written in the order they were added, after the stage3 defaults.
	"""

	def __init__(self, target: Path):
		self._config_path = target / 'etc' / 'portage' / 'make.conf'
		self._lines: list[str] = []

	@property
	def path(self) -> Path:
		return self._config_path

	def set_binary_packages(self, binhost: str) -> None:
		self._lines.append('FEATURES="${FEATURES} getbinpkg binpkg-request-signature"')
		self._lines.append(f'PORTAGE_BINHOST="{binhost}"')

	def set_mirrors(self, mirrors: list[str]) -> None:
		self._lines.append(f'GENTOO_MIRRORS="{" ".join(mirrors)}"')

	def set_emerge_defaults(self, jobs: int) -> None:
		self._lines.append(f'EMERGE_DEFAULT_OPTS="${{EMERGE_DEFAULT_OPTS}} --jobs {jobs} --load-average {jobs} --binpkg-respect-use=y"')

	@property
	def lines(self) -> list[str]:
		return list(self._lines)

	def apply(self) -> None:
		if not self._lines:
			return

		self._config_path.parent.mkdir(parents=True, exist_ok=True)

		with self._config_path.open('a') as fh:
			fh.write('\n' + '\n'.join(self._lines) + '\n')


def write_locale_gen(target: Path, locales: list[str]) -> Path:
	locale_gen = target / 'etc' / 'locale.gen'

	with locale_gen.open('a') as fh:
		for entry in locales:
			fh.write(f'{entry}\n')

	return locale_gen
