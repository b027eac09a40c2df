import argparse
import json
import sys
from argparse import ArgumentParser
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ConfigDict, Field, ValidationError
from pydantic.dataclasses import dataclass as p_dataclass

from .exceptions import ConfigurationError
from .output import debug
from .pipeline import ExitCode


@p_dataclass
class Arguments:
	device: Path
	config: Path | None = None
	mountpoint: Path | None = None
	dry_run: bool = False
	debug: bool = False


@p_dataclass(config=ConfigDict(extra='forbid'))
class InstallConfig:
	"""
	Every fixed value of an installation run. Defaults describe the
	audio workstation variant; a JSON file given with ``--config`` may
	override any of them.
	"""

	mountpoint: Path = Path('/mnt/gentoo')
	log_path: str = '/tmp/studioinstall-{pid}.log'
	minimum_capacity_gib: float = 80.0

	# base image
	stage3_index_url: str = 'https://distfiles.gentoo.org/releases/amd64/autobuilds/latest-stage3-amd64-desktop-systemd.txt'

	# portage
	binhost: str = 'https://distfiles.gentoo.org/releases/amd64/binpackages/23.0/x86-64'
	mirrors: list[str] = Field(default_factory=lambda: ['https://distfiles.gentoo.org'])
	base_profile: str = 'amd64/23.0/desktop/systemd'
	desktop_profile: str = 'amd64/23.0/desktop/plasma/systemd'
	bootstrap_packages: list[str] = Field(default_factory=lambda: ['dev-vcs/git', 'app-eselect/eselect-repository', 'app-portage/getuto'])
	repository_name: str = 'audio-overlay'
	repository_url: str = 'https://github.com/gentoo-audio/audio-overlay.git'
	meta_package: str = 'kde-plasma/plasma-meta'
	nodeps_packages: list[str] = Field(default_factory=lambda: ['sys-apps/util-linux', 'sys-libs/pam'])
	locales: list[str] = Field(default_factory=lambda: ['en_US ISO-8859-1', 'en_US.UTF-8 UTF-8', 'C.UTF8 UTF-8'])

	# system
	timezone: str = 'UTC'
	network_service: str = 'NetworkManager'
	display_manager: str = 'sddm'
	remote_shell_service: str = 'sshd'
	bluetooth_service: str = 'bluetooth'
	font_families: list[str] = Field(default_factory=lambda: ['dejavu', 'liberation'])
	audio_user: str = 'studio'
	audio_user_groups: list[str] = Field(default_factory=lambda: ['users', 'wheel', 'audio', 'video'])
	latency_group: str = 'audio'
	user_units: dict[str, str] = Field(
		default_factory=lambda: {
			'sockets.target.wants/pipewire.socket': 'pipewire.socket',
			'sockets.target.wants/pipewire-pulse.socket': 'pipewire-pulse.socket',
			'pipewire.service.wants/wireplumber.service': 'wireplumber.service',
		}
	)

	# boot
	kernel_package: str = 'sys-kernel/gentoo-kernel-bin'
	loader_options: list[str] = Field(default_factory=lambda: ['timeout 3', 'console-mode max', 'editor no'])
	kernel_parameters: list[str] = Field(default_factory=lambda: ['rootfstype=ext4', 'quiet', 'threadirqs', 'mitigations=off', 'preempt=full'])

	# first boot
	temporary_password: str = 'changeme'

	@classmethod
	def from_config(cls, args_config: dict[str, Any], args: Arguments) -> 'InstallConfig':
		if args.mountpoint is not None:
			args_config = {**args_config, 'mountpoint': args.mountpoint}

		try:
			return cls(**args_config)
		except ValidationError as err:
			raise ConfigurationError(f'Invalid configuration: {err}') from err


class _UsageParser(ArgumentParser):
	"""
	An argument error is a usage error: usage goes to stdout and the
	process exits with the usage exit code.
	"""

	def error(self, message: str) -> NoReturn:
		self.print_usage(sys.stdout)
		sys.stdout.write(f'{self.prog}: error: {message}\n')
		sys.exit(ExitCode.USAGE)


class ConfigHandler:
	def __init__(self, argv: list[str] | None = None) -> None:
		self._parser: ArgumentParser = self._define_arguments()
		self._args = self._parse_args(argv)
		self._config = InstallConfig.from_config(self._parse_config(), self._args)

	@property
	def config(self) -> InstallConfig:
		return self._config

	@property
	def args(self) -> Arguments:
		return self._args

	def _get_version(self) -> str:
		try:
			return version('studioinstall')
		except PackageNotFoundError:
			return 'studioinstall version not found'

	def _define_arguments(self) -> ArgumentParser:
		parser = _UsageParser(prog='studioinstall', formatter_class=argparse.ArgumentDefaultsHelpFormatter)
		parser.add_argument(
			'device',
			type=Path,
			help='Block device to install to. EVERYTHING on it will be destroyed',
		)
		parser.add_argument(
			'-v',
			'--version',
			action='version',
			version='%(prog)s ' + self._get_version(),
		)
		parser.add_argument(
			'--config',
			type=Path,
			default=None,
			help='JSON file overriding installation defaults',
		)
		parser.add_argument(
			'--mountpoint',
			type=Path,
			default=None,
			help='Staging root the new system is mounted under (default /mnt/gentoo)',
		)
		parser.add_argument(
			'--dry-run',
			action='store_true',
			default=False,
			help='Validate the device and print the partition plan without changing anything',
		)
		parser.add_argument(
			'--debug',
			action='store_true',
			default=False,
			help='Also print debug records to the console',
		)

		return parser

	def _parse_args(self, argv: list[str] | None) -> Arguments:
		argparse_args = vars(self._parser.parse_args(argv))
		return Arguments(**argparse_args)

	def _parse_config(self) -> dict[str, Any]:
		if self._args.config is None:
			return {}

		path = self._args.config
		if not path.exists():
			raise ConfigurationError(f'Could not find file {path}')

		try:
			config = json.loads(path.read_text())
		except json.JSONDecodeError as err:
			raise ConfigurationError(f'{path} is not valid JSON: {err}') from err

		if not isinstance(config, dict):
			raise ConfigurationError(f'{path} must hold a JSON object')

		debug(f'Loaded configuration overrides from {path}: {sorted(config)}')
		return self._cleanup_config(config)

	def _cleanup_config(self, config: dict[str, Any]) -> dict[str, Any]:
		clean_args = {}
		for key, val in config.items():
			if isinstance(val, dict):
				val = self._cleanup_config(val)

			if val is not None:
				clean_args[key] = val

		return clean_args
