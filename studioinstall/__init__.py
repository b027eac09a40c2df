"""Gentoo audio workstation installer - partitions one disk and installs a configured system."""

import sys
import traceback

from .lib.args import ConfigHandler, InstallConfig
from .lib.disk.utils import disk_layouts
from .lib.exceptions import ConfigurationError
from .lib.general import SysCommand
from .lib.hardware import SysInfo
from .lib.output import FormattedOutput, debug, error, info, log, logger, warn
from .lib.pipeline import ExitCode


def _log_sys_info() -> None:
	# Log various information about hardware before starting the installation. This might assist in troubleshooting
	debug(f'UEFI mode: {SysInfo.has_uefi()}; usable cores: {SysInfo.cpu_count()}')

	if not SysInfo.has_uefi():
		warn('The host was not booted in UEFI mode, the installed boot manager requires UEFI')

	# For support reasons, we'll log the disk layout pre installation to match against post-installation layout
	debug(f'Disk states before installing:\n{disk_layouts()}')


def main(argv: list[str] | None = None) -> int:
	from .scripts.studio import perform_installation

	try:
		handler = ConfigHandler(argv)
	except ConfigurationError as err:
		error(str(err))
		return ExitCode.FAILURE

	logger.configure(handler.config.log_path)
	logger.verbose = handler.args.debug

	if not SysInfo.is_block_device(handler.args.device):
		error(f'{handler.args.device} is not a block device')
		return ExitCode.UNSUITABLE_DEVICE

	if not SysInfo.is_root():
		error('studioinstall requires root privileges to run. See --help for more.')
		return ExitCode.FAILURE

	info(f'Logging to {logger.path}')
	_log_sys_info()

	return perform_installation(handler)


def run_as_a_module() -> None:
	"""
	The single exit handler: whatever ends the run, a non-zero exit status
	is reported together with the log file before the process exits with it.
	"""
	rc: int = ExitCode.SUCCESS

	try:
		rc = main()
	except SystemExit as exc:
		if exc.code is None:
			rc = ExitCode.SUCCESS
		elif isinstance(exc.code, int):
			rc = exc.code
		else:
			rc = ExitCode.FAILURE
	except KeyboardInterrupt:
		error('Interrupted, mounts below the staging root may still be attached')
		rc = 130
	except Exception as exc:
		error(''.join(traceback.format_exception(exc)))
		rc = ExitCode.FAILURE

	if rc != ExitCode.SUCCESS:
		error(f'studioinstall exited with code {int(rc)}, see the log file {logger.path}')

	sys.exit(int(rc))


__all__ = [
	'ConfigHandler',
	'FormattedOutput',
	'InstallConfig',
	'SysCommand',
	'SysInfo',
	'debug',
	'disk_layouts',
	'error',
	'info',
	'log',
	'main',
	'run_as_a_module',
	'warn',
]
