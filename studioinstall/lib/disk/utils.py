from pathlib import Path

from pydantic import BaseModel

from ..exceptions import DiskError, SysCallError
from ..general import SysCommand
from ..models.device import LsblkInfo
from ..output import debug, warn


class LsblkOutput(BaseModel):
	blockdevices: list[LsblkInfo]


def _fetch_lsblk_info(dev_path: Path | str | None = None) -> LsblkOutput:
	cmd = ['lsblk', '--json', '--bytes', '--paths', '--output', ','.join(LsblkInfo.fields())]

	if dev_path:
		cmd.append(str(dev_path))

	try:
		worker = SysCommand(cmd)
	except SysCallError as err:
		# Get the output minus the message/info from lsblk if it returns a non-zero exit code.
		if err.worker_log:
			debug(f'Error calling lsblk: {err.worker_log.decode()}')

		if dev_path:
			raise DiskError(f'Failed to read disk "{dev_path}" with lsblk') from err

		raise err

	output = worker.output(remove_cr=False)
	return LsblkOutput.model_validate_json(output)


def get_lsblk_info(dev_path: Path | str) -> LsblkInfo:
	infos = _fetch_lsblk_info(dev_path)

	if infos.blockdevices:
		return infos.blockdevices[0]

	raise DiskError(f'lsblk failed to retrieve information for "{dev_path}"')


def disk_layouts() -> str:
	try:
		lsblk_output = _fetch_lsblk_info()
	except SysCallError as err:
		warn(f'Could not return disk layouts: {err}')
		return ''

	return lsblk_output.model_dump_json(indent=4)


def umount(mountpoint: Path, recursive: bool = False) -> None:
	cmd = ['umount']

	if recursive:
		cmd.append('--recursive')

	debug(f'Unmounting {mountpoint}')
	SysCommand(cmd + [str(mountpoint)])
