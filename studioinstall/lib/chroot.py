import shlex
from pathlib import Path

from .general import SysCommand


def chroot_command(target: Path, cmd: str) -> list[str]:
	"""
	The command line that runs the shell snippet ``cmd`` inside ``target``
	with the installed system's profile sourced.
	"""
	return ['chroot', str(target), '/bin/bash', '-c', f'source /etc/profile && {cmd}']


def chroot(target: Path, cmd: str | list[str], peek_output: bool = False, input_data: bytes | None = None) -> SysCommand:
	if isinstance(cmd, list):
		cmd = shlex.join(cmd)

	return SysCommand(chroot_command(target, cmd), peek_output=peek_output, input_data=input_data)
