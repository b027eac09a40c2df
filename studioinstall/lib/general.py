from __future__ import annotations

import os
import re
import shlex
import subprocess
import sys
from shutil import which
from typing_extensions import override

from .exceptions import RequirementError, SysCallError
from .output import debug

_VT100_ESCAPE_REGEX_BYTES = rb'\x1B\[[?0-9;]*[a-zA-Z]'


def locate_binary(name: str) -> str:
	if path := which(name):
		return path
	raise RequirementError(f'Binary {name} does not exist.')


def clear_vt100_escape_codes(data: bytes) -> bytes:
	return re.sub(_VT100_ESCAPE_REGEX_BYTES, b'', data)


class SysCommand:
	"""
	Runs one external command to completion and keeps its combined
	stdout/stderr. A non-zero exit status raises :py:class:`SysCallError`;
	the full output always lands in the run log.
	"""

	def __init__(
		self,
		cmd: str | list[str],
		peek_output: bool = False,
		input_data: bytes | None = None,
	):
		if isinstance(cmd, str):
			cmd = shlex.split(cmd)

		if cmd and not cmd[0].startswith(('/', './')):
			cmd[0] = locate_binary(cmd[0])

		self.cmd = cmd
		self.peek_output = peek_output
		self.input_data = input_data

		self._trace_log = b''
		self._exit_code: int | None = None

		self._execute()

	@override
	def __repr__(self) -> str:
		return self.decode()

	def _execute(self) -> None:
		debug(f'Executing: {shlex.join(self.cmd)}')

		proc = subprocess.Popen(
			self.cmd,
			stdin=subprocess.PIPE if self.input_data is not None else subprocess.DEVNULL,
			stdout=subprocess.PIPE,
			stderr=subprocess.STDOUT,
			# define the standard locale for command outputs
			env={**os.environ, 'LC_ALL': 'C'},
		)

		if self.input_data is not None and proc.stdin:
			proc.stdin.write(self.input_data)
			proc.stdin.close()

		assert proc.stdout is not None

		for line in iter(proc.stdout.readline, b''):
			self._trace_log += line

			if self.peek_output:
				sys.stdout.write(clear_vt100_escape_codes(line).decode('utf-8', errors='backslashreplace'))
				sys.stdout.flush()

		proc.stdout.close()
		self._exit_code = proc.wait()

		if self._trace_log:
			debug(self.decode())

		if self._exit_code != 0:
			raise SysCallError(
				f'{shlex.join(self.cmd)} exited with abnormal exit code [{self._exit_code}]: {self.decode()[-500:]}',
				self._exit_code,
				worker_log=self._trace_log,
			)

	def decode(self, encoding: str = 'utf-8', errors: str = 'backslashreplace', strip: bool = True) -> str:
		val = self._trace_log.decode(encoding, errors=errors)

		if strip:
			return val.strip()
		return val

	def output(self, remove_cr: bool = True) -> bytes:
		if remove_cr:
			return self._trace_log.replace(b'\r\n', b'\n')

		return self._trace_log


def secret(x: str) -> str:
	"""Masks a password for log output."""
	return '*' * len(x)
