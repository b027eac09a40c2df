import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
	from _typeshed import DataclassInstance


class FormattedOutput:
	@classmethod
	def _get_values(cls, o: 'DataclassInstance') -> dict[str, Any]:
		if hasattr(o, 'table_data'):
			return o.table_data()
		elif is_dataclass(o):
			return asdict(o)
		else:
			return o.__dict__

	@classmethod
	def as_table(cls, obj: list[Any], capitalize: bool = False) -> str:
		"""
		Renders a list of records as a plain text table, one record per line,
		so that the result can be handed straight to a print statement.
		"""
		raw_data = [cls._get_values(o) for o in obj]

		column_width: dict[str, int] = {}
		for o in raw_data:
			for k, v in o.items():
				column_width.setdefault(k, 0)
				column_width[k] = max([column_width[k], len(str(v)), len(k)])

		output = ''
		key_list = []
		for key, width in column_width.items():
			key = key.replace('_', ' ')

			if capitalize:
				key = key.capitalize()

			key_list.append(key.ljust(width))

		output += ' | '.join(key_list) + '\n'
		output += '-' * len(output) + '\n'

		for record in raw_data:
			obj_data = []
			for key, width in column_width.items():
				value = record.get(key, '')

				if isinstance(value, int | float) or (isinstance(value, str) and value.isnumeric()):
					obj_data.append(str(value).rjust(width))
				else:
					obj_data.append(str(value).ljust(width))

			output += ' | '.join(obj_data) + '\n'

		return output


class Logger:
	def __init__(self, path: Path | None = None) -> None:
		self._path = path or Path(f'/tmp/studioinstall-{os.getpid()}.log')
		self.verbose = False
		self._console_only = False

	@property
	def path(self) -> Path:
		return self._path

	def configure(self, template: str) -> None:
		"""
		Points the run log at ``template`` with ``{pid}`` substituted.
		Records already written stay in the previous file.
		"""
		self._path = Path(template.format(pid=os.getpid()))
		self._console_only = False

	@staticmethod
	def _open_for_append(log_file: Path) -> None:
		log_file.parent.mkdir(exist_ok=True, parents=True)
		with log_file.open('a'):
			pass

	def _check_permissions(self) -> bool:
		if self._console_only:
			return False

		log_file = self.path

		try:
			self._open_for_append(log_file)
			return True
		except OSError:
			pass

		try:
			# Fallback to creating the log file in the current folder
			self._path = Path('./').absolute() / log_file.name
			self._open_for_append(self.path)
		except OSError:
			self._console_only = True
			warn(f'Unable to place log file at {log_file} or {self.path}, logging to the console only')
			return False

		warn(f'Unable to place log file at {log_file}, creating it in {self.path} instead')
		return True

	def log(self, level: int, content: str) -> None:
		if not self._check_permissions():
			return

		with self.path.open('a') as f:
			ts = _timestamp()
			level_name = logging.getLevelName(level)
			f.write(f'[{ts}] - {level_name} - {content}\n')


logger = Logger()


def _supports_color() -> bool:
	"""
	Return True if the running system's terminal supports color,
	and False otherwise.
	"""
	supported_platform = sys.platform != 'win32' or 'ANSICON' in os.environ

	is_a_tty = hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()
	return supported_platform and is_a_tty


class Font(Enum):
	bold = '1'
	italic = '3'
	underscore = '4'


def _stylize_output(
	text: str,
	fg: str,
	bg: str | None,
	font: list[Font] = [],
) -> str:
	colors = {
		'black': '0',
		'red': '1',
		'green': '2',
		'yellow': '3',
		'blue': '4',
		'magenta': '5',
		'cyan': '6',
		'white': '7',
		'gray': '8;5;246',
	}

	foreground = {key: f'3{colors[key]}' for key in colors}
	background = {key: f'4{colors[key]}' for key in colors}
	code_list = [foreground[fg]]

	if bg:
		code_list.append(background[bg])

	for o in font:
		code_list.append(o.value)

	ansi = ';'.join(code_list)

	return f'\033[{ansi}m{text}\033[0m'


def _timestamp() -> str:
	now = datetime.now(tz=UTC)
	return now.strftime('%Y-%m-%d %H:%M:%S')


def announce(*msgs: str, level: int = logging.INFO) -> None:
	log(*msgs, level=level, fg='cyan', font=[Font.bold])


def info(*msgs: str, level: int = logging.INFO, fg: str = 'white', font: list[Font] = []) -> None:
	log(*msgs, level=level, fg=fg, font=font)


def debug(*msgs: str, level: int = logging.DEBUG) -> None:
	log(*msgs, level=level)


def warn(*msgs: str, level: int = logging.WARNING) -> None:
	log(*msgs, level=level, fg='yellow')


def error(*msgs: str, level: int = logging.ERROR) -> None:
	log(*msgs, level=level, fg='red')


def log(
	*msgs: str,
	level: int = logging.INFO,
	fg: str = 'white',
	bg: str | None = None,
	font: list[Font] = [],
) -> None:
	text = ' '.join([str(x) for x in msgs])

	logger.log(level, text)

	if level == logging.DEBUG and not logger.verbose:
		return

	if _supports_color():
		text = _stylize_output(text, fg, bg, font)

	sys.stdout.write(text + '\n')
	sys.stdout.flush()
