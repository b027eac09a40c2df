import pytest

from studioinstall.lib.exceptions import PackageError, PreconditionError, SysCallError
from studioinstall.lib.pipeline import ExitCode, Step, StepFailure, StepSuccess, run_steps


def test_all_steps_run_in_order() -> None:
	ran: list[str] = []

	steps = [Step(name, lambda name=name: ran.append(name)) for name in ('first', 'second', 'third')]
	result = run_steps(steps)

	assert result == StepSuccess(3)
	assert result.exit_code == 0
	assert ran == ['first', 'second', 'third']


def test_first_failure_stops_the_run() -> None:
	ran: list[str] = []

	def broken() -> None:
		raise SysCallError('emerge exited with abnormal exit code [1]', 1)

	steps = [
		Step('first', lambda: ran.append('first')),
		Step('second', broken, ExitCode.PARTITION_ROOT),
		Step('third', lambda: ran.append('third')),
	]

	result = run_steps(steps)

	assert result == StepFailure(2, 'second', ExitCode.PARTITION_ROOT, 'emerge exited with abnormal exit code [1]')
	assert ran == ['first']


def test_failure_uses_the_generic_code_by_default() -> None:
	def broken() -> None:
		raise PackageError('kde-plasma/plasma-meta could not be installed')

	result = run_steps([Step('install', broken)])

	assert isinstance(result, StepFailure)
	assert result.exit_code == ExitCode.FAILURE
	assert result.reason == 'kde-plasma/plasma-meta could not be installed'


def test_precondition_error_keeps_its_code() -> None:
	def broken() -> None:
		raise PreconditionError('not a block device', ExitCode.UNSUITABLE_DEVICE)

	result = run_steps([Step('validate', broken, ExitCode.FAILURE)])

	assert isinstance(result, StepFailure)
	assert result.exit_code == ExitCode.UNSUITABLE_DEVICE


def test_programming_errors_propagate() -> None:
	def broken() -> None:
		raise KeyError('role')

	with pytest.raises(KeyError):
		run_steps([Step('broken', broken)])


def test_empty_run() -> None:
	assert run_steps([]) == StepSuccess(0)


def test_exit_codes_are_stable() -> None:
	assert ExitCode.USAGE == ExitCode.FAILURE == 1
	assert [ExitCode.PARTITION_ESP, ExitCode.PARTITION_HOME] == [5, 9]
	assert [ExitCode.FORMAT_ESP, ExitCode.FORMAT_HOME] == [10, 14]
	assert [ExitCode.MOUNT_ROOT, ExitCode.MOUNT_BOOT, ExitCode.MOUNT_VAR, ExitCode.MOUNT_HOME] == [15, 16, 17, 18]
