from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import IntEnum

from .exceptions import DiskError, DownloadError, PackageError, PreconditionError, RequirementError, ServiceException, SysCallError
from .output import announce, debug, error


class ExitCode(IntEnum):
	"""
	Process exit statuses. Every destructive step has its own code so the
	failing phase can be read from the exit status alone.
	"""

	SUCCESS = 0
	FAILURE = 1
	USAGE = 1
	UNSUITABLE_DEVICE = 2
	INVALID_SIZE_UNIT = 3
	BELOW_MINIMUM_CAPACITY = 4
	PARTITION_ESP = 5
	PARTITION_ROOT = 6
	PARTITION_VAR = 7
	PARTITION_SWAP = 8
	PARTITION_HOME = 9
	FORMAT_ESP = 10
	FORMAT_ROOT = 11
	FORMAT_VAR = 12
	FORMAT_SWAP = 13
	FORMAT_HOME = 14
	MOUNT_ROOT = 15
	MOUNT_BOOT = 16
	MOUNT_VAR = 17
	MOUNT_HOME = 18


# Errors a step may raise that end the run with a reported failure.
# Anything else is a bug and propagates to the exit handler.
STEP_ERRORS = (
	DiskError,
	DownloadError,
	PackageError,
	PreconditionError,
	RequirementError,
	ServiceException,
	SysCallError,
	OSError,
)


@dataclass(frozen=True)
class Step:
	name: str
	action: Callable[[], object]
	exit_code: ExitCode = ExitCode.FAILURE


@dataclass(frozen=True)
class StepSuccess:
	steps_run: int

	@property
	def exit_code(self) -> int:
		return ExitCode.SUCCESS


@dataclass(frozen=True)
class StepFailure:
	index: int
	name: str
	exit_code: int
	reason: str


StepResult = StepSuccess | StepFailure


def run_steps(steps: Sequence[Step]) -> StepResult:
	"""
	Runs ``steps`` in order and stops at the first one that raises.
	The returned failure keeps the 1-based index of the failing step.
	"""
	total = len(steps)

	for index, step in enumerate(steps, start=1):
		announce(f'[{index}/{total}] {step.name}')

		try:
			step.action()
		except STEP_ERRORS as err:
			# precondition errors know their own exit code
			exit_code = err.exit_code if isinstance(err, PreconditionError) else step.exit_code
			reason = err.message if isinstance(err, SysCallError | PreconditionError) else str(err)

			error(f'Step {index} "{step.name}" failed: {reason}')
			debug(f'Step {index} failure type: {type(err).__name__}')

			return StepFailure(index, step.name, int(exit_code), reason)

	return StepSuccess(len(steps))
