class RequirementError(Exception):
	pass


class DiskError(Exception):
	pass


class ConfigurationError(Exception):
	pass


class SysCallError(Exception):
	def __init__(self, message: str, exit_code: int | None = None, worker_log: bytes = b'') -> None:
		super().__init__(message)
		self.message = message
		self.exit_code = exit_code
		self.worker_log = worker_log


class PreconditionError(Exception):
	"""
	The target device is unsuitable. Raised before anything destructive
	happens; ``exit_code`` is the process exit status to report.
	"""

	def __init__(self, message: str, exit_code: int) -> None:
		super().__init__(message)
		self.message = message
		self.exit_code = exit_code


class ServiceException(Exception):
	pass


class PackageError(Exception):
	pass


class DownloadError(Exception):
	pass
