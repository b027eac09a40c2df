from .device_handler import DiskTool, FilesystemTool
from .filesystem import FilesystemHandler
from .planner import plan_partitions
from .validator import validate_target

__all__ = [
	'DiskTool',
	'FilesystemHandler',
	'FilesystemTool',
	'plan_partitions',
	'validate_target',
]
