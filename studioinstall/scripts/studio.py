from ..lib.args import ConfigHandler
from ..lib.disk.device_handler import DiskTool, FilesystemTool
from ..lib.disk.filesystem import FilesystemHandler
from ..lib.disk.planner import plan_partitions
from ..lib.disk.validator import validate_target
from ..lib.exceptions import PreconditionError
from ..lib.installer import Installer
from ..lib.models.device import PartitionPlan
from ..lib.output import FormattedOutput, error, info, warn
from ..lib.pipeline import ExitCode, Step, StepFailure, run_steps
from ..lib.stage3 import Stage3Installer
from ..lib.teardown import Teardown, print_follow_up


def show_plan(plan: PartitionPlan) -> None:
	info(f'Partition plan for {plan.total_gib} GiB:')
	info(FormattedOutput.as_table(list(plan.partitions)))
	info(f'home receives the remaining {plan.home_gib:.1f} GiB')


def perform_installation(handler: ConfigHandler) -> int:
	config = handler.config
	args = handler.args

	disk_tool = DiskTool()
	fs_tool = FilesystemTool()

	try:
		device = validate_target(args.device, disk_tool, config.minimum_capacity_gib)
	except PreconditionError as err:
		error(err.message)
		return err.exit_code

	plan = plan_partitions(device.capacity_gib)
	show_plan(plan)

	if args.dry_run:
		info('Dry run, nothing was changed')
		return ExitCode.SUCCESS

	filesystem_handler = FilesystemHandler(device, plan, config.mountpoint, disk_tool, fs_tool)
	stage3 = Stage3Installer(config)
	installation = Installer(config, device, filesystem_handler, disk_tool, fs_tool)

	steps = [
		*filesystem_handler.steps(),
		Step('Install base system', stage3.install),
		Step('Prepare chroot environment', stage3.prepare_chroot),
		*installation.steps(),
	]

	result = run_steps(steps)

	if isinstance(result, StepFailure):
		error(f'Installation stopped at step {result.index} of {len(steps)}: {result.name}')
		warn(f'Filesystems are left mounted below {config.mountpoint} for inspection')
		return result.exit_code

	report = Teardown(config.mountpoint).run()

	if not report.clean:
		warn(f'{len(report.failures)} cleanup action(s) failed, check "findmnt -R {config.mountpoint}" before rebooting')

	print_follow_up()
	return ExitCode.SUCCESS
