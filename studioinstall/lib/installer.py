import hashlib
import hmac
import uuid
from pathlib import Path

from .args import InstallConfig
from .chroot import chroot
from .disk.device_handler import DiskTool, FilesystemTool
from .disk.filesystem import FilesystemHandler
from .exceptions import RequirementError, SysCallError
from .general import secret
from .hardware import SysInfo
from .models.device import PartitionGUID, PartitionRole, TargetDevice
from .output import debug, info, warn
from .pipeline import Step
from .portage import MakeConf, Portage, parse_eselect_list, write_locale_gen
from .systemd import ServiceManager

_PASSWDQC_STRICT = 'enforce=everyone'
_PASSWDQC_RELAXED = 'enforce=none'

_CPU_DMA_LATENCY_RULE = 'DEVPATH=="/devices/virtual/misc/cpu_dma_latency", OWNER="root", GROUP="{group}", MODE="0660"\n'

_BOOT_PACKAGE_USE = {
	'sys-apps/systemd': 'boot',
	'sys-kernel/installkernel': 'systemd-boot',
}


def machine_app_specific_uuid(machine_id: str, app_id: bytes) -> uuid.UUID:
	"""
	Derives a stable per-machine UUID the way systemd does for app specific
	ids: HMAC-SHA256 keyed by the machine id over ``app_id``, truncated to
	128 bits and stamped as a version 4 UUID.
	"""
	try:
		key = bytes.fromhex(machine_id.strip())
	except ValueError as err:
		raise RequirementError(f'Invalid machine id: {machine_id!r}') from err

	if len(key) != 16:
		raise RequirementError(f'Invalid machine id: {machine_id!r}')

	digest = bytearray(hmac.new(key, app_id, hashlib.sha256).digest()[:16])
	digest[6] = (digest[6] & 0x0F) | 0x40
	digest[8] = (digest[8] & 0x3F) | 0x80

	return uuid.UUID(bytes=bytes(digest))


def var_partition_uuid(machine_id: str) -> uuid.UUID:
	return machine_app_specific_uuid(machine_id, PartitionGUID.LINUX_VAR.bytes)


class Installer:
	"""
	Configures the unpacked base system under the staging root: packages
	and profiles, system settings, boot loader and kernel, first boot
	credentials. Every public stage is exposed as pipeline steps.
	"""

	def __init__(
		self,
		config: InstallConfig,
		device: TargetDevice,
		filesystem_handler: FilesystemHandler,
		disk_tool: DiskTool | None = None,
		fs_tool: FilesystemTool | None = None,
	):
		self._config = config
		self._device = device
		self._filesystem_handler = filesystem_handler
		self._disk_tool = disk_tool or DiskTool()
		self._fs_tool = fs_tool or FilesystemTool()

		self.target: Path = config.mountpoint
		self.portage = Portage(self.target)
		self.services = ServiceManager(self.target)

	@property
	def user_home(self) -> Path:
		return Path('/home') / self._config.audio_user

	def run_in_chroot(self, cmd: str) -> str:
		return chroot(self.target, cmd).decode()

	def steps(self) -> list[Step]:
		return self.package_steps() + self.system_steps() + self.boot_steps() + self.first_boot_steps()

	def package_steps(self) -> list[Step]:
		config = self._config

		return [
			Step('Generate machine identity', lambda: self.run_in_chroot('systemd-machine-id-setup')),
			Step('Fetch package metadata tree', self.portage.sync_tree),
			Step('Select base profile', lambda: self.portage.select_profile(config.base_profile)),
			Step('Install bootstrap packages', lambda: self.portage.install(config.bootstrap_packages)),
			Step('Initialize package signing trust anchor', self.portage.init_trust_anchor),
			Step(f'Register repository {config.repository_name}', lambda: self.portage.add_repository(config.repository_name, config.repository_url)),
			Step(f'Synchronize repository {config.repository_name}', lambda: self.portage.sync_repository(config.repository_name)),
			Step('Select desktop profile', lambda: self.portage.select_profile(config.desktop_profile)),
			Step(f'Install {config.meta_package}', lambda: self.portage.install(config.meta_package)),
			Step('Configure make.conf', self.configure_make_conf),
			Step('Write locale.gen entries', lambda: write_locale_gen(self.target, config.locales)),
			Step('Upgrade system', lambda: self.portage.upgrade_world(config.nodeps_packages)),
			Step('Remove unneeded packages and refresh metadata cache', self.portage.cleanup),
		]

	def system_steps(self) -> list[Step]:
		return [
			Step('Set timezone', self.set_timezone),
			Step('Enable services', self.enable_services),
			Step('Generate locales', lambda: self.run_in_chroot('locale-gen')),
			Step('Enable font families', self.enable_fonts),
			Step(f'Set up user {self._config.audio_user}', self.setup_audio_user),
			Step('Grant latency control device access', self.write_latency_rule),
		]

	def boot_steps(self) -> list[Step]:
		return [
			Step('Install boot manager', self.install_boot_manager),
			Step('Write kernel command line', self.write_kernel_cmdline),
			Step('Install kernel', lambda: self.portage.install(self._config.kernel_package)),
		]

	def first_boot_steps(self) -> list[Step]:
		return [
			Step('Derive var partition identity from machine id', self.refresh_var_partition_uuid),
			Step('Set temporary passwords', self.set_temporary_passwords),
		]

	def configure_make_conf(self) -> MakeConf:
		make_conf = MakeConf(self.target)
		make_conf.set_binary_packages(self._config.binhost)
		make_conf.set_mirrors(self._config.mirrors)
		make_conf.set_emerge_defaults(SysInfo.cpu_count())
		make_conf.apply()

		debug(f'Appended to {make_conf.path}: {make_conf.lines}')
		return make_conf

	def set_timezone(self) -> None:
		zone = self._config.timezone

		if not (self.target / 'usr' / 'share' / 'zoneinfo' / zone).exists():
			warn(f'Time zone {zone} is not installed yet, linking it anyway')

		localtime = self.target / 'etc' / 'localtime'
		localtime.unlink(missing_ok=True)
		localtime.symlink_to(Path('../usr/share/zoneinfo') / zone)
		info(f'Timezone set to {zone}')

	def enable_services(self) -> None:
		config = self._config

		self.services.enable([config.network_service, config.display_manager])
		self.services.set_default_target('graphical.target')
		self.services.enable([config.remote_shell_service, config.bluetooth_service])

	def enable_fonts(self) -> list[str]:
		listing = self.run_in_chroot('eselect fontconfig list')
		families = [f.lower() for f in self._config.font_families]

		selected = [name for _, name in parse_eselect_list(listing) if any(family in name.lower() for family in families)]

		if not selected:
			warn(f'No fontconfig entries match {", ".join(families)}')

		for name in selected:
			info(f'Enabling font configuration {name}')
			self.run_in_chroot(f'eselect fontconfig enable {name}')

		return selected

	def _user_exists(self, username: str) -> bool:
		try:
			self.run_in_chroot(f'getent passwd {username}')
			return True
		except SysCallError:
			return False

	def setup_audio_user(self) -> None:
		username = self._config.audio_user

		if not self._user_exists(username):
			info(f'Creating user {username}')
			self.run_in_chroot(f'useradd -m -G {",".join(self._config.audio_user_groups)} {username}')

		links = self.services.link_user_units(self.user_home, self._config.user_units)
		debug(f'User units linked for {username}: {[str(link) for link in links]}')

		self.run_in_chroot(f'chown -R {username}: {self.user_home}')

	def write_latency_rule(self) -> Path:
		rule = self.target / 'etc' / 'udev' / 'rules.d' / '40-cpu-dma-latency.rules'
		rule.parent.mkdir(parents=True, exist_ok=True)
		rule.write_text(_CPU_DMA_LATENCY_RULE.format(group=self._config.latency_group))

		info(f'Granted /dev/cpu_dma_latency to group {self._config.latency_group}')
		return rule

	@property
	def esp(self) -> Path:
		mountpoint = PartitionRole.ESP.mountpoint
		assert mountpoint is not None
		return mountpoint

	def install_boot_manager(self) -> None:
		loader_dir = self.target / self.esp.relative_to('/') / 'loader'
		package_use = self.target / 'etc' / 'portage' / 'package.use'

		for directory in (self.target / 'etc' / 'kernel', package_use, loader_dir):
			directory.mkdir(parents=True, exist_ok=True)

		(package_use / 'bootloader').write_text(''.join(f'{atom} {flags}\n' for atom, flags in _BOOT_PACKAGE_USE.items()))
		self.portage.emerge('--oneshot --update --newuse', list(_BOOT_PACKAGE_USE))

		info(f'Installing systemd-boot to {self.esp}')
		self.run_in_chroot(f'bootctl --esp-path={self.esp} install')

		loader_conf = loader_dir / 'loader.conf'
		loader_conf.write_text('\n'.join(self._config.loader_options) + '\n')
		debug(f'Wrote {loader_conf}: {self._config.loader_options}')

	def kernel_cmdline(self) -> str:
		root_dev = self._filesystem_handler.partition_table.path(PartitionRole.ROOT)
		root_uuid = self._fs_tool.uuid(root_dev)

		return ' '.join([f'root=UUID={root_uuid}', *self._config.kernel_parameters])

	def write_kernel_cmdline(self) -> Path:
		cmdline = self.kernel_cmdline()
		path = self.target / 'etc' / 'kernel' / 'cmdline'
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(cmdline + '\n')

		info(f'Kernel command line: {cmdline}')
		return path

	def refresh_var_partition_uuid(self) -> uuid.UUID:
		machine_id_file = self.target / 'etc' / 'machine-id'

		try:
			machine_id = machine_id_file.read_text()
		except FileNotFoundError as err:
			raise RequirementError(f'{machine_id_file} does not exist, no machine identity was generated') from err

		guid = var_partition_uuid(machine_id)
		self._disk_tool.set_partition_guid(self._device.path, PartitionRole.VAR, str(guid))

		info(f'var partition identity set to {guid}')
		return guid

	def set_temporary_passwords(self) -> None:
		accounts = ['root', self._config.audio_user]
		password = self._config.temporary_password
		passwdqc = self.target / 'etc' / 'security' / 'passwdqc.conf'

		original = passwdqc.read_text() if passwdqc.exists() else None

		if original is not None:
			passwdqc.write_text(original.replace(_PASSWDQC_STRICT, _PASSWDQC_RELAXED))

		try:
			info(f'Setting temporary password ({secret(password)}) for {", ".join(accounts)}')
			input_data = ''.join(f'{account}:{password}\n' for account in accounts).encode()
			chroot(self.target, 'chpasswd', input_data=input_data)
		finally:
			if original is not None:
				passwdqc.write_text(original)

		for account in accounts:
			self.run_in_chroot(f'passwd --expire {account}')
