from pathlib import Path

from .chroot import chroot
from .exceptions import ServiceException, SysCallError
from .output import info


class ServiceManager:
	def __init__(self, target: Path):
		self.target = target

	def enable(self, services: str | list[str]) -> None:
		if isinstance(services, str):
			services = [services]

		for service in services:
			info(f'Enabling service {service}')

			try:
				chroot(self.target, f'systemctl enable {service}')
			except SysCallError as err:
				raise ServiceException(f'Unable to enable service {service}: {err.message}') from err

	def set_default_target(self, unit: str) -> None:
		info(f'Setting default boot target to {unit}')

		try:
			chroot(self.target, f'systemctl set-default {unit}')
		except SysCallError as err:
			raise ServiceException(f'Unable to set default target {unit}: {err.message}') from err

	def link_user_units(self, home: Path, units: dict[str, str]) -> list[Path]:
		"""
		Creates the ``~/.config/systemd/user`` wants symlinks ``systemctl --user
		enable`` would create, for a user that cannot log in yet. ``units``
		maps the link path relative to that directory to the unit name.
		"""
		user_dir = self.target / home.relative_to('/') / '.config' / 'systemd' / 'user'
		links = []

		for link, unit in units.items():
			path = user_dir / link
			path.parent.mkdir(parents=True, exist_ok=True)
			path.unlink(missing_ok=True)
			path.symlink_to(Path('/usr/lib/systemd/user') / unit)
			links.append(path)

		return links
