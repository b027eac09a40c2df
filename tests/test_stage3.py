from pathlib import Path

import pytest
from pytest import MonkeyPatch

from studioinstall.lib import stage3
from studioinstall.lib.args import InstallConfig
from studioinstall.lib.exceptions import DownloadError, SysCallError
from studioinstall.lib.stage3 import Stage3Installer, parse_stage3_index

from .conftest import CommandRecorder

ARCHIVE = '20261011T170501Z/stage3-amd64-desktop-systemd-20261011T170501Z.tar.xz'


def test_parse_clearsigned_index(stage3_index: str) -> None:
	assert parse_stage3_index(stage3_index) == ARCHIVE


def test_parse_index_without_archive() -> None:
	with pytest.raises(DownloadError):
		parse_stage3_index('# Latest as of Sun, 11 Oct 2026 17:05:01 +0000\n# ts=1791738301\n')


def test_archive_url_is_relative_to_index(monkeypatch: MonkeyPatch, stage3_index: str, tmp_path: Path) -> None:
	monkeypatch.setattr(stage3, 'fetch_data_from_url', lambda url: stage3_index)

	url = Stage3Installer(InstallConfig(mountpoint=tmp_path)).latest_archive_url()

	assert url == f'https://distfiles.gentoo.org/releases/amd64/autobuilds/{ARCHIVE}'


def _fake_download(downloads: list[str]):
	def download(url: str, destination: Path) -> Path:
		downloads.append(url)
		destination.write_bytes(b'stage3')
		return destination

	return download


def test_install_extracts_and_removes_archive(
	monkeypatch: MonkeyPatch,
	syscommand: CommandRecorder,
	stage3_index: str,
	tmp_path: Path,
) -> None:
	downloads: list[str] = []
	monkeypatch.setattr(stage3, 'fetch_data_from_url', lambda url: stage3_index)
	monkeypatch.setattr(stage3, 'download_file', _fake_download(downloads))

	Stage3Installer(InstallConfig(mountpoint=tmp_path)).install()

	archive = tmp_path / 'stage3-amd64-desktop-systemd-20261011T170501Z.tar.xz'
	assert downloads == [f'https://distfiles.gentoo.org/releases/amd64/autobuilds/{ARCHIVE}']
	assert syscommand.calls == [
		['tar', 'xpf', str(archive), '--xattrs-include=*.*', '--numeric-owner', '-C', str(tmp_path)],
	]
	assert not archive.exists()


def test_failed_extraction_removes_archive(
	monkeypatch: MonkeyPatch,
	syscommand: CommandRecorder,
	stage3_index: str,
	tmp_path: Path,
) -> None:
	monkeypatch.setattr(stage3, 'fetch_data_from_url', lambda url: stage3_index)
	monkeypatch.setattr(stage3, 'download_file', _fake_download([]))
	syscommand.fail('tar xpf', 'tar: Unexpected EOF in archive', exit_code=2)

	with pytest.raises(SysCallError):
		Stage3Installer(InstallConfig(mountpoint=tmp_path)).install()

	assert list(tmp_path.glob('*.tar.xz')) == []


def test_prepare_chroot(syscommand: CommandRecorder, tmp_path: Path) -> None:
	Stage3Installer(InstallConfig(mountpoint=tmp_path)).prepare_chroot()

	assert syscommand.commands == [
		f'cp --dereference /etc/resolv.conf {tmp_path}/etc',
		f'mount --types proc /proc {tmp_path}/proc',
		f'mount --rbind /dev {tmp_path}/dev',
		f'mount --make-rslave {tmp_path}/dev',
		f'mount --rbind /sys {tmp_path}/sys',
		f'mount --make-rslave {tmp_path}/sys',
		f'mount --rbind /run {tmp_path}/run',
		f'mount --make-rslave {tmp_path}/run',
	]


def test_failed_bind_names_the_filesystem(syscommand: CommandRecorder, tmp_path: Path) -> None:
	syscommand.fail('--rbind /sys', 'mount: permission denied', exit_code=32)

	with pytest.raises(SysCallError) as exc_info:
		Stage3Installer(InstallConfig(mountpoint=tmp_path)).prepare_chroot()

	assert '/sys' in exc_info.value.message
	assert exc_info.value.exit_code == 32
