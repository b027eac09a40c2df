import shutil
from pathlib import Path
from urllib.error import URLError
from urllib.request import Request, urlopen

from .exceptions import DownloadError
from .output import debug, info

_USER_AGENT = 'studioinstall'


def fetch_data_from_url(url: str, timeout: int = 30) -> str:
	req = Request(url, headers={'User-Agent': _USER_AGENT})

	try:
		with urlopen(req, timeout=timeout) as response:
			return response.read().decode('UTF-8')
	except (URLError, TimeoutError) as err:
		raise DownloadError(f'Unable to fetch data from url: {url}\n{err}') from err


def download_file(url: str, destination: Path, timeout: int = 60) -> Path:
	"""
	Streams ``url`` into ``destination``. A partially written file is
	removed again when the transfer fails.
	"""
	info(f'Downloading {url}')
	req = Request(url, headers={'User-Agent': _USER_AGENT})

	try:
		with urlopen(req, timeout=timeout) as response, destination.open('wb') as fh:
			shutil.copyfileobj(response, fh, length=1024 * 1024)
	except (URLError, TimeoutError, OSError) as err:
		destination.unlink(missing_ok=True)
		raise DownloadError(f'Unable to download {url} to {destination}: {err}') from err

	debug(f'Downloaded {destination.stat().st_size} bytes to {destination}')
	return destination
