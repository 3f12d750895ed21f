"""
GeoNames dump downloader for Geo Index.
"""

import logging
import time
import zipfile
from pathlib import Path
from typing import List, Union
from urllib.parse import urljoin

import requests


logger = logging.getLogger(__name__)

DEFAULT_GEOFILE_BASE_URL = "https://download.geonames.org/export/dump/"
DEFAULT_POSTALCODE_BASE_URL = "https://download.geonames.org/export/zip/"
USER_AGENT = "geo-index/0.1.0"


class GeoFileDownloader:
    """Download and cache files from geonames.org."""

    def __init__(self, base_url: str = DEFAULT_GEOFILE_BASE_URL,
                 ttl_hours: float = 24, timeout: float = 60):
        """
        Args:
            base_url: Url that relative file names are resolved against
            ttl_hours: Age after which a cached file is downloaded again
            timeout: Request timeout in seconds
        """
        self.base_url = base_url
        self.ttl_hours = ttl_hours
        self.timeout = timeout

    def is_expired(self, path: Path) -> bool:
        """Check whether a cached file is missing or older than the TTL."""
        if not path.exists():
            return True
        age_s = time.time() - path.stat().st_mtime
        return age_s > self.ttl_hours * 3600

    def download_file(self, name: str,
                      destination: Union[str, Path]) -> List[Path]:
        """
        Download a file unless a fresh copy is cached.

        Args:
            name: File name relative to base_url, or an absolute url
            destination: Target directory or file path

        Returns:
            Paths of the downloaded file, or of the files extracted from it
            when it is a zip archive
        """
        url = urljoin(self.base_url, name)
        destination = Path(destination)
        if destination.is_dir():
            destination = destination / Path(name).name
        destination.parent.mkdir(parents=True, exist_ok=True)

        if self.is_expired(destination):
            logger.info("Downloading %s", url)

            response = requests.get(
                url,
                headers={"User-Agent": USER_AGENT, "Cache-Control": "no-cache"},
                timeout=self.timeout
            )
            response.raise_for_status()
            destination.write_bytes(response.content)

            logger.info("Saved %d bytes to %s", len(response.content), destination)
        else:
            logger.info("Using cached %s", destination)

        if destination.suffix.lower() == ".zip":
            return self._unzip(destination)
        return [destination]

    def _unzip(self, path: Path) -> List[Path]:
        files = []

        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                entry_name = Path(info.filename).name
                if not entry_name or entry_name.lower().startswith("readme"):
                    continue

                target = path.parent / entry_name
                if self.is_expired(target):
                    target.write_bytes(archive.read(info))
                files.append(target)

        return files


def create_geofile_downloader(ttl_hours: float = 24) -> GeoFileDownloader:
    """Downloader for the main GeoNames dumps (cities15000.zip, ...)."""
    return GeoFileDownloader(DEFAULT_GEOFILE_BASE_URL, ttl_hours)


def create_postalcode_downloader(ttl_hours: float = 24) -> GeoFileDownloader:
    """Downloader for the GeoNames postal code files."""
    return GeoFileDownloader(DEFAULT_POSTALCODE_BASE_URL, ttl_hours)
