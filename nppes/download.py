"""Download NPPES distribution archives from CMS.

The monthly full replacement file is published at
``https://download.cms.gov/nppes/NPPES_Data_Dissemination_<Month>_<Year>_V2.zip``.
"""

from __future__ import annotations

import calendar
import logging
import time
import zipfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

import httpx

from . import __version__
from .dataset import DatasetFiles, classify_files
from .errors import DownloadError
from .utils.sanitization import format_bytes, safe_member_name

logger = logging.getLogger(__name__)

NPPES_DOWNLOAD_BASE = "https://download.cms.gov/nppes"
DEFAULT_TIMEOUT = 300.0
DEFAULT_MAX_FILE_SIZE = 20 * 1024**3
CHUNK_SIZE = 1024 * 1024


def latest_distribution_url(today: date | None = None) -> str:
    """URL of the monthly V2 distribution archive for ``today``'s month."""
    today = today or date.today()
    month = calendar.month_name[today.month]
    return f"{NPPES_DOWNLOAD_BASE}/NPPES_Data_Dissemination_{month}_{today.year}_V2.zip"


@dataclass
class ExtractedFiles:
    """Result of extracting a distribution archive."""

    directory: Path
    files: list[Path] = field(default_factory=list)
    dataset: DatasetFiles | None = None

    def has_main_data(self) -> bool:
        return self.dataset is not None and self.dataset.has_main_data()

    def summary(self) -> str:
        if self.dataset is None:
            return "No recognized NPPES files found"
        return self.dataset.summary()


class NppesDownloader:
    """Streams distribution archives to disk and unpacks them.

    Args:
        client: Preconfigured ``httpx.Client`` (a new one is created if omitted)
        timeout: Request timeout in seconds
        max_file_size: Refuse downloads whose Content-Length exceeds this
        max_retries: Retries on connection errors and 5xx responses
        retry_delay: Base delay for exponential backoff, in seconds
        keep_archive: Keep the zip after ``download_and_extract``
        staging_dir: Directory the archive is downloaded into before
            extraction (default: the extraction directory)
        progress_callback: Called with (bytes_downloaded, total_bytes or None)
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_file_size: int | None = DEFAULT_MAX_FILE_SIZE,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        keep_archive: bool = False,
        staging_dir: str | Path | None = None,
        progress_callback: Callable[[int, int | None], None] | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.max_file_size = max_file_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.keep_archive = keep_archive
        self.staging_dir = Path(staging_dir) if staging_dir else None
        self.progress_callback = progress_callback

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
                headers={"User-Agent": f"nppes-dataset/{__version__}"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> NppesDownloader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def download_file(self, url: str, dest: str | Path) -> Path:
        """Stream ``url`` to ``dest``.

        ``dest`` may be a directory, in which case the file name is taken
        from the URL.

        Returns:
            Path of the written file

        Raises:
            DownloadError: On HTTP errors, oversized files, or after
                exhausting retries
        """
        dest = Path(dest)
        if dest.is_dir():
            dest = dest / (safe_member_name(url.rsplit("/", 1)[-1]) or "nppes_download.zip")
        dest.parent.mkdir(parents=True, exist_ok=True)

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._stream_to(url, dest)
            except DownloadError:
                dest.unlink(missing_ok=True)
                raise
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                dest.unlink(missing_ok=True)
                last_error = e
                if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                    raise DownloadError(
                        f"HTTP error {e.response.status_code}: {url}", url=url
                    ) from e

            if attempt < self.max_retries:
                delay = self.retry_delay * (2**attempt)
                logger.warning(f"Download failed, retrying in {delay}s: {last_error}")
                time.sleep(delay)

        raise DownloadError(
            f"Download failed after {self.max_retries + 1} attempts: {last_error}",
            url=url,
        )

    def _stream_to(self, url: str, dest: Path) -> Path:
        logger.info(f"Downloading {url}")
        with self.client.stream("GET", url) as response:
            response.raise_for_status()

            header = response.headers.get("content-length")
            total = int(header) if header and header.isdigit() else None
            if self.max_file_size is not None and total is not None and total > self.max_file_size:
                raise DownloadError(
                    f"File size {format_bytes(total)} exceeds maximum allowed size "
                    f"{format_bytes(self.max_file_size)}",
                    url=url,
                )

            downloaded = 0
            with open(dest, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
                    downloaded += len(chunk)
                    if self.progress_callback:
                        self.progress_callback(downloaded, total)

        logger.info(f"Downloaded {format_bytes(downloaded)} to {dest}")
        return dest

    def extract_zip(self, zip_path: str | Path, out_dir: str | Path | None = None) -> ExtractedFiles:
        """Extract an archive and recognize the distribution files in it.

        Members are flattened into ``out_dir`` (default: beside the archive,
        in a directory named after it). Directory entries and names that
        sanitize to nothing are skipped.

        Raises:
            DownloadError: If the archive is missing or corrupt
        """
        zip_path = Path(zip_path)
        directory = Path(out_dir) if out_dir else zip_path.with_suffix("")
        directory.mkdir(parents=True, exist_ok=True)

        extracted: list[Path] = []
        try:
            with zipfile.ZipFile(zip_path) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    name = safe_member_name(info.filename)
                    if name is None:
                        logger.warning(f"Skipping archive member {info.filename!r}")
                        continue
                    target = directory / name
                    with zf.open(info) as src, open(target, "wb") as dst:
                        while chunk := src.read(CHUNK_SIZE):
                            dst.write(chunk)
                    extracted.append(target)
        except FileNotFoundError as e:
            raise DownloadError(f"Archive not found: {zip_path}", path=zip_path) from e
        except zipfile.BadZipFile as e:
            raise DownloadError(f"Invalid zip archive: {e}", path=zip_path) from e

        result = ExtractedFiles(
            directory=directory,
            files=extracted,
            dataset=classify_files(directory, extracted),
        )
        logger.info(f"Extracted {len(extracted)} files to {directory}. {result.summary()}")
        return result

    def download_and_extract(self, url: str, out_dir: str | Path) -> ExtractedFiles:
        """Download an archive and extract it into ``out_dir``."""
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        staging = self.staging_dir or out_dir
        staging.mkdir(parents=True, exist_ok=True)
        zip_path = self.download_file(url, staging)
        try:
            return self.extract_zip(zip_path, out_dir)
        finally:
            if not self.keep_archive:
                zip_path.unlink(missing_ok=True)

    def download_latest(self, out_dir: str | Path, today: date | None = None) -> ExtractedFiles:
        return self.download_and_extract(latest_distribution_url(today), out_dir)
