"""URL downloader for stage library archives"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from stagehub.core.stagelibrary.exceptions import DownloadError

logger = logging.getLogger(__name__)

# Download limits
DEFAULT_MAX_SIZE = 1024 * 1024 * 1024  # 1GB, stage libraries bundle their jars
DEFAULT_TIMEOUT = 300  # 5 minutes
CHUNK_SIZE = 64 * 1024


def calculate_sha256(path: Path) -> str:
    """SHA256 hex digest of a file"""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


class LibraryDownloader:
    """Downloader for stage library archives"""

    def __init__(
        self,
        max_retries: int = 3,
        timeout: int = DEFAULT_TIMEOUT,
        max_size: int = DEFAULT_MAX_SIZE,
    ):
        """
        Initialize downloader

        Args:
            max_retries: Maximum number of retry attempts
            timeout: Request timeout in seconds
            max_size: Maximum archive size in bytes
        """
        self.timeout = timeout
        self.max_size = max_size

        self.session = requests.Session()

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "HEAD"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise DownloadError(f"Invalid URL scheme: {parsed.scheme}. Only http/https allowed.", url)
        if not parsed.netloc:
            raise DownloadError("Invalid URL: missing hostname", url)

    def download(
        self,
        url: str,
        target_path: Path,
        expected_sha256: Optional[str] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> str:
        """
        Download a library archive

        The payload is written to '<target>.tmp' and renamed once complete,
        so a failed download never leaves a file at target_path.

        Args:
            url: URL to download from
            target_path: Target file path
            expected_sha256: Expected SHA256 hash (optional)
            progress_callback: Callback (downloaded_bytes, total_bytes)

        Returns:
            SHA256 hash of the downloaded file

        Raises:
            DownloadError: If the download or verification fails
        """
        logger.info(f"Downloading stage library from: {url}")

        self._validate_url(url)

        target_path = Path(target_path)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target_path.with_suffix(target_path.suffix + ".tmp")

        try:
            response = self.session.get(
                url,
                stream=True,
                timeout=self.timeout,
                headers={"User-Agent": "stagehub-library-downloader/1.0"}
            )
            response.raise_for_status()

            content_length = response.headers.get("Content-Length")
            total_size = int(content_length) if content_length else 0
            if total_size > self.max_size:
                raise DownloadError(
                    f"Archive too large: {total_size / 1024 / 1024:.2f}MB "
                    f"(max: {self.max_size / 1024 / 1024:.0f}MB)",
                    url,
                )

            downloaded_bytes = 0
            start_time = time.time()

            with open(temp_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded_bytes += len(chunk)

                    if downloaded_bytes > self.max_size:
                        raise DownloadError(
                            f"Download exceeded size limit: {downloaded_bytes / 1024 / 1024:.2f}MB",
                            url,
                        )

                    if progress_callback:
                        progress_callback(downloaded_bytes, total_size)

            elapsed_time = time.time() - start_time
            logger.info(f"Download complete: {downloaded_bytes / 1024:.2f}KB in {elapsed_time:.2f}s")

            actual_sha256 = calculate_sha256(temp_path)
            if expected_sha256 and actual_sha256.lower() != expected_sha256.lower():
                raise DownloadError(
                    f"SHA256 verification failed: expected {expected_sha256}, got {actual_sha256}",
                    url,
                )

            temp_path.replace(target_path)
            return actual_sha256

        except DownloadError:
            raise
        except requests.RequestException as e:
            raise DownloadError(f"Download failed: {e}", url) from e
        except OSError as e:
            raise DownloadError(f"Could not write download to {target_path}: {e}", url) from e

        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e:
                    logger.warning(f"Failed to clean up temporary file {temp_path}: {e}")

    def close(self):
        """Close the session"""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
