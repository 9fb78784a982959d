import os
import shutil
import time
import requests
from typing import Dict, Optional
from urllib.parse import unquote
from romfetch import __version__
from romfetch.logger import get_logger
from romfetch.progress_tracker import DownloadProgress, Spinner, format_percentage

USER_AGENT = f"romfetch/{__version__}"
CHUNK_SIZE = 8192


def derive_filename(url: str) -> str:
    """
    Guess the local file name from a download URL.

    The URL is percent-decoded, then everything after the last '=' is used,
    or after the last '/' when there is no '='.

    Example:
        >>> derive_filename('https://example.com/get.php?file=Street%20Fighter.zip')
        'Street Fighter.zip'
    """
    decoded = unquote(url)
    mark = decoded.rfind('=')
    if mark == -1:
        mark = decoded.rfind('/')
    return decoded[mark + 1:]


def build_headers(user_agent: str = USER_AGENT) -> Dict[str, str]:
    return {'User-Agent': user_agent}


def check_remote(url: str, timeout: float = 30, headers: Optional[Dict[str, str]] = None) -> bool:
    """
    HEAD the URL before downloading.

    Returns:
        bool: True only for a 200 response
    """
    logger = get_logger()
    try:
        response = requests.head(url, headers=headers, timeout=timeout, allow_redirects=True)
    except requests.exceptions.RequestException as e:
        logger.error(f"HEAD request failed for {url}: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"HEAD {url} returned status {response.status_code}")
        return False
    return True


def check_disk_space(required_bytes, path='.'):
    """
    Check if sufficient disk space is available.

    Args:
        required_bytes: Required space in bytes
        path: Path to check (default: current directory)

    Returns:
        bool: True if sufficient space available

    Raises:
        OSError: If insufficient disk space
    """
    stat = shutil.disk_usage(path)
    available_bytes = stat.free

    if available_bytes < required_bytes:
        required_mb = required_bytes / (1024 * 1024)
        available_mb = available_bytes / (1024 * 1024)
        raise OSError(
            f"Insufficient disk space: need {required_mb:.1f}MB, "
            f"have {available_mb:.1f}MB available"
        )

    return True


def _remove_partial(destination: str) -> None:
    if os.path.exists(destination):
        os.remove(destination)


def download_file(url: str, destination: str, display_name: Optional[str] = None,
                  timeout: float = 30, max_retries: int = 3, base_delay: int = 1,
                  max_delay: int = 60, user_agent: str = USER_AGENT,
                  spinner: Optional[Spinner] = None) -> bool:
    """Download `url` to `destination`, streaming with a progress bar.

    Steps:
    1. HEAD pre-check; anything but 200 abandons the download (no retry)
    2. Create destination directory if needed
    3. Retry loop (max_retries times):
        a. Streamed GET with the configured timeout
        b. Check Content-Length against free disk space
        c. Stream chunks to disk, updating the progress bar
        d. Timeouts and 5xx responses back off and retry; other errors stop
    4. Remove any partial file on failure

    Returns:
        bool: True if the file was downloaded completely
    """
    logger = get_logger()
    display_name = display_name or os.path.basename(destination)
    headers = build_headers(user_agent)

    # Step 1: Make sure the file exists before downloading it
    if not check_remote(url, timeout=timeout, headers=headers):
        logger.error(f"File {display_name} failed to download.")
        return False

    # Step 2: Create destination directory
    dest_dir = os.path.dirname(destination)
    if dest_dir:
        os.makedirs(dest_dir, exist_ok=True)

    start = time.monotonic()
    attempt = 0

    # Step 3: Retry loop
    while attempt < max_retries:
        response = None
        try:
            logger.debug(f"Downloading {url} (attempt {attempt + 1}/{max_retries})")

            response = requests.get(url, headers=headers, stream=True, timeout=timeout)
            response.raise_for_status()

            content_length = response.headers.get('Content-Length')
            encoding = response.headers.get('Content-Encoding', 'identity').lower()
            total_size = None
            if content_length:
                check_disk_space(int(content_length), dest_dir or '.')
                # iter_content yields decoded bytes; Content-Length counts encoded ones
                if encoding == 'identity':
                    total_size = int(content_length)
                else:
                    logger.debug(f"{url} is {encoding}-encoded, size unknown")
            else:
                logger.debug(f"No Content-Length header for {url}")

            with DownloadProgress(display_name, total_size, spinner) as progress, \
                    open(destination, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:  # Filter out keep-alive chunks
                        f.write(chunk)
                        progress.update(len(chunk))

            if total_size is not None and progress.downloaded != total_size:
                raise ValueError(
                    f"Incomplete download: expected {total_size} bytes, got {progress.downloaded}"
                )

            elapsed = time.monotonic() - start
            logger.info(
                f"* File {display_name} downloaded in {elapsed:.2f}s "
                f"({format_percentage(progress.percentage).strip()})."
            )
            return True

        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout on attempt {attempt + 1}: {e}")

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status is not None and 500 <= status < 600:
                logger.warning(f"Server error {status} on attempt {attempt + 1}, will retry")
            else:
                logger.error(f"HTTP error (non-retryable): {e}")
                _remove_partial(destination)
                return False

        except (requests.exceptions.RequestException, OSError, ValueError) as e:
            logger.error(f"Download of {display_name} failed: {e}")
            _remove_partial(destination)
            return False

        finally:
            if response is not None:
                response.close()

        attempt += 1
        if attempt < max_retries:
            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.info(f"Retrying in {delay} seconds...")
            time.sleep(delay)

    logger.error(f"Failed to download {url} after {max_retries} attempts")
    _remove_partial(destination)
    return False
