# src/manifestor/utils.py
import importlib.metadata
import os
import time
import zipfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from manifestor.constants import (
    API_CALL_DELAY,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    GITHUB_API_TIMEOUT,
    HTTP_NOT_FOUND,
    RULES_FETCH_MAX_ATTEMPTS,
    RULES_FETCH_RETRY_DELAY,
    ZIP_EXTENSION,
)
from manifestor.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `manifestor/{version}`, where `{version}` is the installed package
        version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version("manifestor")
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"manifestor/{app_version}"

    return _USER_AGENT_CACHE


def get_effective_github_token(
    github_token: Optional[str], allow_env_token: bool = True
) -> Optional[str]:
    """
    Determine the GitHub token to use, preferring the explicit argument over the environment.

    Parameters:
        github_token (Optional[str]): Explicit token; surrounding whitespace is ignored.
        allow_env_token (bool): If True, fall back to the `GITHUB_TOKEN` environment variable.

    Returns:
        Optional[str]: The chosen token, or `None` if no token is available.
    """
    candidate = (github_token or "").strip()
    if candidate:
        return candidate
    if not allow_env_token:
        return None
    env_token = os.environ.get("GITHUB_TOKEN")
    return env_token.strip() if env_token else None


def _parse_rate_limit_header(header_value: Any) -> Optional[int]:
    try:
        return int(header_value)
    except (TypeError, ValueError):
        return None


def make_github_api_request(
    url: str,
    github_token: Optional[str] = None,
    allow_env_token: bool = True,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[int] = None,
    _is_retry: bool = False,
) -> requests.Response:
    """
    Perform a GitHub API GET request with optional token authentication.

    Retries once without authentication if the token is rejected with 401, and
    turns an exhausted rate limit (403 with zero remaining) into a descriptive
    HTTPError.

    Returns:
        requests.Response: The HTTP response returned by GitHub.

    Raises:
        requests.HTTPError: For HTTP error responses.
        requests.RequestException: For lower-level network or request errors.
    """
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": get_user_agent(),
    }

    effective_token = get_effective_github_token(github_token, allow_env_token)
    if effective_token:
        headers["Authorization"] = f"Bearer {effective_token}"
        logger.debug("Using GitHub token for API authentication")
    else:
        logger.debug("No GitHub token available - using unauthenticated API requests")

    try:
        actual_timeout = timeout or GITHUB_API_TIMEOUT
        logger.debug(f"Making GitHub API request: {url}")
        response = requests.get(
            url, timeout=actual_timeout, headers=headers, params=params
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        if (
            not _is_retry
            and e.response is not None
            and e.response.status_code == 401
            and effective_token
        ):
            logger.warning(
                f"GitHub token authentication failed for {url}. Retrying without authentication."
            )
            return make_github_api_request(
                url,
                github_token=None,
                allow_env_token=False,
                params=params,
                timeout=timeout,
                _is_retry=True,
            )
        if e.response is not None and e.response.status_code == 403:
            remaining = _parse_rate_limit_header(
                e.response.headers.get("X-RateLimit-Remaining")
            )
            if remaining == 0:
                reset_time = e.response.headers.get("X-RateLimit-Reset")
                reset_time_str = (
                    datetime.fromtimestamp(int(reset_time), timezone.utc).strftime(
                        "%Y-%m-%d %H:%M:%S UTC"
                    )
                    if reset_time
                    else "unknown"
                )
                error_msg = (
                    f"GitHub API rate limit exceeded. Resets at {reset_time_str}. "
                    f"Set GITHUB_TOKEN environment variable for higher rate limits."
                )
            else:
                error_msg = "GitHub API access forbidden"
            logger.error(error_msg)
            raise requests.HTTPError(error_msg, response=e.response) from None
        raise
    finally:
        # Small delay to be respectful to GitHub API, even on errors
        time.sleep(API_CALL_DELAY)

    resp_headers = getattr(response, "headers", None) or {}
    remaining = _parse_rate_limit_header(resp_headers.get("X-RateLimit-Remaining"))
    if remaining is not None:
        logger.debug(f"GitHub API rate-limit remaining: {remaining}")
        if remaining <= 10:
            logger.warning(
                f"GitHub API rate limit running low: {remaining} requests remaining"
            )

    return response


def fetch_json_with_retry(
    url: str,
    github_token: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
    max_attempts: int = RULES_FETCH_MAX_ATTEMPTS,
    retry_delay: float = RULES_FETCH_RETRY_DELAY,
) -> Optional[Any]:
    """
    Fetch a JSON document from the GitHub API with a bounded, linear retry policy.

    Attempt `n` that fails waits `n * retry_delay` seconds before the next one. A
    404 response ends the loop at once since retrying cannot help; every other
    failure (HTTP error, network error, undecodable body) is retried.

    Parameters:
        url (str): API URL to request.
        github_token (Optional[str]): Optional token; the environment is consulted as a fallback.
        params (Optional[Dict[str, Any]]): Query parameters.
        max_attempts (int): Maximum number of attempts.
        retry_delay (float): Base delay in seconds, multiplied by the attempt number.

    Returns:
        The decoded JSON payload, or `None` when the resource does not exist or all attempts failed.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            response = make_github_api_request(url, github_token, params=params)
            return response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == HTTP_NOT_FOUND:
                logger.warning(f"Resource not found: {url}")
                return None
            logger.warning(
                f"Request to {url} failed (attempt {attempt}/{max_attempts}): {e}"
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                f"Request to {url} failed (attempt {attempt}/{max_attempts}): {e}"
            )

        if attempt < max_attempts:
            delay = attempt * retry_delay
            logger.debug(f"Waiting {delay:.1f}s before retrying {url}")
            time.sleep(delay)

    logger.error(f"Giving up on {url} after {max_attempts} attempts")
    return None


def _remove_quietly(path: str) -> None:
    if os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.debug(f"Error removing temporary file {path}: {e}")


def download_file_with_retry(url: str, download_path: str) -> bool:
    """
    Download a remote file to disk and atomically install it.

    Streams the URL to a temporary file through a session whose adapter retries
    connection errors and transient HTTP statuses, validates ZIP archives when the
    destination is a `.zip`, and replaces the destination only on success.

    Parameters:
        url (str): The HTTP(S) URL of the remote file.
        download_path (str): Final filesystem path of the downloaded file.

    Returns:
        bool: `True` if the file was downloaded and installed, `False` otherwise.
    """
    temp_path = f"{download_path}.tmp.{os.getpid()}.{int(time.time() * 1000)}"
    session = requests.Session()
    response = None
    try:
        logger.debug(f"Downloading {url} to temp path: {temp_path}")
        start_time = time.time()
        retry_strategy: Retry = Retry(
            total=DEFAULT_CONNECT_RETRIES,
            connect=DEFAULT_CONNECT_RETRIES,
            read=DEFAULT_CONNECT_RETRIES,
            status=DEFAULT_CONNECT_RETRIES,
            backoff_factor=DEFAULT_BACKOFF_FACTOR,
            status_forcelist=[408, 429, 500, 502, 503, 504],
            allowed_methods=frozenset({"GET", "HEAD"}),
            raise_on_status=False,
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        response = session.get(
            url,
            stream=True,
            timeout=DEFAULT_REQUEST_TIMEOUT,
            headers={"User-Agent": get_user_agent()},
        )
        # Status-based retries have already been applied by urllib3's Retry
        response.raise_for_status()

        parent_dir = os.path.dirname(download_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        downloaded_bytes = 0
        with open(temp_path, "wb") as file:
            for chunk in response.iter_content(chunk_size=DEFAULT_CHUNK_SIZE):
                if chunk:
                    file.write(chunk)
                    downloaded_bytes += len(chunk)

        logger.debug(
            "Downloaded %d bytes from %s in %.2fs",
            downloaded_bytes,
            url,
            time.time() - start_time,
        )

        if download_path.lower().endswith(ZIP_EXTENSION):
            try:
                with zipfile.ZipFile(temp_path, "r") as zf_temp:
                    if zf_temp.testzip() is not None:
                        raise zipfile.BadZipFile(
                            "Downloaded zip file integrity check failed (testzip)."
                        )
            except zipfile.BadZipFile as e_zip_bad:
                logger.error(f"Downloaded zip file {url} is corrupted: {e_zip_bad}")
                return False

        os.replace(temp_path, download_path)
        return True
    except requests.RequestException as e:
        logger.error(f"Network error downloading {url}: {e}")
        return False
    except OSError as e:
        logger.error(f"File error downloading {url} to {download_path}: {e}")
        return False
    finally:
        if response is not None:
            response.close()
        session.close()
        _remove_quietly(temp_path)
