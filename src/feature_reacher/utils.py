"""Common utilities for adoption-risk auditing."""
import hashlib
import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def setup_logging(name: str, level: Optional[int] = None) -> logging.Logger:
    """Set up structured logging for a module.

    Args:
        name: Logger name (typically __name__)
        level: Logging level (default: LOG_LEVEL env var, else INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    # Only add handler if none exists
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def slugify(text: str, separator: str = "_") -> str:
    """Lowercase ``text`` and collapse non-alphanumeric runs into ``separator``."""
    return _SLUG_RE.sub(separator, (text or "").lower())


def sha256_hex(text: str) -> str:
    return hashlib.sha256((text or "").encode("utf-8", errors="ignore")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware datetimes pass through."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def parse_iso(timestamp: str) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime string into an aware UTC datetime.

    Args:
        timestamp: ISO string such as ``2024-03-01`` or ``2024-03-01T10:00:00Z``

    Returns:
        Aware datetime, or None when the string cannot be parsed
    """
    if not timestamp:
        return None
    try:
        parsed = datetime.fromisoformat(timestamp.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(parsed)


def create_session_with_retry(
    retries: int = 3,
    backoff_factor: float = 0.5,
    status_forcelist: tuple = (500, 502, 503, 504),
) -> requests.Session:
    """Create a requests session with retry logic.

    Args:
        retries: Number of retry attempts
        backoff_factor: Backoff multiplier between retries
        status_forcelist: HTTP status codes to retry on

    Returns:
        Configured requests.Session
    """
    session = requests.Session()
    retry = Retry(
        total=retries,
        read=retries,
        connect=retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=["GET"]
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def fetch_text(
    url: str,
    logger: Optional[logging.Logger] = None,
    timeout: int = 30,
    **kwargs
) -> Optional[str]:
    """Fetch a document over HTTP and return its body text.

    Args:
        url: URL to request
        logger: Logger instance for error reporting
        timeout: Request timeout in seconds
        **kwargs: Additional arguments for requests

    Returns:
        Response text or None on failure
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    session = create_session_with_retry()
    headers = kwargs.pop("headers", None) or {"User-Agent": "feature-reacher/1.0"}

    try:
        logger.info(f"Fetching document from {url}")
        response = session.get(url, timeout=timeout, headers=headers, **kwargs)
        response.raise_for_status()
        logger.info(f"Fetched {len(response.text)} characters ({response.status_code})")
        return response.text
    except requests.exceptions.RequestException as e:
        logger.error(f"Request failed: {url} - {str(e)}")
        return None
    finally:
        session.close()


def safe_write_file(
    filepath: str,
    content: str,
    logger: Optional[logging.Logger] = None
) -> bool:
    """Write content to a file through a temporary file and an atomic rename.

    Args:
        filepath: Path to output file
        content: Content to write
        logger: Logger instance for error reporting

    Returns:
        True on success, False on failure
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    temp_filepath = f"{filepath}.tmp"
    try:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(temp_filepath, 'w', encoding='utf-8') as f:
            f.write(content)

        os.replace(temp_filepath, filepath)
        logger.info(f"Successfully wrote file: {filepath}")
        return True
    except OSError as e:
        logger.error(f"Failed to write file {filepath}: {str(e)}")
        if os.path.exists(temp_filepath):
            os.remove(temp_filepath)
        return False


def write_json(filepath: str, data: Any, logger: Optional[logging.Logger] = None) -> bool:
    """Serialize ``data`` as indented JSON and write it atomically."""
    return safe_write_file(filepath, json.dumps(data, indent=2, ensure_ascii=False), logger)


def read_json(filepath: str) -> Any:
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)
