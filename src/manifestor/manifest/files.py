"""
File Operations for the Manifestor Subsystem

Atomic writes for persisted manifests, tolerant JSON/text readers for the
previous run's state, and path safety checks for archive extraction.
"""

import json
import os
import tempfile
from typing import Any, Callable, Optional

from manifestor.constants import JSON_INDENT
from manifestor.log_utils import logger


def _atomic_write(
    file_path: str, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> bool:
    """
    Write data to a file atomically by writing to a temporary file and replacing the target on success.

    Parameters:
        file_path (str): Destination file path to be written.
        writer_func (Callable[[Any], None]): Receives an open text file and writes the content.
        suffix (str): Suffix to use for the temporary file name.

    Returns:
        bool: `True` if the temporary write and atomic replace succeeded, `False` on any error.
    """
    directory = os.path.dirname(file_path) or "."
    try:
        os.makedirs(directory, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8", newline="\n") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (UnicodeEncodeError, OSError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
    return True


def dump_json(data: Any) -> str:
    """Serialize `data` the way every persisted document is written."""
    return json.dumps(data, indent=JSON_INDENT, ensure_ascii=False)


def atomic_write_json(file_path: str, data: Any) -> bool:
    """Atomically write `data` as indented JSON."""
    return _atomic_write(file_path, lambda f: f.write(dump_json(data)), suffix=".json")


def atomic_write_text(file_path: str, content: str) -> bool:
    """Atomically write text content to `file_path`."""
    return _atomic_write(file_path, lambda f: f.write(content), suffix=".txt")


def read_json(file_path: str) -> Optional[Any]:
    """
    Read a JSON document written by a previous run.

    Returns:
        The decoded document, or `None` if the file is missing or unreadable. A
        corrupt file is logged and treated as absent.
    """
    if not os.path.exists(file_path):
        return None
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Read warning for {file_path}: {e}")
        return None


def read_text(file_path: str) -> Optional[str]:
    """Read a stripped text file, or `None` if it is missing or unreadable."""
    if not os.path.exists(file_path):
        return None
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError as e:
        logger.warning(f"Read warning for {file_path}: {e}")
        return None


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the name contains no absolute paths, parent-directory references or null bytes.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(member_name)
    if os.path.isabs(normalized):
        return False
    if normalized == ".." or normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_extract_path(extract_dir: str, file_path: str) -> str:
    """
    Resolve a safe absolute extraction path and prevent directory traversal.

    Raises:
        ValueError: If the resolved path is outside extract_dir.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    normalized_path = os.path.realpath(os.path.join(real_extract_dir, file_path))

    if not _is_within_base(real_extract_dir, normalized_path):
        raise ValueError(
            f"Unsafe extraction path '{file_path}' is outside base '{extract_dir}'"
        )

    return normalized_path
