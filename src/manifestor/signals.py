"""
Automation signaling for the CI runner.

Flags are appended as `key=value` lines to the file named by the
`GITHUB_OUTPUT` environment variable. Outside of CI the variable is unset and
signals are only logged.
"""

import os
from typing import Optional

from manifestor.constants import GITHUB_OUTPUT_ENV_VAR
from manifestor.log_utils import logger


def emit_signal(key: str, value: str, output_path: Optional[str] = None) -> bool:
    """
    Append one `key=value` line to the CI output file.

    Parameters:
        key (str): Output name.
        value (str): Output value; must not contain a newline.
        output_path (Optional[str]): Target file; defaults to `$GITHUB_OUTPUT`.

    Returns:
        bool: `True` if the line was written, `False` if no output file is configured
            or writing failed.
    """
    if "\n" in key or "\n" in value:
        raise ValueError(f"Signal {key!r} must be a single line")

    target = output_path or os.environ.get(GITHUB_OUTPUT_ENV_VAR)
    if not target:
        logger.debug(f"No {GITHUB_OUTPUT_ENV_VAR} set; signal {key}={value} not written")
        return False

    try:
        with open(target, "a", encoding="utf-8") as f:
            f.write(f"{key}={value}\n")
    except OSError as e:
        logger.warning(f"Could not write signal {key} to {target}: {e}")
        return False
    return True
