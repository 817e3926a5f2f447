"""
Key file reading.

A key file holds one hex-encoded key on a single line, optionally followed
by a newline. Surrounding whitespace is discarded.
"""

import logging
from pathlib import Path
from typing import Iterable, List

from .errors import RegistryEnvironmentError, RecordValidationError

logger = logging.getLogger(__name__)


def read_key_file(key_file: str) -> str:
    """
    Read a key from a file.

    Args:
        key_file: Path to the key file.

    Returns:
        The key with surrounding whitespace stripped.

    Raises:
        RegistryEnvironmentError: If the file cannot be read.
        RecordValidationError: If the file is empty or not UTF-8 text.
    """
    path = Path(key_file)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryEnvironmentError(
            f"Failed to read key file '{key_file}': {e.strerror or e}"
        ) from e
    except UnicodeDecodeError as e:
        raise RecordValidationError(f"Key file '{key_file}' is not valid UTF-8 text") from e

    key = content.strip()
    if not key:
        raise RecordValidationError(f"Key file '{key_file}' is empty")

    logger.debug(f"Read key from {key_file}")
    return key


def read_key_files(key_files: Iterable[str], reader=read_key_file) -> List[str]:
    """Read every key file in order, stopping at the first failure."""
    return [reader(key_file) for key_file in key_files]
