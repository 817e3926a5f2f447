"""
Metadata token parsing.

Operators attach free-form metadata to node records with repeated
``--metadata key=value`` arguments. Tokens are split on the first '=' only,
so values may themselves contain '=' (e.g. base64 padding).
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from .errors import InvalidMetadataError

logger = logging.getLogger(__name__)


def parse_metadata_pair(token: str) -> Tuple[str, str]:
    """
    Parse a single ``key=value`` token.

    Args:
        token: Raw token as given on the command line.

    Returns:
        (key, value) tuple.

    Raises:
        InvalidMetadataError: If the key is empty, '=' is missing,
            or the value is empty.
    """
    key, sep, value = token.partition("=")

    if not key:
        raise InvalidMetadataError("Empty '--metadata' argument detected")
    if not sep:
        raise InvalidMetadataError(f"Missing value for metadata key '{key}'")
    if not value:
        raise InvalidMetadataError(f"Empty value detected for metadata key '{key}'")

    return key, value


def parse_metadata(tokens: Optional[Iterable[str]]) -> Dict[str, str]:
    """
    Parse ``key=value`` tokens into a mapping.

    Parsing is strict: the first malformed token aborts with an error and
    nothing is returned. When a key repeats, the last occurrence wins.

    Args:
        tokens: Raw tokens, or None for no metadata.

    Returns:
        Dict of metadata key to value, in first-seen key order.
    """
    metadata: Dict[str, str] = {}
    for token in tokens or ():
        key, value = parse_metadata_pair(token)
        if key in metadata:
            logger.debug(f"Metadata key '{key}' given more than once, keeping last value")
        metadata[key] = value
    return metadata
