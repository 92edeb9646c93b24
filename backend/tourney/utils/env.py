"""
Integer settings read from the environment.

A malformed value is logged and replaced by the default so that a typo in
.env degrades to the documented behaviour instead of failing requests.
"""

import logging
import os

logger = logging.getLogger(__name__)


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer); using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%d (must be >= %d); using %d", name, value, minimum, default)
        return default
    return value
