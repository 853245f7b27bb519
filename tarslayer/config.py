# config.py
# Environment driven defaults for tarslayer.
#
# Every value can be overridden per run from the CLI; these only decide what
# happens when a flag is not given.

import os


def _env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean from the environment ("1", "true", "yes", "on")."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Where --extract writes when --output-dir is not given
DEFAULT_OUTPUT_DIR = os.getenv("TARSLAYER_OUTPUT_DIR", "./extracted")

# Bytes fetched per HTTP Range request for remote archives
DEFAULT_CHUNK_SIZE = _env_int("TARSLAYER_CHUNK_SIZE", 65536)

# Seconds before a single HTTP request gives up
HTTP_TIMEOUT = _env_int("TARSLAYER_HTTP_TIMEOUT", 30)

# Apply archive uid/gid/uname/gname and mtime to extracted files
USE_METADATA = _env_flag("TARSLAYER_USE_METADATA")

# Reject headers whose stored checksum does not match
VERIFY_CHECKSUM = _env_flag("TARSLAYER_VERIFY_CHECKSUM")
