from datetime import datetime

from tarslayer.modules.finders.tar_parser import EntryType


#========= FORMATTER
_TYPE_CHARS = {
    EntryType.REGULAR_FILE: '-',
    EntryType.HARD_LINK: 'h',       # Hard link (show as its own kind)
    EntryType.SYMLINK: 'l',
    EntryType.CHAR_DEVICE: 'c',
    EntryType.BLOCK_DEVICE: 'b',
    EntryType.DIRECTORY: 'd',
    EntryType.FIFO: 'p',
    EntryType.CONTIGUOUS_FILE: '-',  # Contiguous file (treat as regular)
    EntryType.EXTENDED_HEADER: 'x',
    EntryType.GLOBAL_EXTENDED_HEADER: 'g',
}


def mode_to_string(mode: int, entry_type: EntryType) -> str:
    """
    Convert octal mode to ls-style permission string.

    Examples:
        0o755, DIRECTORY -> 'drwxr-xr-x'
        0o644, REGULAR_FILE -> '-rw-r--r--'
        0o777, SYMLINK -> 'lrwxrwxrwx'
    """
    type_char = _TYPE_CHARS.get(entry_type, '-')

    perms = ''
    for shift in [6, 3, 0]:  # owner, group, other
        bits = (mode >> shift) & 0o7
        perms += 'r' if bits & 4 else '-'
        perms += 'w' if bits & 2 else '-'
        perms += 'x' if bits & 1 else '-'

    return type_char + perms


#========= FORMATTER
def format_mtime(unix_timestamp: int) -> str:
    """Format Unix timestamp to 'YYYY-MM-DD HH:MM' string."""
    try:
        if unix_timestamp <= 0:
            return "----.--.-- --:--"
        dt = datetime.fromtimestamp(unix_timestamp)
        return dt.strftime("%Y-%m-%d %H:%M")
    except (OSError, ValueError, OverflowError):
        return "----.--.-- --:--"


def human_readable_size(size):
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"


def is_binary_content(content: bytes) -> bool:
    """Detect if content appears to be binary data.

    Checks for:
    1. Null bytes - definitive binary indicator
    2. Not decodable as UTF-8
    3. High ratio of non-printable characters (>10%)
    """
    if b'\x00' in content:
        return True

    # Sample first 1000 bytes to check non-printable ratio
    sample = content[:1000]
    if not sample:
        return False
    try:
        text = sample.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut off by the sample window is still text
        if e.start < len(sample) - 3:
            return True
        text = sample[:e.start].decode("utf-8")
    if not text:
        return False

    non_printable = sum(1 for c in text if not c.isprintable() and c not in '\n\r\t')
    return non_printable / len(text) > 0.1  # >10% non-printable = binary
