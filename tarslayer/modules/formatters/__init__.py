from .formatters import (
    mode_to_string,
    format_mtime,
    human_readable_size,
    is_binary_content,
)
