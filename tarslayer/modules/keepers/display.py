# display.py
# Console output for listings and captured file content

from typing import Iterable, Optional

from rich.console import Console
from rich.text import Text

from tarslayer.modules.finders.tar_parser import TarEntryFields
from tarslayer.modules.formatters import (
    format_mtime,
    human_readable_size,
    is_binary_content,
    mode_to_string,
)
from tarslayer.modules.keepers.destinations import MemoryDestination, MemoryFile


# split output to file and stdout
class Tee:
    """Duplicate stdout/stderr to a file and the console."""
    def __init__(self, *files):
        self.files = files
    def write(self, data):
        for f in self.files:
            f.write(data)
    def flush(self):
        for f in self.files:
            f.flush()


#----- Tar format entry
def format_entry_line(entry: TarEntryFields, show_permissions: bool = True) -> str:
    """
    Format an entry for display, similar to ls -la output.

    Args:
        entry: Decoded header fields
        show_permissions: Whether to show full ls -la style output

    Returns:
        Formatted string for display
    """
    if show_permissions:
        # Full ls -la style: drwxr-xr-x  root/root  2024-01-15 10:30  filename
        mode_str = mode_to_string(entry.mode, entry.entry_type)
        owner = f"{entry.uname or entry.uid}/{entry.gname or entry.gid}"
        size_str = human_readable_size(entry.size).rjust(8)
        if entry.is_symlink and entry.linkname:
            name_display = f"{entry.path} -> {entry.linkname}"
        else:
            name_display = entry.path
        return f"  {mode_str}  {owner:<16} {size_str}  {format_mtime(entry.mtime)}  {name_display}"
    else:
        # Simple format
        if entry.is_dir:
            return f"  [DIR]  {entry.path}"
        elif entry.is_symlink:
            return f"  [LINK] {entry.path} -> {entry.linkname}"
        else:
            size_str = human_readable_size(entry.size)
            return f"  [FILE] {entry.path} ({size_str})"


def display_entries(entries: Iterable[TarEntryFields], simple: bool = False) -> int:
    """Print one line per entry; returns how many were printed."""
    count = 0
    for entry in entries:
        print(format_entry_line(entry, show_permissions=not simple))
        count += 1
    return count


def _normalize_path(path: str) -> str:
    """Normalize path for comparison (remove leading ./ or /)."""
    path = path.strip()
    if path.startswith("./"):
        path = path[2:]
    if path.startswith("/"):
        path = path[1:]
    return path


def find_entry(destination: MemoryDestination, target: str) -> Optional[MemoryFile]:
    """Look up a captured entry by name, ignoring leading ./ and /."""
    entry = destination.get(target)
    if entry is not None:
        return entry
    wanted = _normalize_path(target)
    for entry in destination:
        if _normalize_path(entry.fields.path) == wanted:
            return entry
    return None


def show_content(entry: MemoryFile, console: Optional[Console] = None) -> None:
    """Print captured content as plain text; binary content is summarised."""
    console = console or Console(highlight=False)
    content = entry.content
    if is_binary_content(content):
        console.print(Text(f"[binary content, {human_readable_size(len(content))}]"))
        return
    # out() writes raw text: no markup, highlighting or wrapping
    console.out(content.decode("utf-8", errors="replace"), end="", highlight=False)
