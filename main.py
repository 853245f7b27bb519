#  tarslayer main CLI with list/extract/cat modes, CLI args, and logging
#  Streams the archive block by block; nothing is buffered beyond one block
#  except in --cat mode, which captures entries in memory.
import sys

from rich.console import Console

from tarslayer.modules.cli import parse_args
from tarslayer.modules.errors import TarError
from tarslayer.modules.finders.decoder import list_files_in_tar, parse_tar
from tarslayer.modules.formatters import human_readable_size
from tarslayer.modules.keepers import FileSystemDestination, MemoryDestination, NullDestination
from tarslayer.modules.keepers.display import Tee, display_entries, find_entry, show_content
from tarslayer.modules.sources import open_archive_source


def _open_source(args):
    return open_archive_source(args.archive, chunk_size=args.chunk_size * 1024)


def run_list(args) -> int:
    with _open_source(args) as source:
        if args.names_only:
            names = list_files_in_tar(
                source,
                strict=not args.keep_going,
                verify_checksum=args.verify_checksum,
            )
            for name in names:
                print(name)
            return 0

        destination = NullDestination()
        result = parse_tar(
            source,
            destination,
            strict=not args.keep_going,
            verify_checksum=args.verify_checksum,
        )

    count = display_entries((entry.fields for entry in destination), simple=args.simple_output)
    if not args.quiet:
        print(f"\n[*] {count} entries, {human_readable_size(result.bytes_read)} read")
    return 0


def run_extract(args) -> int:
    destination = FileSystemDestination(args.output_dir, use_metadata=args.use_metadata)

    def progress(name, committed, bytes_read):
        print(f"  [{committed}] {name}")

    if not args.quiet:
        print(f"[*] Extracting {args.archive} into {destination.base_dir}\n")

    with _open_source(args) as source:
        result = parse_tar(
            source,
            destination,
            strict=not args.keep_going,
            verify_checksum=args.verify_checksum,
            progress_callback=None if args.quiet else progress,
        )

    for error in result.errors:
        print(f"[!] Skipped: {error}")
    if not args.quiet:
        print(f"\nDone! {result.entries_committed} entries extracted "
              f"({human_readable_size(result.bytes_read)} read)")
    return 1 if result.errors else 0


def run_cat(args) -> int:
    destination = MemoryDestination()
    with _open_source(args) as source:
        parse_tar(
            source,
            destination,
            strict=not args.keep_going,
            verify_checksum=args.verify_checksum,
        )

    entry = find_entry(destination, args.cat)
    if entry is None:
        print(f"[!] Entry not found: {args.cat}")
        return 1
    show_content(entry, Console(highlight=False))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    # set up logging/tee if requested
    log_f = None
    saved_streams = sys.stdout, sys.stderr
    if args.log_file:
        log_f = open(args.log_file, "w", encoding="utf-8")
        sys.stdout = Tee(sys.stdout, log_f)
        sys.stderr = Tee(sys.stderr, log_f)

    try:
        if args.extract:
            return run_extract(args)
        if args.cat is not None:
            return run_cat(args)
        return run_list(args)
    except TarError as e:
        print(f"[!] Error: {e}")
        return 1
    finally:
        if log_f is not None:
            sys.stdout, sys.stderr = saved_streams
            log_f.close()


if __name__ == "__main__":
    sys.exit(main())
