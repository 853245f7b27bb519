# CLI argument parsing for tarslayer

import argparse
import sys

from tarslayer.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_OUTPUT_DIR,
    USE_METADATA,
    VERIFY_CHECKSUM,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="List, extract or print entries of a ustar archive.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py -t archive.tar
  python main.py -t archive.tar --names-only
  python main.py -t archive.tar --extract -o ./out
  python main.py -t https://example.com/archive.tar --cat archive/lorem.txt
  cat archive.tar | python main.py -t - --simple-output
        """
    )
    p.add_argument(
        "--archive", "-t",
        dest="archive",
        help="Archive path, http(s) URL, or '-' for stdin",
    )
    p.add_argument(
        "--list",
        action="store_true",
        help="List entries ls -la style (default mode)",
    )
    p.add_argument(
        "--names-only",
        action="store_true",
        help="List entry names only",
    )
    p.add_argument(
        "--extract", "-x",
        action="store_true",
        help="Extract files and directories into --output-dir",
    )
    p.add_argument(
        "--cat", "-c",
        dest="cat",
        default=None,
        help="Print the content of a single entry (e.g., archive/lorem.txt)",
    )
    p.add_argument(
        "--output-dir", "-o",
        dest="output_dir",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output directory for extracted entries (default: {DEFAULT_OUTPUT_DIR})",
    )
    p.add_argument(
        "--use-metadata",
        action="store_true",
        default=USE_METADATA,
        help="Apply archive owner/group/mtime to extracted files instead of the current user",
    )
    p.add_argument(
        "--verify-checksum",
        action="store_true",
        default=VERIFY_CHECKSUM,
        help="Reject headers whose stored checksum does not match their content",
    )
    p.add_argument(
        "--keep-going", "-k",
        action="store_true",
        help="Skip entries the destination cannot write instead of aborting",
    )
    p.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE // 1024,
        help=f"HTTP fetch chunk size in KB for remote archives (default: {DEFAULT_CHUNK_SIZE // 1024})",
    )
    p.add_argument(
        "--simple-output",
        action="store_true",
        help="Use simple output format instead of ls -la style",
    )
    p.add_argument(
        "--log-file", "-l",
        dest="log_file",
        help="Path to save a complete log of output",
    )
    p.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress detailed progress output",
    )
    return p


def parse_args(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    # Show help if there is nothing to read
    if not args.archive:
        p.print_help()
        sys.exit(0)
    if sum([args.extract, args.cat is not None, args.names_only]) > 1:
        p.error("--extract, --cat and --names-only are mutually exclusive")
    return args
